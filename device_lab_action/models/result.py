"""Models for locally built run results."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from device_lab_action.models.task import DeviceTestResult, TestTask

type ArtifactKind = Literal["instrument_log", "xml_report", "logcat", "recording"]


@dataclass(frozen=True, kw_only=True)
class DeviceReport:
    """Artifacts collected for one device.

    Artifacts that were not available are mapped to None.
    """

    device: DeviceTestResult
    artifacts: Mapping[ArtifactKind, Path | None]
    video_url: str

    @property
    def downloaded_files(self) -> Sequence[Path]:
        """Paths of the artifacts that were actually downloaded."""
        return [path for path in self.artifacts.values() if path is not None]


@dataclass(frozen=True, kw_only=True)
class RunReport:
    """Aggregated outcome of a finished test task."""

    task: TestTask
    passed: bool
    summary: str
    summary_path: Path
    report_url: str
    devices: Sequence[DeviceReport]

    @property
    def downloaded_files(self) -> Sequence[Path]:
        """All downloaded artifact files, in device order."""
        return [path for device in self.devices for path in device.downloaded_files]
