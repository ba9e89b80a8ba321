"""Pydantic models for test task snapshots returned by the device lab API."""

from collections.abc import Sequence
from typing import Any, Literal

from pydantic import Field, field_validator

from device_lab_action.models.base import ApiModel

type TaskStatus = Literal["waiting", "running", "finished", "canceled", "error"]

TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset(["finished", "canceled", "error"])


class DeviceTestResult(ApiModel):
    """Outcome of a test run on a single device."""

    __test__ = False

    id: str
    device_serial_number: str
    device_name: str = ""
    total_count: int = 0
    fail_count: int = 0
    success: bool = False
    crash_stack: str | None = None
    instrument_report_blob_url: str | None = None
    test_xml_report_blob_url: str | None = None
    logcat_blob_url: str | None = None
    test_gif_blob_url: str | None = None

    @property
    def has_failed(self) -> bool:
        """Whether this device fails the build.

        A device that reports no executed cases is treated as failed.
        """
        return self.fail_count > 0 or self.total_count == 0


class TestTask(ApiModel):
    """Snapshot of a remote test task, replaced on every poll."""

    __test__ = False

    id: str
    status: TaskStatus
    retry_count: int = Field(default=0, alias="retryTime")
    total_device_count: int = Field(default=0, alias="testDevicesCount")
    total_case_count: int = Field(default=0, alias="totalTestCount")
    total_fail_count: int = 0
    message: str | None = None
    test_error_msg: str | None = None
    report_image_path: str | None = None
    device_test_results: Sequence[DeviceTestResult] = Field(default_factory=tuple)

    @field_validator("device_test_results", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return () if value is None else value

    @property
    def is_terminal(self) -> bool:
        """Whether no further status change is expected."""
        return self.status in TERMINAL_STATUSES


class TriggerResponse(ApiModel):
    """Result of a run request; code 500 means every device is busy."""

    code: int
    test_task_id: str | None = None
    message: str | None = None
