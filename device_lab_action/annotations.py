"""Azure Pipelines logging commands written to the build log."""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO


@dataclass(frozen=True, kw_only=True)
class PipelineAnnotator:
    """Writes logging commands that the pipeline agent picks up from stdout."""

    stream: TextIO = field(default_factory=lambda: sys.stdout)

    def _write(self, line: str) -> None:
        print(line, file=self.stream, flush=True)

    def section(self, text: str) -> None:
        """Highlight a section header."""
        self._write(f"##[section]{text}")

    def command(self, text: str) -> None:
        """Highlight a notable step."""
        self._write(f"##[command]{text}")

    def warning(self, text: str) -> None:
        """Emit a warning line."""
        self._write(f"##[warning]{text}")

    def error(self, text: str) -> None:
        """Emit an error line."""
        self._write(f"##[error]{text}")

    def add_build_tag(self, tag: str) -> None:
        """Tag the current build."""
        self._write(f"##vso[build.addbuildtag]{tag}")

    def upload_artifact(self, path: Path, artifact_name: str = "testResult") -> None:
        """Attach a file to the build artifacts."""
        self._write(
            f"##vso[artifact.upload artifactname={artifact_name};]{path.absolute()}"
        )

    def set_variable(self, name: str, value: str) -> None:
        """Set a pipeline variable for later steps."""
        self._write(f"##vso[task.setvariable variable={name};]{value}")

    def upload_summary(self, path: Path) -> None:
        """Attach a Markdown file to the build summary page."""
        self._write(f"##vso[task.uploadsummary]{path.absolute()}")

    def set_progress(self, value: int, text: str) -> None:
        """Report task progress as a percentage."""
        self._write(f"##vso[task.setprogress value={value};]{text}")
