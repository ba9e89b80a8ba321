"""Models describing what to upload and which test run to request."""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from pydantic import Field, PositiveInt

from device_lab_action.models.base import Model


@dataclass(frozen=True, kw_only=True)
class CommitInfo:
    """Git metadata attached to an uploaded package."""

    commit_id: str
    commit_count: str
    commit_message: str


@dataclass(frozen=True, kw_only=True)
class PackageUpload:
    """Application package and test package to submit as one artifact set."""

    app_path: Path
    test_app_path: Path
    build_flavor: str
    commit: CommitInfo


class RunSettings(Model):
    """Caller-supplied options for a test run."""

    suite_name: str = Field(..., min_length=1, description="Test suite class")
    device_identifier: str | None = Field(
        default=None, description="Device or device group to run on"
    )
    report_audience: str | None = Field(
        default=None, description="Audience the report is shared with"
    )
    timeout_seconds: PositiveInt = Field(..., description="Polling deadline")
    instrumentation_args: Mapping[str, str] = Field(default_factory=dict)
    extra_args: Mapping[str, str] = Field(
        default_factory=dict,
        description="Merged as top-level fields of the run request body",
    )
    pipeline_link: str = Field(default="", description="Link back to the CI build")

    def for_artifact_set(self, artifact_set_id: str) -> "RunRequest":
        """Bind these settings to an uploaded artifact set."""
        return RunRequest(**self.model_dump(), artifact_set_id=artifact_set_id)


class RunRequest(RunSettings):
    """Test run request for a specific artifact set."""

    artifact_set_id: str = Field(..., min_length=1)
