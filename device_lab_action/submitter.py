"""Upload of the application and test packages."""

import logging
from pathlib import Path

from device_lab_action.client import DeviceLabClient
from device_lab_action.errors import InvalidInputError
from device_lab_action.models.request import PackageUpload

log = logging.getLogger(__name__)


def resolve_artifact(path: Path, label: str) -> Path:
    """Resolve a package path, picking the first file when given a directory.

    Build tools often emit a single package into an output directory, so a
    directory is accepted as long as it contains at least one file.

    Raises:
        InvalidInputError: If the path does not exist or holds no file

    """
    if not path.exists():
        raise InvalidInputError(f"{label} not found: {path}")

    if not path.is_dir():
        return path

    files = sorted(child for child in path.iterdir() if child.is_file())
    if not files:
        raise InvalidInputError(f"{label} directory is empty: {path}")
    return files[0]


async def submit_package(client: DeviceLabClient, upload: PackageUpload) -> str:
    """Upload the package pair and return the artifact set ID."""
    app_file = resolve_artifact(upload.app_path, "App package")
    test_app_file = resolve_artifact(upload.test_app_path, "Test package")

    artifact_set_id = await client.upload_package(upload, app_file, test_app_file)
    log.info("Uploaded artifact set id: %s", artifact_set_id)
    return artifact_set_id
