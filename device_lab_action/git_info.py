"""Read commit metadata from the local git checkout."""

import asyncio
import logging
from pathlib import Path

from device_lab_action.errors import InvalidInputError
from device_lab_action.models.request import CommitInfo

logger = logging.getLogger(__name__)


async def get_commit_info(repo_path: Path) -> CommitInfo:
    """Collect the metadata attached to an uploaded package.

    Raises:
        InvalidInputError: If any git command fails

    """
    try:
        commit_id = await run_git(repo_path, "log", "-1", "--pretty=format:%h")
        logger.info("Commit ID: %s", commit_id)
        commit_count = await run_git(
            repo_path,
            "rev-list",
            "--first-parent",
            "--right-only",
            "--count",
            f"{commit_id}..HEAD",
        )
        logger.info("Commit Count: %s", commit_count)
        commit_message = await run_git(
            repo_path, "log", "--pretty=format:%s", commit_id, "-1"
        )
        logger.info("Commit Message: %s", commit_message)
    except (RuntimeError, OSError) as exc:
        raise InvalidInputError(f"Get commit info failed: {exc}") from exc

    return CommitInfo(
        commit_id=commit_id,
        commit_count=commit_count,
        commit_message=commit_message,
    )


async def run_git(repo_path: Path, *args: str) -> str:
    """Run a git command and return its stripped output."""
    process = await asyncio.create_subprocess_exec(
        "git",
        *args,
        cwd=repo_path,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()

    if process.returncode != 0:
        raise RuntimeError(f"git {args[0]} failed: {stderr.decode().strip()}")

    return stdout.decode().strip()
