"""CLI entry point for the device lab run action."""

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from device_lab_action.aggregator import artifact_counts
from device_lab_action.client import DeviceLabClient
from device_lab_action.config import LabAPIConfig
from device_lab_action.errors import InvalidInputError, LabRunError
from device_lab_action.git_info import get_commit_info
from device_lab_action.models.request import PackageUpload, RunSettings
from device_lab_action.models.result import RunReport
from device_lab_action.orchestrator import LabRunOrchestrator
from device_lab_action.session import RunSession


STATUS_SYMBOLS = {
    True: "✅",
    False: "❌",
}


def pipeline_link_from_env(environ: Mapping[str, str]) -> str:
    """Build the link back to the current Azure DevOps build."""
    return (
        f"{environ.get('SYSTEM_TEAMFOUNDATIONSERVERURI', '')}"
        f"{environ.get('SYSTEM_TEAMPROJECT', '')}"
        f"/_build/results?buildId={environ.get('BUILD_BUILDID', '')}"
    )


def log_report_summary(log: logging.Logger, report: RunReport) -> None:
    """Log a formatted summary of per-device results with video links."""
    log.info("=" * 80)
    log.info("Device Lab Results Summary:")
    log.info("=" * 80)

    for device_report in report.devices:
        device = device_report.device
        log.info(
            "%s %s (%s): %d case(s), %d failed",
            STATUS_SYMBOLS[not device.has_failed],
            device.device_name,
            device.device_serial_number,
            device.total_count,
            device.fail_count,
        )
        log.info("  Video URL: %s", device_report.video_url)

    log.info("Report URL: %s", report.report_url)


def parse_string_map(raw: str, option: str) -> Mapping[str, str]:
    """Parse a JSON object of string values given on the command line."""
    if not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"{option} is not valid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise InvalidInputError(f"{option} must be a JSON object")
    return {str(key): str(item) for key, item in value.items()}


def format_output(
    report: RunReport | None, error: LabRunError | None
) -> dict[str, Any]:
    """Format the run outcome for JSON output."""
    if report is None:
        return {
            "status": "error",
            "error_type": type(error).__name__ if error else None,
            "message": str(error) if error else None,
        }

    task = report.task
    return {
        "status": "success" if report.passed else "failure",
        "task_id": task.id,
        "report_url": report.report_url,
        "total_cases": task.total_case_count,
        "failed_cases": task.total_fail_count,
        "devices": [
            {
                "serial": device.device.device_serial_number,
                "name": device.device.device_name,
                "total": device.device.total_count,
                "failed": device.device.fail_count,
                "video_url": device.video_url,
                "artifacts": {
                    kind: str(path) if path else None
                    for kind, path in device.artifacts.items()
                },
            }
            for device in report.devices
        ],
        "artifacts": artifact_counts(report.devices),
        "summary_path": str(report.summary_path),
    }


async def run(
    api_config_json: str,
    upload_paths: tuple[Path, Path],
    build_flavor: str,
    settings_data: Mapping[str, Any],
    report_dir: Path,
    repo_path: Path,
) -> int:
    """Run the test suite on the device lab and return exit code."""
    log = logging.getLogger("device_lab_action")
    session = RunSession()
    report: RunReport | None = None
    error: LabRunError | None = None

    try:
        try:
            config = LabAPIConfig.model_validate_json(api_config_json)
            settings = RunSettings(**settings_data)
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid configuration: {exc}") from exc

        commit = await get_commit_info(repo_path)
        app_path, test_app_path = upload_paths
        upload = PackageUpload(
            app_path=app_path,
            test_app_path=test_app_path,
            build_flavor=build_flavor,
            commit=commit,
        )

        async with DeviceLabClient.from_config(config) as client:
            orchestrator = LabRunOrchestrator(
                client=client, session=session, report_dir=report_dir
            )
            report = await orchestrator.run(upload, settings)
        log_report_summary(log, report)
    except LabRunError as exc:
        log.error("Device lab run aborted: %s", exc)
        session.mark_failed()
        error = exc

    print(json.dumps(format_output(report, error), indent=2))

    return 1 if session.marked_failed else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run an instrumentation test suite on the device lab"
    )
    parser.add_argument("--app", type=Path, required=True, help="App package")
    parser.add_argument(
        "--test-app", type=Path, required=True, help="Test package or its folder"
    )
    parser.add_argument("--build-flavor", default="", help="Build flavor name")
    parser.add_argument("--suite", required=True, help="Test suite class name")
    parser.add_argument("--device", default=None, help="Device identifier")
    parser.add_argument("--audience", default=None, help="Report audience")
    parser.add_argument(
        "--timeout", type=int, required=True, help="Run timeout in seconds"
    )
    parser.add_argument(
        "--report-dir",
        type=Path,
        default=Path("reports"),
        help="Folder the summary and device artifacts are written to",
    )
    parser.add_argument(
        "--instrumentation-args",
        default="",
        help="JSON object of instrumentation arguments",
    )
    parser.add_argument(
        "--extra-args",
        default="",
        help="JSON object merged into the run request",
    )
    parser.add_argument(
        "--api-config",
        required=True,
        help="JSON configuration for the device lab API",
    )
    parser.add_argument(
        "--pipeline-link",
        default=None,
        help="Link back to the build (defaults to the Azure DevOps build)",
    )
    parser.add_argument(
        "--repo-path",
        type=Path,
        default=Path("."),
        help="Git checkout to read commit metadata from",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        settings_data = {
            "suite_name": args.suite,
            "device_identifier": args.device,
            "report_audience": args.audience,
            "timeout_seconds": args.timeout,
            "instrumentation_args": parse_string_map(
                args.instrumentation_args, "--instrumentation-args"
            ),
            "extra_args": parse_string_map(args.extra_args, "--extra-args"),
            "pipeline_link": args.pipeline_link
            or pipeline_link_from_env(os.environ),
        }
    except InvalidInputError as exc:
        parser.error(str(exc))

    exit_code = asyncio.run(
        run(
            api_config_json=args.api_config,
            upload_paths=(args.app, args.test_app),
            build_flavor=args.build_flavor,
            settings_data=settings_data,
            report_dir=args.report_dir,
            repo_path=args.repo_path,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
