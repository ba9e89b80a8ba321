"""Aggregation of a finished test task into a build report."""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from device_lab_action.client import DeviceLabClient
from device_lab_action.errors import InvalidInputError
from device_lab_action.models.result import ArtifactKind, DeviceReport, RunReport
from device_lab_action.models.task import DeviceTestResult, TestTask
from device_lab_action.session import RunSession

log = logging.getLogger(__name__)

SUMMARY_FILE_NAME = "TestLabSummary.md"


@dataclass(frozen=True, kw_only=True)
class ArtifactSpec:
    """Where a device artifact comes from and where it is stored."""

    kind: ArtifactKind
    label: str
    url_field: str
    file_name: str

    def url_for(self, device: DeviceTestResult) -> str | None:
        """Return the artifact URL reported for the device, if any."""
        url: str | None = getattr(device, self.url_field)
        return url or None

    def path_for(
        self, report_dir: Path, suite_name: str, device: DeviceTestResult
    ) -> Path:
        """Return the local file the artifact is downloaded to."""
        return report_dir / self.file_name.format(
            suite=suite_name, serial=device.device_serial_number
        )


ARTIFACT_SPECS: Sequence[ArtifactSpec] = (
    ArtifactSpec(
        kind="instrument_log",
        label="adb log",
        url_field="instrument_report_blob_url",
        file_name="ADB-{suite}-{serial}.log",
    ),
    ArtifactSpec(
        kind="xml_report",
        label="xml test report",
        url_field="test_xml_report_blob_url",
        file_name="TEST-{suite}-{serial}.xml",
    ),
    ArtifactSpec(
        kind="logcat",
        label="logcat log",
        url_field="logcat_blob_url",
        file_name="logcat-{suite}-{serial}.log",
    ),
    ArtifactSpec(
        kind="recording",
        label="test gif",
        url_field="test_gif_blob_url",
        file_name="rec_{serial}.gif",
    ),
)


@dataclass(frozen=True, kw_only=True)
class ResultAggregator:
    """Turns a finished test task into downloaded artifacts and a summary.

    Devices are processed concurrently; their summary lines keep the order in
    which the server reported the devices. Missing artifacts never fail the
    aggregation.
    """

    client: DeviceLabClient
    session: RunSession
    report_dir: Path

    async def aggregate(self, task: TestTask, suite_name: str) -> RunReport:
        """Collect artifacts of a finished task and write the summary.

        Raises:
            ValueError: If the task has not finished
            InvalidInputError: If the report directory cannot be created

        """
        if task.status != "finished":
            raise ValueError(f"Cannot aggregate task in status {task.status}")

        annotator = self.session.annotator
        config = self.client.config
        try:
            self.report_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise InvalidInputError(
                f"Cannot create report directory {self.report_dir}: {exc}"
            ) from exc

        report_url = config.test_report_url(task.id)
        passed = task.total_fail_count == 0
        if not passed:
            log.warning("%d cases failed during the test", task.total_fail_count)
            annotator.warning(f"{task.total_fail_count} cases failed during the test")
            if task.report_image_path:
                log.info(
                    "Failure report image: %s",
                    config.static_resource_url(task.report_image_path),
                )
            self.session.mark_failed()

        annotator.set_progress(90, "Almost Done with testing")
        log.info(
            "Start going through device test results: task=%s devices=%d",
            task.id,
            len(task.device_test_results),
        )

        devices = [
            device
            for device in task.device_test_results
            if device.test_xml_report_blob_url
        ]
        device_reports: Sequence[DeviceReport] = await asyncio.gather(
            *(self._collect_device(device, suite_name) for device in devices)
        )

        lines = [
            "# Device Lab Test Result Details\n\n\n",
            f"### [Link to full report]({report_url})\n\n\n",
            f"### Statistic: total test case count: {task.total_case_count}, "
            f"failed: {task.total_fail_count}\n\n",
        ]
        for index, device_report in enumerate(device_reports, start=1):
            device = device_report.device
            if device.has_failed:
                passed = False
                self._report_device_failure(device)
                self.session.mark_failed()

            log.info(
                "Device %s test video link: %s",
                device.device_serial_number,
                device_report.video_url,
            )
            annotator.set_variable(f"TestVideoLink{index}", device_report.video_url)
            lines.append(
                f"- On device {device.device_name} "
                f"(SN: {device.device_serial_number}), "
                f"total case count: {device.total_count}, "
                f"failed: {device.fail_count} "
                f"**[Video Link]({device_report.video_url})**\n"
            )

        log.info(
            "All done, overall failed cases count: %d, total count: %d, "
            "devices count: %d",
            task.total_fail_count,
            task.total_case_count,
            task.total_device_count,
        )
        log.info("Test task report link: %s", report_url)
        annotator.set_variable("TestTaskReportLink", report_url)

        summary = "".join(lines)
        summary_path = self.report_dir / SUMMARY_FILE_NAME
        try:
            summary_path.write_text(summary, encoding="utf-8")
        except OSError as exc:
            log.warning("Failed to write summary to %s: %s", summary_path, exc)
            annotator.warning(f"Failed to write summary to {summary_path}")
        else:
            annotator.upload_summary(summary_path)

        return RunReport(
            task=task,
            passed=passed,
            summary=summary,
            summary_path=summary_path,
            report_url=report_url,
            devices=device_reports,
        )

    async def _collect_device(
        self, device: DeviceTestResult, suite_name: str
    ) -> DeviceReport:
        """Download the artifacts of one device, one kind at a time."""
        log.info(
            "Device %s, failed cases count: %d, total cases: %d",
            device.device_serial_number,
            device.fail_count,
            device.total_count,
        )
        artifacts: dict[ArtifactKind, Path | None] = {}
        for spec in ARTIFACT_SPECS:
            artifacts[spec.kind] = await self._download(device, spec, suite_name)

        return DeviceReport(
            device=device,
            artifacts=artifacts,
            video_url=self.client.config.device_video_url(device.id),
        )

    async def _download(
        self, device: DeviceTestResult, spec: ArtifactSpec, suite_name: str
    ) -> Path | None:
        serial = device.device_serial_number
        url = spec.url_for(device)
        if url is None:
            log.info(
                "No %s for device %s exists, skip downloading.", spec.label, serial
            )
            return None

        path = spec.path_for(self.report_dir, suite_name, device)
        log.info(
            "Start downloading %s for device %s, device name %s, link: %s",
            spec.label,
            serial,
            device.device_name,
            url,
        )
        if not await self.client.download_to_file(url, path):
            log.info("No %s for device %s downloaded, skipping.", spec.label, serial)
            return None

        log.info("Finish downloading %s for device %s", spec.label, serial)
        self.session.annotator.upload_artifact(path)
        return path

    def _report_device_failure(self, device: DeviceTestResult) -> None:
        serial = device.device_serial_number
        if device.crash_stack:
            message = (
                f"Fatal error during test on device {serial}, stack:\n"
                f"{device.crash_stack}"
            )
        else:
            message = (
                f"Fatal error during test on device {serial} with no stack found."
            )
        log.error("%s", message)
        self.session.annotator.error(message)


def artifact_counts(reports: Sequence[DeviceReport]) -> Mapping[str, int]:
    """Count downloaded and missing artifacts across devices."""
    downloaded = sum(len(report.downloaded_files) for report in reports)
    total = sum(len(report.artifacts) for report in reports)
    return {"downloaded": downloaded, "missing": total - downloaded}
