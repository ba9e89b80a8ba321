"""Run orchestrator coordinating upload, trigger, polling and aggregation."""

import logging
from dataclasses import dataclass
from pathlib import Path

from device_lab_action.aggregator import ResultAggregator
from device_lab_action.client import DeviceLabClient
from device_lab_action.errors import LabRunError
from device_lab_action.models.request import PackageUpload, RunSettings
from device_lab_action.models.result import RunReport
from device_lab_action.poller import StatusPoller
from device_lab_action.scheduling import Sleep, real_sleep
from device_lab_action.session import RunSession
from device_lab_action.submitter import submit_package
from device_lab_action.trigger import RunTrigger

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class LabRunOrchestrator:
    """Runs one test suite on the device lab, one step after another."""

    client: DeviceLabClient
    session: RunSession
    report_dir: Path
    sleep: Sleep = real_sleep

    async def run(self, upload: PackageUpload, settings: RunSettings) -> RunReport:
        """Upload packages, run the suite and collect the report.

        Args:
            upload: Packages and commit metadata to submit
            settings: Options of the test run

        Returns:
            Report of the finished run; ``passed`` is False when cases failed

        Raises:
            LabRunError: If the run cannot complete; the session is marked
                failed before the error propagates

        """
        try:
            report = await self._run(upload, settings)
        except LabRunError as exc:
            log.error("Device lab run failed: %s", exc)
            self.session.mark_failed()
            raise

        self.session.mark_success()
        return report

    async def _run(self, upload: PackageUpload, settings: RunSettings) -> RunReport:
        annotator = self.session.annotator
        annotator.section(
            f"Run test suite {settings.suite_name}: "
            f"build flavor={upload.build_flavor}, "
            f"device={settings.device_identifier}, "
            f"audience={settings.report_audience}, "
            f"timeout={settings.timeout_seconds}s, "
            f"report dir={self.report_dir}"
        )

        artifact_set_id = await submit_package(self.client, upload)
        annotator.section(f"Uploaded artifact set id: {artifact_set_id}")

        request = settings.for_artifact_set(artifact_set_id)
        task_id = await RunTrigger(client=self.client, sleep=self.sleep).trigger(
            request
        )
        annotator.section(f"Triggered test task id: {task_id} successful!")

        task = await StatusPoller(
            client=self.client, annotator=annotator, sleep=self.sleep
        ).wait_for_completion(task_id, request.timeout_seconds)
        log.info("Test task %s finished", task.id)

        aggregator = ResultAggregator(
            client=self.client, session=self.session, report_dir=self.report_dir
        )
        return await aggregator.aggregate(task, request.suite_name)
