"""Client for the device lab HTTP API."""

import json
import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiohttp
from pydantic import ValidationError

from device_lab_action.config import LabAPIConfig
from device_lab_action.errors import ServerResponseError
from device_lab_action.models.request import PackageUpload, RunRequest
from device_lab_action.models.task import TestTask, TriggerResponse

log = logging.getLogger(__name__)

PACKAGE_CONTENT_TYPE = "application/vnd.android.package-archive"


@dataclass(frozen=True, kw_only=True)
class DeviceLabClient:
    """Device lab API client.

    The bearer token is only sent to API endpoints; artifact downloads go to
    pre-signed storage URLs and are fetched without it.
    """

    config: LabAPIConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: LabAPIConfig
    ) -> AsyncGenerator["DeviceLabClient", None]:
        """Create client with managed session lifecycle."""
        timeout = aiohttp.ClientTimeout(
            sock_connect=config.request_timeout,
            sock_read=config.request_timeout,
        )
        async with aiohttp.ClientSession(timeout=timeout) as session:
            yield cls(config=config, session=session)

    @property
    def auth_headers(self) -> Mapping[str, str]:
        """Authorization headers for API calls."""
        return {"Authorization": f"Bearer {self.config.auth_token.get_secret_value()}"}

    async def upload_package(
        self, upload: PackageUpload, app_file: Path, test_app_file: Path
    ) -> str:
        """Upload the application and test packages and return the set ID."""
        form = aiohttp.FormData()
        form.add_field("commitId", upload.commit.commit_id)
        form.add_field("commitCount", upload.commit.commit_count)
        form.add_field("commitMessage", upload.commit.commit_message)
        form.add_field("buildFlavor", upload.build_flavor)
        form.add_field(
            "apkFile",
            app_file.read_bytes(),
            filename=app_file.name,
            content_type=PACKAGE_CONTENT_TYPE,
        )
        form.add_field(
            "testApkFile",
            test_app_file.read_bytes(),
            filename=test_app_file.name,
            content_type=PACKAGE_CONTENT_TYPE,
        )

        url = self.config.upload_url()
        log.info("Uploading %s and %s to %s", app_file.name, test_app_file.name, url)

        data = await self._request_json(
            "POST", url, "upload package", data=form, headers=self.auth_headers
        )

        self._check_code(data, "upload package")
        content = data.get("content")
        if not isinstance(content, dict) or not content.get("id"):
            raise ServerResponseError("Artifact set ID not found in response", data)
        return str(content["id"])

    async def trigger_test_run(self, request: RunRequest) -> TriggerResponse:
        """Request a test run; the application code is left to the caller."""
        payload: dict[str, Any] = {
            "testSuiteClass": request.suite_name,
            "testTimeOutSec": request.timeout_seconds,
            "pkgName": self.config.pkg_name,
            "testPkgName": self.config.test_pkg_name,
            "apkSetId": request.artifact_set_id,
            "groupTestType": self.config.group_test_type,
            "pipelineLink": request.pipeline_link,
            "runningType": self.config.running_type,
            "frameworkType": self.config.framework_type,
        }
        if request.report_audience is not None:
            payload["reportAudience"] = request.report_audience
        if request.device_identifier is not None:
            payload["deviceIdentifier"] = request.device_identifier
        payload["instrumentationArgs"] = dict(request.instrumentation_args)
        payload.update(request.extra_args)

        log.info("Requesting test run: %s", payload)

        data = await self._request_json(
            "POST",
            self.config.run_test_url(),
            "trigger test run",
            json=payload,
            headers=self.auth_headers,
        )

        content = data.get("content")
        task_id = content.get("testTaskId") if isinstance(content, dict) else None
        try:
            return TriggerResponse(
                code=data.get("code"),
                test_task_id=None if task_id is None else str(task_id),
                message=data.get("message"),
            )
        except ValidationError as exc:
            raise ServerResponseError(
                f"Malformed trigger test run response: {exc}", data
            ) from exc

    async def get_task(self, task_id: str) -> TestTask:
        """Get the current snapshot of a test task."""
        data = await self._request_json(
            "GET",
            self.config.test_status_url(task_id),
            "get test status",
            headers=self.auth_headers,
        )

        self._check_code(data, "get test status")
        try:
            return TestTask.model_validate(data.get("content"))
        except ValidationError as exc:
            raise ServerResponseError(
                f"Malformed test task in response: {exc}", data
            ) from exc

    async def download_to_file(self, url: str, path: Path) -> bool:
        """Download a report artifact; return whether the file was written."""
        try:
            async with self.session.get(url) as response:
                if not response.ok:
                    log.warning("Failed to download %s: %s", url, response.status)
                    return False
                body = await response.read()
        except (aiohttp.ClientError, TimeoutError) as exc:
            log.warning("Failed to download %s: %s", url, exc)
            return False

        if not body:
            log.warning("Empty response body for %s", url)
            return False

        try:
            path.write_bytes(body)
        except OSError as exc:
            log.warning("Failed to write %s to %s: %s", url, path, exc)
            return False
        return True

    async def _request_json(
        self, method: str, url: str, operation: str, **kwargs: Any
    ) -> dict[str, Any]:
        try:
            async with self.session.request(method, url, **kwargs) as response:
                return await self._read_json(response, operation)
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise ServerResponseError(f"Failed to {operation}: {exc!r}") from exc

    @staticmethod
    async def _read_json(
        response: aiohttp.ClientResponse, operation: str
    ) -> dict[str, Any]:
        text = await response.text()
        if not response.ok:
            raise ServerResponseError(
                f"Failed to {operation}: {response.status} {text}"
            )
        if not text.strip():
            raise ServerResponseError(f"Failed to {operation}: empty response body")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ServerResponseError(
                f"Failed to {operation}: invalid JSON", text
            ) from exc
        if not isinstance(data, dict):
            raise ServerResponseError(f"Failed to {operation}: unexpected body", data)
        return data

    @staticmethod
    def _check_code(data: Mapping[str, Any], operation: str) -> None:
        code = data.get("code")
        if code != 200:
            raise ServerResponseError(
                f"Failed to {operation}: server returned code {code}", data
            )
