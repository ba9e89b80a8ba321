"""Test run trigger with retry while the lab is busy."""

import logging
from dataclasses import dataclass

from device_lab_action.client import DeviceLabClient
from device_lab_action.errors import LabBusyError, ServerResponseError
from device_lab_action.models.request import RunRequest
from device_lab_action.scheduling import Sleep, real_sleep

log = logging.getLogger(__name__)

CODE_OK = 200
CODE_LAB_BUSY = 500


@dataclass(frozen=True, kw_only=True)
class RunTrigger:
    """Requests a test run, waiting for a free device when the lab is full.

    A busy lab answers with application code 500. The request is repeated up
    to ``retry_limit`` times with ``retry_interval`` seconds between attempts.
    Any code other than 200 or 500 fails immediately.
    """

    client: DeviceLabClient
    sleep: Sleep = real_sleep
    retry_limit: int = 20
    retry_interval: float = 30

    async def trigger(self, request: RunRequest) -> str:
        """Trigger the test run and return the test task ID.

        Raises:
            LabBusyError: If the lab is still busy after every retry
            ServerResponseError: If the server rejects the request

        """
        response = await self.client.trigger_test_run(request)

        retries_left = self.retry_limit
        while response.code == CODE_LAB_BUSY and retries_left > 0:
            log.warning(
                "All devices are busy, retrying in %s seconds (%d retries left)",
                self.retry_interval,
                retries_left,
            )
            await self.sleep(self.retry_interval)
            response = await self.client.trigger_test_run(request)
            retries_left -= 1

        if response.code == CODE_LAB_BUSY:
            raise LabBusyError("All devices are busy in the lab", response)
        if response.code != CODE_OK:
            raise ServerResponseError(
                f"Server returned code: {response.code}", response
            )
        if not response.test_task_id:
            raise ServerResponseError("Test task ID not found in response", response)

        log.info("Triggered test task id: %s", response.test_task_id)
        return response.test_task_id
