"""Tests for status polling."""

import io
from unittest.mock import Mock

import pytest

from device_lab_action.annotations import PipelineAnnotator
from device_lab_action.errors import (
    ServerResponseError,
    TaskFailedError,
    TaskTimeoutError,
)
from device_lab_action.poller import PollSchedule, StatusPoller
from device_lab_action.testing.clock import RecordingSleep
from device_lab_action.testing.factories import build_task


@pytest.fixture
def poller(
    client_mock: Mock, sleep: RecordingSleep, annotations: io.StringIO
) -> StatusPoller:
    """Create poller with mock client and recording sleep."""
    return StatusPoller(
        client=client_mock,
        annotator=PipelineAnnotator(stream=annotations),
        sleep=sleep,
    )


class TestPollSchedule:
    """Tests for PollSchedule."""

    def test_delay_halves_down_to_floor(self) -> None:
        """Delay starts at a third of the budget and halves down to 15s."""
        schedule = PollSchedule(timeout=300)

        delays = [schedule.advance() for _ in range(6)]

        assert delays == [100, 50, 25, 15, 15, 15]
        assert schedule.elapsed == 220

    def test_floor_applies_after_small_first_delay(self) -> None:
        """A first delay below the floor is followed by the floor."""
        schedule = PollSchedule(timeout=30)

        delays = [schedule.advance() for _ in range(3)]

        assert delays == [10, 15, 15]

    def test_reset_restores_budget(self) -> None:
        """Reset clears elapsed time and restores the first delay."""
        schedule = PollSchedule(timeout=300)
        schedule.advance()
        schedule.advance()

        schedule.reset()

        assert schedule.elapsed == 0
        assert schedule.delay == 100

    def test_record_wait_does_not_shrink_delay(self) -> None:
        """Recorded waits count toward the budget only."""
        schedule = PollSchedule(timeout=300)

        schedule.record_wait(30)

        assert schedule.elapsed == 30
        assert schedule.delay == 100

    def test_expires_only_past_budget(self) -> None:
        """Budget is exhausted only when elapsed exceeds the timeout."""
        schedule = PollSchedule(timeout=60)

        schedule.record_wait(60)
        assert not schedule.expired

        schedule.record_wait(1)
        assert schedule.expired


class TestWaitForCompletion:
    """Tests for StatusPoller.wait_for_completion."""

    async def test_returns_immediately_when_finished(
        self, poller: StatusPoller, client_mock: Mock, sleep: RecordingSleep
    ) -> None:
        """Returns the snapshot without sleeping when already finished."""
        finished = build_task(status="finished")
        client_mock.get_task.return_value = finished

        task = await poller.wait_for_completion("task-123", timeout=300)

        assert task == finished
        assert sleep.calls == []
        client_mock.get_task.assert_called_once_with("task-123")

    async def test_waiting_then_running_then_finished(
        self, poller: StatusPoller, client_mock: Mock, sleep: RecordingSleep
    ) -> None:
        """Waits a fixed 30s while queued, then follows the shrinking delay."""
        client_mock.get_task.side_effect = [
            build_task(status="waiting"),
            build_task(status="running"),
            build_task(status="running"),
            build_task(status="finished"),
        ]

        task = await poller.wait_for_completion("task-123", timeout=90)

        assert task.status == "finished"
        assert sleep.calls == [30, 30, 15]
        assert sleep.total <= 90 + 30

    async def test_waiting_does_not_shrink_delay(
        self, poller: StatusPoller, client_mock: Mock, sleep: RecordingSleep
    ) -> None:
        """The first running delay is a third of the budget after any wait."""
        client_mock.get_task.side_effect = [
            build_task(status="waiting"),
            build_task(status="waiting"),
            build_task(status="running"),
            build_task(status="finished"),
        ]

        await poller.wait_for_completion("task-123", timeout=300)

        assert sleep.calls == [30, 30, 100]

    @pytest.mark.parametrize(
        ("status", "message"),
        [
            ("canceled", "The test task is canceled"),
            ("error", "The test task is error"),
        ],
    )
    async def test_raises_on_failed_task(
        self,
        poller: StatusPoller,
        client_mock: Mock,
        sleep: RecordingSleep,
        status: str,
        message: str,
    ) -> None:
        """Stops polling and carries the snapshot when the task fails."""
        failed = build_task(status=status)
        client_mock.get_task.side_effect = [build_task(status="running"), failed]

        with pytest.raises(TaskFailedError, match=message) as exc_info:
            await poller.wait_for_completion("task-123", timeout=300)

        assert exc_info.value.payload == failed
        assert client_mock.get_task.call_count == 2
        assert sleep.calls == [100]

    async def test_times_out_when_never_finished(
        self, poller: StatusPoller, client_mock: Mock, sleep: RecordingSleep
    ) -> None:
        """Raises a timeout once accumulated waiting exceeds the budget."""
        running = build_task(status="running")
        client_mock.get_task.return_value = running

        with pytest.raises(TaskTimeoutError, match="300 seconds") as exc_info:
            await poller.wait_for_completion("task-123", timeout=300)

        assert not isinstance(exc_info.value, TaskFailedError)
        assert exc_info.value.payload == running
        assert sleep.calls == [100, 50, 25] + [15] * 9
        assert client_mock.get_task.call_count == 12

    async def test_waiting_counts_toward_deadline(
        self, poller: StatusPoller, client_mock: Mock, sleep: RecordingSleep
    ) -> None:
        """A task that never leaves the queue still times out."""
        client_mock.get_task.return_value = build_task(status="waiting")

        with pytest.raises(TaskTimeoutError):
            await poller.wait_for_completion("task-123", timeout=60)

        assert sleep.calls == [30, 30, 30]

    async def test_retry_count_change_resets_schedule(
        self, poller: StatusPoller, client_mock: Mock, sleep: RecordingSleep
    ) -> None:
        """A server-side retry restarts the delay from a third of the budget."""
        client_mock.get_task.side_effect = [
            build_task(status="running", retry_time=0),
            build_task(status="running", retry_time=0),
            build_task(status="running", retry_time=1),
            build_task(status="finished", retry_time=1),
        ]

        await poller.wait_for_completion("task-123", timeout=300)

        assert sleep.calls == [100, 50, 100]

    async def test_retry_count_change_extends_deadline(
        self, poller: StatusPoller, client_mock: Mock, sleep: RecordingSleep
    ) -> None:
        """Wait time accumulated before a retry no longer counts."""
        client_mock.get_task.side_effect = [
            *[build_task(status="running") for _ in range(5)],
            build_task(status="running", retry_time=1),
            build_task(status="finished", retry_time=1),
        ]

        task = await poller.wait_for_completion("task-123", timeout=90)

        assert task.status == "finished"
        assert sleep.calls == [30, 15, 15, 15, 15, 30]

    async def test_poll_failure_aborts(
        self, poller: StatusPoller, client_mock: Mock, sleep: RecordingSleep
    ) -> None:
        """A failed status request is not retried."""
        client_mock.get_task.side_effect = ServerResponseError("boom")

        with pytest.raises(ServerResponseError, match="boom"):
            await poller.wait_for_completion("task-123", timeout=300)

        assert sleep.calls == []

    async def test_highlights_progress_in_build_log(
        self,
        poller: StatusPoller,
        client_mock: Mock,
        annotations: io.StringIO,
    ) -> None:
        """Waits and server-side retries are highlighted as commands."""
        client_mock.get_task.side_effect = [
            build_task(status="waiting", message="Device busy."),
            build_task(status="running", retry_time=1),
            build_task(status="finished", retry_time=1),
        ]

        await poller.wait_for_completion("task-123", timeout=90)

        assert annotations.getvalue().splitlines() == [
            "##[command]Device busy. Start waiting: 30 seconds",
            "##[command]Task restarted by the server, resetting wait time. "
            "Current retry count: 1",
            "##[command]Start waiting: 30 seconds",
        ]
