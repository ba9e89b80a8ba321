"""Status polling of a triggered test task."""

import logging
from dataclasses import dataclass, field

from device_lab_action.annotations import PipelineAnnotator
from device_lab_action.client import DeviceLabClient
from device_lab_action.errors import TaskFailedError, TaskTimeoutError
from device_lab_action.models.task import TestTask
from device_lab_action.scheduling import Sleep, real_sleep

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class PollSchedule:
    """Shrinking poll interval under a timeout budget.

    The first delay is a third of the budget and every following delay is
    half of the previous one, never less than ``min_interval``. This front
    loads patience and checks more often as the deadline gets closer.
    """

    timeout: int
    min_interval: int = 15
    elapsed: int = field(init=False, default=0)
    delay: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.reset()

    @property
    def expired(self) -> bool:
        """Whether the accumulated wait exceeds the budget."""
        return self.elapsed > self.timeout

    def reset(self) -> None:
        """Start over with a fresh budget."""
        self.elapsed = 0
        self.delay = self.timeout // 3

    def advance(self) -> int:
        """Account for one poll delay and return the seconds spent."""
        spent = self.delay
        self.elapsed += spent
        self.delay = max(spent // 2, self.min_interval)
        return spent

    def record_wait(self, seconds: int) -> None:
        """Account for a wait that does not shrink the poll interval."""
        self.elapsed += seconds


@dataclass(frozen=True, kw_only=True)
class StatusPoller:
    """Polls a test task until it reaches a terminal state or times out.

    A task waiting for a device is re-checked every ``waiting_interval``
    seconds. When the server reports a new retry count the task was restarted,
    and the schedule starts over. Progress is highlighted in the build log.
    """

    client: DeviceLabClient
    annotator: PipelineAnnotator = field(default_factory=PipelineAnnotator)
    sleep: Sleep = real_sleep
    waiting_interval: int = 30
    min_interval: int = 15

    async def wait_for_completion(self, task_id: str, timeout: int) -> TestTask:
        """Wait for the task to finish.

        Args:
            task_id: Test task ID returned by the trigger
            timeout: Budget in seconds of accumulated waiting

        Returns:
            Snapshot of the finished task

        Raises:
            TaskFailedError: If the task is canceled or errored
            TaskTimeoutError: If the task does not finish within the budget
            ServerResponseError: If a status request fails

        """
        schedule = PollSchedule(timeout=timeout, min_interval=self.min_interval)
        retry_count = 0
        task: TestTask | None = None

        while not schedule.expired:
            log.info("Get test status after waiting for %d seconds", schedule.elapsed)
            task = await self.client.get_task(task_id)
            log.info(
                "Test task %s: status=%s devices=%d retry=%d",
                task.id,
                task.status,
                task.total_device_count,
                task.retry_count,
            )

            if task.retry_count != retry_count:
                retry_count = task.retry_count
                self.annotator.command(
                    "Task restarted by the server, resetting wait time. "
                    f"Current retry count: {retry_count}"
                )
                schedule.reset()

            if task.status == "waiting":
                self.annotator.command(
                    f"{task.message or 'Task is waiting for a device.'} "
                    f"Start waiting: {self.waiting_interval} seconds"
                )
                await self.sleep(self.waiting_interval)
                schedule.record_wait(self.waiting_interval)
                continue

            if task.is_terminal:
                if task.status == "finished":
                    return task
                raise TaskFailedError(f"The test task is {task.status}", task)

            self.annotator.command(f"Start waiting: {schedule.delay} seconds")
            await self.sleep(schedule.delay)
            schedule.advance()

        raise TaskTimeoutError(
            f"Time out after waiting for {timeout} seconds! Test id {task_id}", task
        )
