"""Cron-driven dispatcher that fires jobs on independent tasks."""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import structlog

from sftp_fetcher.config.settings import OverlapPolicy
from sftp_fetcher.scheduler.cron import CronSchedule


logger = structlog.get_logger(__name__)


JobFunc = Callable[[], Awaitable[Any]]
SkipCallback = Callable[[datetime], None]


def _now() -> datetime:
    return datetime.now().astimezone()


class Scheduler:
    """Fires a job at every instant matched by a cron expression.

    Each firing runs on its own task and is never awaited by the
    dispatcher, so a slow run does not delay the next firing. Under
    ``OverlapPolicy.ALLOW`` overlapping runs execute concurrently with no
    mutual exclusion; under ``OverlapPolicy.SKIP`` a firing is dropped
    while an earlier run is still in flight. Missed instants are never
    replayed.
    """

    def __init__(
        self,
        overlap_policy: OverlapPolicy = OverlapPolicy.ALLOW,
        on_skip: Optional[SkipCallback] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            overlap_policy: What to do when a firing finds a run in flight.
            on_skip: Optional callback for dropped firings.
        """
        self._overlap_policy = overlap_policy
        self._on_skip = on_skip
        self._in_flight: set[asyncio.Task] = set()
        self._firings = 0
        self._skipped = 0

    @property
    def in_flight(self) -> int:
        """Get number of runs currently executing."""
        return len(self._in_flight)

    @property
    def firings(self) -> int:
        """Get number of firings that started a run."""
        return self._firings

    @property
    def skipped(self) -> int:
        """Get number of firings dropped by the overlap policy."""
        return self._skipped

    def start(self, schedule: str | CronSchedule, job: JobFunc) -> asyncio.Task:
        """Parse the schedule and start dispatching.

        Must be called from a running event loop. The returned task runs
        until it is cancelled or the process exits.

        Args:
            schedule: Cron expression or parsed schedule.
            job: Coroutine function invoked at each firing.

        Returns:
            The dispatcher task.

        Raises:
            ScheduleParseError: If the expression is invalid. Nothing is
                scheduled in that case.
        """
        if not isinstance(schedule, CronSchedule):
            schedule = CronSchedule(schedule)

        logger.info(
            "scheduler_started",
            schedule=schedule.expression,
            overlap_policy=self._overlap_policy.value,
        )
        return asyncio.create_task(self._dispatch(schedule, job), name="scheduler")

    async def _dispatch(self, schedule: CronSchedule, job: JobFunc) -> None:
        last = _now()
        while True:
            try:
                fire_at = schedule.next_after(last)
            except ValueError:
                logger.exception("dispatcher_failed", schedule=schedule.expression)
                raise
            delay = (fire_at - _now()).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)

            self._fire(job, fire_at)
            last = max(fire_at, _now())

    def _fire(self, job: JobFunc, fire_at: datetime) -> None:
        if self._overlap_policy == OverlapPolicy.SKIP and self._in_flight:
            self._skipped += 1
            logger.warning(
                "firing_skipped",
                fire_at=fire_at.isoformat(),
                in_flight=len(self._in_flight),
            )
            if self._on_skip:
                self._on_skip(fire_at)
            return

        self._firings += 1
        task = asyncio.create_task(self._execute(job, fire_at))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _execute(self, job: JobFunc, fire_at: datetime) -> None:
        try:
            await job()
        except Exception as e:
            logger.exception("job_failed", fire_at=fire_at.isoformat(), error=str(e))

    async def drain(self) -> None:
        """Cancel in-flight runs and wait for them to finish."""
        tasks = list(self._in_flight)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
