"""Interval scheduler for the background jobs.

Each registered job runs as its own asyncio task:

    IDLE -> RUNNING -> (SUCCEEDED | FAILED) -> ARMED -> IDLE -> ...

The next iteration is armed only after the current one completes, so a job
never overlaps itself; different jobs run concurrently. stop() sets a shared
asyncio.Event: in-flight iterations finish normally, armed waits wake up and
exit, and no new iteration starts afterwards.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from lendbot.logging import bind_job_context, clear_job_context, get_logger

logger = get_logger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ARMED = "armed"


@dataclass
class Job:
    """A registered job and its runtime bookkeeping."""

    name: str
    func: JobFunc
    interval: float
    state: JobState = JobState.IDLE
    iterations: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None
    next_run_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "interval": self.interval,
            "iterations": self.iterations,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
            "next_run_at": self.next_run_at,
        }


class TaskScheduler:
    """Runs registered jobs at fixed intervals with bounded failure backoff.

    After ``n`` consecutive failures a job waits
    ``min(interval * backoff_factor**n, max(backoff_max_seconds, interval))``
    before its next attempt, so a job is never delayed below its own
    interval. A factor of 1.0 keeps the plain fixed interval. Reaching
    ``failure_alert_threshold`` logs an error but never stops the job.

    Args:
        backoff_factor: Multiplier applied per consecutive failure.
        backoff_max_seconds: Upper bound on the backed-off delay, raised to
            the job interval when the interval is longer.
        failure_alert_threshold: Consecutive failures before alerting.
    """

    def __init__(
        self,
        backoff_factor: float = 2.0,
        backoff_max_seconds: float = 14400.0,
        failure_alert_threshold: int = 5,
    ) -> None:
        self._backoff_factor = backoff_factor
        self._backoff_max = backoff_max_seconds
        self._alert_threshold = failure_alert_threshold
        self._jobs: dict[str, Job] = {}
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]
        self._stop = asyncio.Event()

    def register(self, name: str, func: JobFunc, interval: float) -> None:
        if name in self._jobs:
            raise ValueError(f"Job already registered: {name}")
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        self._jobs[name] = Job(name=name, func=func, interval=interval)

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        """Launch every registered job. Each fires immediately."""
        if self.is_running:
            logger.warning("scheduler_already_running")
            return
        self._stop.clear()
        self._tasks = [
            asyncio.create_task(self._run_job(job), name=f"job:{job.name}")
            for job in self._jobs.values()
        ]
        logger.info("scheduler_started", jobs=list(self._jobs))

    def stop(self) -> None:
        """Signal every job to finish its current iteration and exit."""
        self._stop.set()
        logger.info("scheduler_stopping")

    async def wait(self) -> None:
        """Wait until every job task has exited."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("scheduler_stopped")

    def status(self) -> list[dict[str, Any]]:
        return [job.to_dict() for job in self._jobs.values()]

    def next_delay(self, job: Job) -> float:
        if job.consecutive_failures == 0:
            return job.interval
        delay = job.interval * self._backoff_factor**job.consecutive_failures
        return min(delay, max(self._backoff_max, job.interval))

    async def _run_job(self, job: Job) -> None:
        while not self._stop.is_set():
            job.state = JobState.RUNNING
            job.iterations += 1
            bind_job_context(job.name, job.iterations)
            try:
                await job.func()
            except Exception as e:
                job.state = JobState.FAILED
                job.consecutive_failures += 1
                job.last_error = str(e)
                logger.error(
                    "job_iteration_failed",
                    error=str(e),
                    consecutive_failures=job.consecutive_failures,
                    exc_info=True,
                )
                if job.consecutive_failures == self._alert_threshold:
                    logger.error("job_failing_repeatedly", consecutive_failures=job.consecutive_failures)
            else:
                job.state = JobState.SUCCEEDED
                job.consecutive_failures = 0
                job.last_error = None
                logger.debug("job_iteration_succeeded")
            finally:
                clear_job_context()

            if self._stop.is_set():
                break

            delay = self.next_delay(job)
            job.state = JobState.ARMED
            job.next_run_at = time.time() + delay
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            job.state = JobState.IDLE

        job.state = JobState.IDLE
        job.next_run_at = None
        logger.info("job_stopped", job=job.name, iterations=job.iterations)
