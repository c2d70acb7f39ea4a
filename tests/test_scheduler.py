"""Tests for TaskScheduler: firing, failure isolation, backoff and quiescence."""

import asyncio

import pytest

from lendbot.scheduler import Job, JobState, TaskScheduler


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class TestRegistration:
    def test_duplicate_name_rejected(self) -> None:
        scheduler = TaskScheduler()

        async def job() -> None:
            pass

        scheduler.register("snapshot_capture", job, 60)
        with pytest.raises(ValueError):
            scheduler.register("snapshot_capture", job, 60)

    def test_non_positive_interval_rejected(self) -> None:
        async def job() -> None:
            pass

        with pytest.raises(ValueError):
            TaskScheduler().register("job", job, 0)

    def test_status_before_start(self) -> None:
        scheduler = TaskScheduler()

        async def job() -> None:
            pass

        scheduler.register("job", job, 60)
        [status] = scheduler.status()
        assert status["state"] == "idle"
        assert status["iterations"] == 0


class TestRunning:
    @pytest.mark.asyncio
    async def test_job_fires_immediately_then_on_interval(self) -> None:
        calls: list[float] = []
        scheduler = TaskScheduler()

        async def job() -> None:
            calls.append(asyncio.get_running_loop().time())

        scheduler.register("job", job, 0.05)
        scheduler.start()
        await _wait_for(lambda: len(calls) >= 3)
        scheduler.stop()
        await scheduler.wait()

        assert calls[1] - calls[0] >= 0.04

    @pytest.mark.asyncio
    async def test_failure_is_absorbed_and_job_rearmed(self) -> None:
        attempts = 0
        scheduler = TaskScheduler(backoff_factor=1.0)

        async def flaky() -> None:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("provider down")

        scheduler.register("flaky", flaky, 0.02)
        scheduler.start()
        await _wait_for(lambda: attempts >= 3)
        scheduler.stop()
        await scheduler.wait()

        [status] = scheduler.status()
        assert status["consecutive_failures"] == 0
        assert status["last_error"] is None

    @pytest.mark.asyncio
    async def test_one_failing_job_does_not_affect_another(self) -> None:
        healthy_runs = 0
        scheduler = TaskScheduler(backoff_factor=1.0)

        async def broken() -> None:
            raise RuntimeError("always")

        async def healthy() -> None:
            nonlocal healthy_runs
            healthy_runs += 1

        scheduler.register("broken", broken, 0.02)
        scheduler.register("healthy", healthy, 0.02)
        scheduler.start()
        await _wait_for(lambda: healthy_runs >= 3)
        scheduler.stop()
        await scheduler.wait()

        by_name = {s["name"]: s for s in scheduler.status()}
        assert by_name["broken"]["consecutive_failures"] >= 1
        assert by_name["broken"]["last_error"] == "always"
        assert by_name["healthy"]["consecutive_failures"] == 0

    @pytest.mark.asyncio
    async def test_quiescence_after_stop(self) -> None:
        runs = 0
        scheduler = TaskScheduler()

        async def job() -> None:
            nonlocal runs
            runs += 1

        scheduler.register("job", job, 0.05)
        scheduler.start()
        await _wait_for(lambda: runs >= 1)
        scheduler.stop()
        await scheduler.wait()
        runs_at_stop = runs

        await asyncio.sleep(0.1)

        assert runs == runs_at_stop
        assert not scheduler.is_running
        assert scheduler.status()[0]["state"] == "idle"

    @pytest.mark.asyncio
    async def test_stop_lets_inflight_iteration_finish(self) -> None:
        started = asyncio.Event()
        finished = False
        scheduler = TaskScheduler()

        async def slow() -> None:
            nonlocal finished
            started.set()
            await asyncio.sleep(0.05)
            finished = True

        scheduler.register("slow", slow, 60)
        scheduler.start()
        await started.wait()
        scheduler.stop()
        await scheduler.wait()

        assert finished


class TestBackoff:
    def _job(self, failures: int, interval: float = 60) -> Job:
        async def noop() -> None:
            pass

        return Job(name="job", func=noop, interval=interval, consecutive_failures=failures)

    def test_no_failures_uses_interval(self) -> None:
        assert TaskScheduler().next_delay(self._job(0)) == 60

    def test_exponential_growth(self) -> None:
        scheduler = TaskScheduler(backoff_factor=2.0, backoff_max_seconds=10_000)
        assert scheduler.next_delay(self._job(1)) == 120
        assert scheduler.next_delay(self._job(3)) == 480

    def test_capped(self) -> None:
        scheduler = TaskScheduler(backoff_factor=2.0, backoff_max_seconds=300)
        assert scheduler.next_delay(self._job(10)) == 300

    def test_cap_never_undercuts_long_interval(self) -> None:
        scheduler = TaskScheduler(backoff_factor=2.0, backoff_max_seconds=300)
        assert scheduler.next_delay(self._job(0, interval=600)) == 600
        assert scheduler.next_delay(self._job(4, interval=600)) == 600

    def test_factor_one_keeps_fixed_interval(self) -> None:
        scheduler = TaskScheduler(backoff_factor=1.0)
        assert scheduler.next_delay(self._job(7)) == 60

    def test_job_state_values(self) -> None:
        assert {s.value for s in JobState} == {"idle", "running", "succeeded", "failed", "armed"}
