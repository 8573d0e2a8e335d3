"""Tests for the periodic job runner and job manager."""

import asyncio

import pytest

from fleetwatch.workers.base_job import PeriodicJob
from fleetwatch.workers.job_manager import JobManager


class GatedJob(PeriodicJob):
    """Blocks inside execute until released."""

    def __init__(self, name="gated", interval_seconds=30, enabled=True):
        super().__init__(name, interval_seconds, enabled)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def execute(self):
        self.entered.set()
        await self.release.wait()


class CountingJob(PeriodicJob):
    def __init__(self, name="counting", interval_seconds=0.01, fail=False, enabled=True):
        super().__init__(name, interval_seconds, enabled)
        self.fail = fail
        self.calls = 0

    async def execute(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_overlapping_run_is_skipped():
    """Test a run is skipped while the previous one is still in flight."""
    job = GatedJob()
    first = asyncio.create_task(job.run())
    await job.entered.wait()

    assert job.is_running is True
    assert await job.run() is False
    assert job.skip_count == 1

    job.release.set()
    assert await first is True
    assert job.is_running is False
    assert job.run_count == 1
    assert job.last_run is not None


@pytest.mark.asyncio
async def test_failed_run_is_counted_and_next_run_proceeds():
    """Test a failing run is counted and does not block the next one."""
    job = CountingJob(fail=True)

    assert await job.run() is True
    assert job.error_count == 1
    assert job.run_count == 0
    assert job.is_running is False

    job.fail = False
    await job.run()
    assert job.calls == 2
    assert job.run_count == 1


@pytest.mark.asyncio
async def test_ticker_runs_until_stopped():
    """Test the ticker keeps running until the job is stopped."""
    job = CountingJob(interval_seconds=0.01)
    job.start()
    assert job.is_active is True

    await asyncio.sleep(0.1)
    await job.stop()

    assert job.is_active is False
    assert job.run_count >= 1
    calls = job.calls
    await asyncio.sleep(0.05)
    assert job.calls == calls


@pytest.mark.asyncio
async def test_disabled_job_does_not_start():
    """Test a disabled job never starts its ticker."""
    job = CountingJob(enabled=False)
    job.start()

    assert job.is_active is False
    await job.stop()


@pytest.mark.asyncio
async def test_job_manager_registry_and_status():
    """Test job registration and status reporting."""
    manager = JobManager()
    first = CountingJob(name="sweep")
    replacement = CountingJob(name="sweep")
    other = GatedJob(name="other", enabled=False)

    manager.register(first)
    manager.register(replacement)
    manager.register(other)

    assert manager.get("sweep") is replacement
    assert manager.get("missing") is None

    manager.start_all()
    assert replacement.is_active is True
    assert other.is_active is False

    await manager.stop_all()
    statuses = {status["name"]: status for status in manager.status()}
    assert set(statuses) == {"sweep", "other"}
    assert statuses["sweep"]["is_active"] is False
    assert statuses["other"]["enabled"] is False
