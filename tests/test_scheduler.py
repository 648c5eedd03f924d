"""
Tests for the single-flight ingestion scheduler
"""

import asyncio

import pytest

from vuln_sync.orchestration.scheduler import IngestionScheduler


class BlockingJob:
    def __init__(self):
        self.release = asyncio.Event()
        self.started = 0
        self.finished = 0

    async def __call__(self):
        self.started += 1
        await self.release.wait()
        self.finished += 1


class TestTrigger:

    @pytest.mark.asyncio
    async def test_trigger_while_running_is_dropped(self):
        job = BlockingJob()
        scheduler = IngestionScheduler(job)

        assert scheduler.trigger() is True
        await asyncio.sleep(0)
        assert scheduler.running
        assert scheduler.trigger() is False

        job.release.set()
        await scheduler.wait_idle()
        assert job.started == 1
        assert job.finished == 1
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_trigger_after_completion_runs_again(self):
        job = BlockingJob()
        job.release.set()
        scheduler = IngestionScheduler(job)

        scheduler.trigger()
        await scheduler.wait_idle()
        assert scheduler.trigger() is True
        await scheduler.wait_idle()

        assert job.finished == 2

    @pytest.mark.asyncio
    async def test_skip_predicate_disables_job(self):
        job = BlockingJob()
        scheduler = IngestionScheduler(job, skip_if=lambda: True)

        assert scheduler.trigger() is False
        await asyncio.sleep(0)
        assert job.started == 0

    @pytest.mark.asyncio
    async def test_skip_predicate_is_evaluated_per_trigger(self):
        job = BlockingJob()
        job.release.set()
        profile = {'ingester': False}
        scheduler = IngestionScheduler(job, skip_if=lambda: not profile['ingester'])

        assert scheduler.trigger() is False
        profile['ingester'] = True
        assert scheduler.trigger() is True
        await scheduler.wait_idle()
        assert job.finished == 1

    @pytest.mark.asyncio
    async def test_job_failure_does_not_escape(self):
        async def broken():
            raise RuntimeError("boom")

        scheduler = IngestionScheduler(broken)
        scheduler.trigger()
        await scheduler.wait_idle()

        assert not scheduler.running


class TestTimer:

    @pytest.mark.asyncio
    async def test_fires_after_initial_delay_then_periodically(self):
        job = BlockingJob()
        job.release.set()
        scheduler = IngestionScheduler(job, every=0.05, initial_delay=0.02)

        scheduler.start()
        await asyncio.sleep(0.01)
        assert job.started == 0
        await asyncio.sleep(0.15)
        await scheduler.stop()

        assert job.started >= 2

    @pytest.mark.asyncio
    async def test_slow_job_is_never_overlapped(self):
        job = BlockingJob()
        scheduler = IngestionScheduler(job, every=0.01, initial_delay=0)

        scheduler.start()
        await asyncio.sleep(0.1)
        assert job.started == 1

        await scheduler.stop()
        assert scheduler.running
        job.release.set()
        await scheduler.wait_idle()
        assert job.finished == 1


class TestShutdown:

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_job(self):
        job = BlockingJob()
        scheduler = IngestionScheduler(job, every=3600, initial_delay=0)

        scheduler.start()
        await asyncio.sleep(0.02)
        assert scheduler.running

        await scheduler.shutdown()

        assert not scheduler.running
        assert job.started == 1
        assert job.finished == 0
        assert scheduler.trigger() is True
        await scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_when_idle(self):
        scheduler = IngestionScheduler(BlockingJob())
        await scheduler.shutdown()
        assert not scheduler.running
