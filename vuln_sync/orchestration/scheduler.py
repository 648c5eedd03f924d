"""
Ingestion Scheduler

Periodic trigger for the ingestion job:
- first trigger after a fixed initial delay, then every ``every`` seconds
- single-flight: a trigger firing while the job is still running is dropped
- a skip predicate, evaluated on every trigger, disables the job on
  deployments that are not ingesters
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class IngestionScheduler:
    """Runs one job periodically, never concurrently with itself"""

    def __init__(self, job: Callable[[], Awaitable[object]],
                 every: float = 3600,
                 initial_delay: float = 10,
                 skip_if: Callable[[], bool] = lambda: False,
                 name: str = "ingestion"):
        self.job = job
        self.every = every
        self.initial_delay = initial_delay
        self.skip_if = skip_if
        self.name = name
        self._loop_task: Optional[asyncio.Task] = None
        self._job_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._job_task is not None and not self._job_task.done()

    def trigger(self) -> bool:
        """
        Fire the job once

        Returns:
            True if the job was started, False if skipped or dropped
        """
        if self.skip_if():
            logger.debug(f"Skipping scheduled job {self.name}")
            return False
        if self.running:
            logger.info(f"Job {self.name} is still running, dropping trigger")
            return False
        self._job_task = asyncio.create_task(self._run_job())
        return True

    async def _run_job(self):
        try:
            await self.job()
        except Exception as e:
            logger.error(f"Scheduled job {self.name} failed: {e}", exc_info=True)

    async def _run(self):
        await asyncio.sleep(self.initial_delay)
        while True:
            self.trigger()
            await asyncio.sleep(self.every)

    def start(self):
        """Arm the timer"""
        if self._loop_task is None or self._loop_task.done():
            logger.info(f"Scheduling {self.name} every {self.every}s, first run in {self.initial_delay}s")
            self._loop_task = asyncio.create_task(self._run())

    async def stop(self):
        """Disarm the timer, a job already running is left to finish"""
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

    async def shutdown(self):
        """
        Disarm the timer and cancel a running job. The interrupted run stays
        PROCESSING and is reconciled at the next startup.
        """
        await self.stop()
        if self.running:
            logger.warning(f"Cancelling running job {self.name}")
            self._job_task.cancel()
            try:
                await self._job_task
            except asyncio.CancelledError:
                pass

    async def wait_idle(self):
        """Wait for the running job, if any"""
        if self._job_task is not None:
            await asyncio.shield(self._job_task)
