import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from replication.engine import ReconciliationEngine
from schemas.outcomes import TickResult

logger = logging.getLogger(__name__)

JOB_ID = "reconciliation_tick"


class SyncScheduler:
    """
    Fires the reconciliation engine at a fixed interval.

    One job, never overlapping itself: a tick that outlasts the interval
    delays the next one instead of running beside it, and the delayed tick
    fires as soon as the long one completes. A FATAL tick stops the
    scheduler for good.
    """

    def __init__(self, engine: ReconciliationEngine, interval_minutes: float = 5):
        self.engine = engine
        self.interval_minutes = interval_minutes
        self.scheduler = AsyncIOScheduler()
        self.last_result: Optional[TickResult] = None
        self.fatal_error: Optional[BaseException] = None
        self._stopped = asyncio.Event()

    async def run_tick(self):
        """Job to run one reconciliation tick"""
        logger.debug("Scheduler: starting tick")
        started = time.monotonic()
        result = await self.engine.run_tick()
        self.last_result = result
        logger.debug(f"Scheduler: tick finished {result.to_dict()}")

        if result.is_fatal:
            logger.error(f"Scheduler: fatal tick, stopping - {result.error}")
            self.fatal_error = result.error
            self.stop()
            return

        # The overlapping fire was skipped by max_instances. Reschedule once
        # the executor has released this instance, or the new fire is skipped too.
        if time.monotonic() - started >= self.interval_minutes * 60:
            asyncio.get_running_loop().call_soon(self._run_next_now)

    def _run_next_now(self):
        if self._stopped.is_set() or not self.scheduler.running:
            return
        logger.info("Scheduler: tick outlasted the interval, running the next one now")
        self.scheduler.modify_job(JOB_ID, next_run_time=datetime.now(timezone.utc))

    def start(self):
        """Start the scheduler; the first tick fires immediately"""
        self.scheduler.add_job(
            self.run_tick,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            next_run_time=datetime.now(timezone.utc),
        )
        self.scheduler.start()
        logger.info(f"Sync scheduler started, polling every {self.interval_minutes} minutes")

    def stop(self):
        # AsyncIOScheduler defers shutdown to the loop, so running may still be True
        if self._stopped.is_set():
            return
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Sync scheduler stopped")
        self._stopped.set()

    async def wait(self) -> Optional[BaseException]:
        """
        Block until the scheduler stops.

        Returns:
            The error of the fatal tick, or None after a plain stop()
        """
        await self._stopped.wait()
        return self.fatal_error
