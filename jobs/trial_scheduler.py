"""
Fixed-interval scheduler for the trial processor.

One instance is created at application startup and owned by the app. The
first run happens as soon as the scheduler starts. Runs never overlap: the
loop waits for each run to finish before sleeping, and manual triggers share
the same lock.
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from jobs.trial_processor import REMINDER_WINDOW_HOURS, TrialSweepResult, process_trial_subscriptions

logger = logging.getLogger(__name__)


class TrialJobScheduler:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        interval_seconds: float = 3600,
        reminder_window_hours: int = REMINDER_WINDOW_HOURS,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.reminder_window_hours = reminder_window_hours
        self.last_result: Optional[TrialSweepResult] = None
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> TrialSweepResult:
        async with self._lock:
            result = await process_trial_subscriptions(
                self.session_factory,
                reminder_window_hours=self.reminder_window_hours,
            )
            self.last_result = result
            return result

    async def _loop(self):
        # Sweep immediately, then once per interval
        while True:
            try:
                result = await self.run_once()
                if not result.ok:
                    logger.warning(f"Trial processor run finished with errors: {result.errors}")
            except Exception as e:
                # Next tick retries from scratch
                logger.error(f"Trial processor run failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Trial job scheduler started (every {self.interval_seconds}s, UTC)")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Trial job scheduler stopped")
