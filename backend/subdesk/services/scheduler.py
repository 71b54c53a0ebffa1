"""
SubDesk Backend — In-Process Daily Scheduler
==============================================

Optional alternative to an external cron hitting /cron/*. When
SCHEDULER_ENABLED is true the lifespan starts one asyncio task that wakes
at REMINDER_HOUR in the business timezone, reconciles lapsed subscribers,
then sends renewal reminders. A failed run is logged and the loop waits for
the next day.

Run only one instance (one worker) with the scheduler enabled; the
reminded_for marker keeps an accidental second run from emailing twice.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from subdesk.config import settings
from subdesk.database import session_scope
from subdesk.services.lifecycle import business_tz
from subdesk.services.reminder_service import reminder_service
from subdesk.services.subscriber_service import subscriber_service

logger = logging.getLogger(__name__)


def seconds_until_next_run(now: datetime, hour: int) -> float:
    """Seconds from `now` (tz-aware) until the next HH:00 in now's timezone."""
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    # Same-zone subtraction ignores a DST offset change in between
    return (target.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds()


async def run_daily_jobs() -> None:
    """Reconcile lapses, then send reminders, in one transaction each."""
    async with session_scope() as db:
        demoted = await subscriber_service.reconcile_lapsed(db)
    logger.info("Daily reconcile demoted %d subscribers", len(demoted))

    async with session_scope() as db:
        result = await reminder_service.send_reminders(db)
    logger.info("Daily reminders: sent=%d failed=%d", result.sent, result.failed)


class DailyScheduler:

    def __init__(self, hour: int, tz: tzinfo):
        self.hour = hour
        self.tz = tz
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="subdesk-daily-jobs")
        logger.info("Daily scheduler started (runs at %02d:00 %s)", self.hour, self.tz)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Daily scheduler stopped")

    async def _loop(self) -> None:
        while True:
            delay = seconds_until_next_run(datetime.now(self.tz), self.hour)
            logger.debug("Next daily run in %.0fs", delay)
            await asyncio.sleep(delay)
            try:
                await run_daily_jobs()
            except Exception as e:
                logger.error("Daily job run failed: %s", str(e), exc_info=True)


def build_scheduler() -> DailyScheduler:
    return DailyScheduler(
        hour=settings.reminder_hour, tz=business_tz(settings.business_timezone)
    )
