"""Background scheduler for the daily habit refresh."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.cron import CronTrigger

if TYPE_CHECKING:
    from .context import AppContext

logger = logging.getLogger("habitstreak.scheduler")

DAILY_REFRESH_JOB_ID = "daily_refresh"


class BackgroundScheduler:
    """Refreshes every habit shortly after local midnight.

    Reads already reset stale flags lazily; this job exists so live
    subscribers see the new day without having to read first.
    """

    def __init__(self, ctx: AppContext):
        self.ctx = ctx
        self.scheduler = None

    def start(self) -> None:
        """Start the background scheduler."""
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        tz = self.ctx.config.timezone()
        self.scheduler = APScheduler(timezone=tz) if tz is not None else APScheduler()
        self.scheduler.add_job(
            func=self._run_refresh,
            trigger=CronTrigger(hour=0, minute=0, second=5, timezone=tz),
            id=DAILY_REFRESH_JOB_ID,
            name="Daily habit refresh",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Background scheduler started; daily refresh at 00:00:05")

    def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Background scheduler stopped")

    def job_ids(self) -> list[str]:
        if self.scheduler is None:
            return []
        return [job.id for job in self.scheduler.get_jobs()]

    def _run_refresh(self) -> None:
        try:
            habits = self.ctx.tracker.refresh()
            logger.info("Daily refresh completed for %d habits", len(habits))
        except Exception as exc:
            logger.error(f"Daily refresh failed: {exc}", exc_info=True)


def create_scheduler(ctx: AppContext, *, auto_start: bool = False) -> BackgroundScheduler:
    """Create and optionally start a background scheduler.

    Args:
        ctx: Application context
        auto_start: Whether to start the scheduler immediately

    Returns:
        BackgroundScheduler instance
    """
    scheduler = BackgroundScheduler(ctx)
    if auto_start:
        scheduler.start()
    return scheduler
