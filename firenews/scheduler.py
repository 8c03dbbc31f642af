"""APScheduler integration for the daily digest refresh.

Runs the refresh every morning in the digest's civil time zone. Start and
stop functions are designed to be called from the FastAPI lifespan.
"""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from firenews.config import get_settings
from firenews.services.orchestrator import get_orchestrator

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


def start_scheduler() -> AsyncIOScheduler:
    """Start the APScheduler with the daily refresh job.

    Returns:
        The running scheduler instance.
    """
    global _scheduler  # noqa: PLW0603

    settings = get_settings()
    tz = ZoneInfo(settings.freshness.timezone)
    _scheduler = AsyncIOScheduler(timezone=tz)

    _scheduler.add_job(
        _run_daily_refresh_job,
        trigger="cron",
        hour=settings.schedule.daily_refresh_hour,
        minute=settings.schedule.daily_refresh_minute,
        timezone=tz,
        id="daily_refresh",
        name="Daily digest refresh",
        replace_existing=True,
    )
    logger.info(
        "Scheduled daily refresh at %02d:%02d %s",
        settings.schedule.daily_refresh_hour,
        settings.schedule.daily_refresh_minute,
        settings.freshness.timezone,
    )

    _scheduler.start()
    logger.info("Scheduler started")
    return _scheduler


def stop_scheduler() -> None:
    """Stop the running scheduler gracefully."""
    global _scheduler  # noqa: PLW0603

    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
        _scheduler = None


async def _run_daily_refresh_job() -> None:
    """Execute the digest refresh as a scheduled job."""
    logger.info("Scheduled daily refresh triggered")
    try:
        result = await get_orchestrator().refresh()
        logger.info("Scheduled refresh complete: %s", result)
    except Exception:
        logger.exception("Scheduled daily refresh failed")
