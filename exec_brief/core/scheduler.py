"""
Executive Brief: Periodic summaries.

Three cron jobs in the configured timezone, all of which only log:

- Daily brief (every day 07:30): the same four-way aggregation as the
  /api/brief/today endpoint, reduced to counts (deals uncapped).
- Weekly scorecard (Monday 09:00): number of active deals.
- Pipeline snapshot (Friday 15:00): active and stale deal counts.

A failing job logs its error; the scheduler keeps firing the others.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

if TYPE_CHECKING:
    from exec_brief.app import AppContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job bodies
# ---------------------------------------------------------------------------


async def run_daily_brief(context: AppContext) -> None:
    logger.info("Running daily briefing...")
    try:
        brief, deals = await asyncio.gather(
            context.brief_builder().build(context.user),
            asyncio.to_thread(context.deal_db.list_active, context.user.id),
        )
        metrics = brief["metrics"]
        logger.info(
            "Daily brief generated: emails=%d events=%d tasks=%d deals=%d",
            metrics["priorityEmails"],
            metrics["meetingsToday"],
            metrics["tasksDue"],
            len(deals),
        )
    except Exception as exc:
        logger.error("Error generating daily brief: %s", exc)


async def run_weekly_scorecard(context: AppContext) -> None:
    logger.info("Running weekly scorecard...")
    try:
        deals = await asyncio.to_thread(context.deal_db.list_active, context.user.id)
        logger.info("Weekly scorecard: %d active deals", len(deals))
    except Exception as exc:
        logger.error("Error generating weekly scorecard: %s", exc)


async def run_pipeline_snapshot(context: AppContext) -> None:
    logger.info("Running pipeline snapshot...")
    try:
        deals = await asyncio.to_thread(context.deal_db.list_active, context.user.id)
        now = datetime.now(timezone.utc)
        stale = [d for d in deals if d.is_stale(now)]
        logger.info("Pipeline snapshot: %d active, %d stale", len(deals), len(stale))
    except Exception as exc:
        logger.error("Error generating pipeline snapshot: %s", exc)


# ---------------------------------------------------------------------------
# Scheduler wiring
# ---------------------------------------------------------------------------

# job id -> (body, crontab expression)
JOBS = {
    "daily_brief": (run_daily_brief, "30 7 * * *"),
    "weekly_scorecard": (run_weekly_scorecard, "0 9 * * mon"),
    "pipeline_snapshot": (run_pipeline_snapshot, "0 15 * * fri"),
}


def build_scheduler(context: AppContext, tz: str | None = None) -> AsyncIOScheduler:
    """Register the three jobs on a new (not yet started) scheduler."""
    if tz is None:
        from exec_brief.config import settings
        tz = settings.TIMEZONE

    scheduler = AsyncIOScheduler(timezone=tz)
    for job_id, (body, crontab) in JOBS.items():
        scheduler.add_job(
            body,
            CronTrigger.from_crontab(crontab, timezone=tz),
            args=[context],
            id=job_id,
            replace_existing=True,
        )
    logger.info("Scheduler initialized with %d cron jobs (%s)", len(JOBS), tz)
    return scheduler
