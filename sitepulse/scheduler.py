"""Periodic jobs: revenue sync, rule evaluation and nightly finalization.

Each job opens its own session and runs inside its own error boundary, so a
failure is logged and the job simply waits for its next tick.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import date, timedelta
from functools import wraps
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitepulse.core.config import settings
from sitepulse.services.aggregate_store import AggregateStore, utc_today
from sitepulse.services.revenue_sync import RevenueSource, RevenueSyncJob
from sitepulse.services.rule_evaluator import RuleEvaluator

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


def yesterday() -> date:
    return utc_today() - timedelta(days=1)


async def sync_revenue(
    session_factory: SessionFactory,
    day: date | None = None,
    sources: list[RevenueSource] | None = None,
) -> int:
    """Pull the prior day's revenue from every configured source."""
    day = day or yesterday()
    async with session_factory() as session:
        return await RevenueSyncJob(session, sources).run(day)


async def evaluate_rules(session_factory: SessionFactory, today: date | None = None) -> int:
    async with session_factory() as session:
        return await RuleEvaluator(session).run_pass(today)


async def finalize_day(session_factory: SessionFactory, day: date | None = None) -> int:
    """Back-fill session metrics for ``day`` (yesterday by default) and commit."""
    day = day or yesterday()
    async with session_factory() as session:
        try:
            rows = await AggregateStore(session).finalize_day(day)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return rows


def guarded(name: str, job: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[None]]:
    """Wrap a job so any exception is logged instead of reaching the scheduler."""

    @wraps(job)
    async def runner(*args: Any, **kwargs: Any) -> None:
        logger.info("Running scheduled job %s", name)
        try:
            result = await job(*args, **kwargs)
        except Exception:
            logger.exception("Scheduled job %s failed", name)
            return
        logger.info("Scheduled job %s finished: %s", name, result)

    return runner


def build_scheduler(session_factory: SessionFactory) -> AsyncIOScheduler:
    """Create (but do not start) the scheduler with all three jobs registered."""
    tz = settings.SCHEDULER_TIMEZONE
    scheduler = AsyncIOScheduler(timezone=tz)
    job_defaults = {"max_instances": 1, "coalesce": True, "replace_existing": True}

    scheduler.add_job(
        guarded("revenue_sync", sync_revenue),
        CronTrigger(hour=settings.REVENUE_SYNC_HOUR, minute=0, timezone=tz),
        args=[session_factory],
        id="revenue_sync",
        **job_defaults,
    )
    scheduler.add_job(
        guarded("rule_evaluation", evaluate_rules),
        CronTrigger(minute=0, timezone=tz),
        args=[session_factory],
        id="rule_evaluation",
        **job_defaults,
    )
    scheduler.add_job(
        guarded("nightly_finalization", finalize_day),
        CronTrigger(
            hour=settings.FINALIZATION_HOUR, minute=settings.FINALIZATION_MINUTE, timezone=tz
        ),
        args=[session_factory],
        id="nightly_finalization",
        **job_defaults,
    )
    return scheduler
