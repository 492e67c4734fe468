"""Manual triggers for the scheduled jobs.

Unlike the scheduler, these let errors propagate so the caller sees them.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitepulse.api.deps import get_session_factory
from sitepulse.core.config import settings
from sitepulse.core.limiter import limiter
from sitepulse.scheduler import evaluate_rules, finalize_day, sync_revenue, yesterday
from sitepulse.schemas.jobs import (
    FinalizationRequest,
    FinalizationResponse,
    RevenueSyncResponse,
    RuleEvaluationResponse,
)

router = APIRouter()


@router.post("/evaluate-rules", response_model=RuleEvaluationResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def run_rule_evaluation(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    fired = await evaluate_rules(session_factory)
    return RuleEvaluationResponse(alerts_fired=fired)


@router.post("/finalize", response_model=FinalizationResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def run_finalization(
    request: Request,
    data: FinalizationRequest | None = None,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Back-fill session metrics for ``date`` (yesterday when omitted)."""
    day = (data.date if data else None) or yesterday()
    rows = await finalize_day(session_factory, day)
    return FinalizationResponse(date=day, rows_finalized=rows)


@router.post("/revenue-sync", response_model=RevenueSyncResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def run_revenue_sync(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    day = yesterday()
    upserted = await sync_revenue(session_factory, day)
    return RevenueSyncResponse(date=day, entries_upserted=upserted)
