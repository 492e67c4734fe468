from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.config import settings
from sitepulse.core.limiter import limiter
from sitepulse.db.session import get_db
from sitepulse.schemas.revenue import (
    RevenueComparison,
    RevenueCreate,
    RevenueOverview,
    RevenueResponse,
    SiteRevenueResponse,
)
from sitepulse.services.revenue_service import RevenueService

router = APIRouter()


@router.post("/", response_model=RevenueResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def record_revenue(request: Request, data: RevenueCreate, db: AsyncSession = Depends(get_db)):
    """Record revenue for (site, source, date). An existing entry is replaced."""
    return await RevenueService(db).upsert_revenue(
        site_id=data.site_id,
        source=data.source,
        amount=data.amount,
        currency=data.currency,
        impressions=data.impressions,
        clicks=data.clicks,
        date=data.date,
        metadata=data.metadata,
    )


@router.get("/overview", response_model=RevenueOverview)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def revenue_overview(
    request: Request,
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    return await RevenueService(db).get_overview(days)


@router.get("/site/{site_id}", response_model=SiteRevenueResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def site_revenue(
    request: Request,
    site_id: int,
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    return await RevenueService(db).get_site_revenue(site_id, days)


@router.get("/comparison", response_model=RevenueComparison)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def revenue_comparison(
    request: Request,
    days: int = Query(7, ge=1, le=180),
    db: AsyncSession = Depends(get_db),
):
    """Trailing ``days`` against the period immediately before."""
    return await RevenueService(db).get_comparison(days)
