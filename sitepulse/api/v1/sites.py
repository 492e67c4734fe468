from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.config import settings
from sitepulse.core.limiter import limiter
from sitepulse.core.tracker import render_snippet
from sitepulse.db.session import get_db
from sitepulse.schemas.site import (
    SiteCreate,
    SiteListItem,
    SiteResponse,
    SiteStatsResponse,
    SiteUpdate,
    TrackingCodeResponse,
)
from sitepulse.services.site_service import SiteService

router = APIRouter()


@router.get("/", response_model=list[SiteListItem])
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def list_sites(request: Request, db: AsyncSession = Depends(get_db)):
    """List all sites with today's pageviews and revenue."""
    return await SiteService(db).list_with_today()


@router.post("/", response_model=SiteResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def create_site(request: Request, data: SiteCreate, db: AsyncSession = Depends(get_db)):
    """Register a site. The response carries its new tracking id."""
    return await SiteService(db).create(data)


@router.get("/{site_id}", response_model=SiteResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_site(request: Request, site_id: int, db: AsyncSession = Depends(get_db)):
    return await SiteService(db).get(site_id)


@router.patch("/{site_id}", response_model=SiteResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def update_site(
    request: Request,
    site_id: int,
    data: SiteUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await SiteService(db).update(site_id, data)


@router.delete("/{site_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def delete_site(request: Request, site_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a site together with its events, stats, revenue, rules and alerts."""
    await SiteService(db).delete(site_id)
    return None


@router.get("/{site_id}/tracking-code", response_model=TrackingCodeResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_tracking_code(request: Request, site_id: int, db: AsyncSession = Depends(get_db)):
    site = await SiteService(db).get(site_id)
    return TrackingCodeResponse(
        tracking_id=site.tracking_id,
        tracking_code=render_snippet(site.tracking_id, settings.TRACKER_ENDPOINT),
        instructions="Add this code to the <head> section of your website",
    )


@router.get("/{site_id}/stats", response_model=SiteStatsResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_site_stats(
    request: Request,
    site_id: int,
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    """Daily stats for the trailing ``days`` plus period totals."""
    return await SiteService(db).get_stats(site_id, days)
