from datetime import timedelta
from decimal import Decimal

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.exceptions import NotFoundError
from sitepulse.models.daily_stats import DailyStats
from sitepulse.models.site import Site
from sitepulse.schemas.site import (
    DailyStatsResponse,
    SiteCreate,
    SiteListItem,
    SiteResponse,
    SiteStatsResponse,
    SiteUpdate,
    StatsTotals,
)
from sitepulse.services.aggregate_store import AggregateStore, utc_today


class SiteService:
    """Service for site registration, lookup and statistics."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: SiteCreate) -> Site:
        """Register a site with a freshly generated tracking identifier."""
        site = Site(
            name=data.name,
            url=data.url,
            category=data.category,
            tracking_id=Site.generate_tracking_id(),
        )
        self.db.add(site)
        await self.db.flush()
        await self.db.refresh(site)
        return site

    async def get(self, site_id: int) -> Site:
        result = await self.db.execute(select(Site).where(Site.id == site_id))
        site = result.scalar_one_or_none()
        if not site:
            raise NotFoundError("Site not found")
        return site

    async def get_active_by_tracking_id(self, tracking_id: str) -> Site:
        """Resolve a public tracking identifier; inactive sites count as missing."""
        result = await self.db.execute(
            select(Site).where(Site.tracking_id == tracking_id, Site.is_active.is_(True))
        )
        site = result.scalar_one_or_none()
        if not site:
            raise NotFoundError("Site not found or inactive")
        return site

    async def list_with_today(self) -> list[SiteListItem]:
        """All sites, newest first, with today's pageviews and revenue."""
        today = utc_today()
        result = await self.db.execute(
            select(
                Site,
                func.coalesce(DailyStats.pageviews, 0),
                func.coalesce(DailyStats.total_revenue, 0),
            )
            .outerjoin(
                DailyStats,
                and_(DailyStats.site_id == Site.id, DailyStats.date == today),
            )
            .order_by(Site.created_at.desc(), Site.id.desc())
        )
        return [
            SiteListItem(
                **SiteResponse.model_validate(site).model_dump(),
                today_pageviews=pageviews,
                today_revenue=Decimal(str(revenue)),
            )
            for site, pageviews, revenue in result.all()
        ]

    async def update(self, site_id: int, data: SiteUpdate) -> Site:
        """Update mutable fields. Setting ``is_active=False`` stops ingestion."""
        site = await self.get(site_id)
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in update_data.items():
            setattr(site, field, value)
        await self.db.flush()
        await self.db.refresh(site)
        return site

    async def delete(self, site_id: int) -> None:
        """Delete a site and, by cascade, everything recorded for it."""
        site = await self.get(site_id)
        await self.db.delete(site)
        await self.db.flush()

    async def get_stats(self, site_id: int, days: int = 30) -> SiteStatsResponse:
        """Daily rows for the trailing ``days`` plus period totals."""
        await self.get(site_id)
        today = utc_today()
        rows = await AggregateStore(self.db).get_range(
            site_id, today - timedelta(days=days), today
        )

        daily = [DailyStatsResponse.model_validate(row) for row in rows]
        count = len(daily)
        totals = StatsTotals(
            total_pageviews=sum(d.pageviews for d in daily),
            total_visitors=sum(d.unique_visitors for d in daily),
            total_sessions=sum(d.sessions for d in daily),
            avg_duration=sum(d.avg_session_duration for d in daily) / count if count else 0.0,
            avg_bounce_rate=float(sum(d.bounce_rate for d in daily) / count) if count else 0.0,
            total_revenue=sum((d.total_revenue for d in daily), Decimal("0")),
        )
        return SiteStatsResponse(daily=daily, totals=totals)
