import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.exceptions import TransientStoreError, ValidationError
from sitepulse.db.session import STORE_UNAVAILABLE_ERRORS
from sitepulse.models.revenue import RevenueEntry
from sitepulse.models.site import Site
from sitepulse.schemas.revenue import (
    DailyRevenue,
    RevenueComparison,
    RevenueOverview,
    RevenueSummary,
    SiteRevenue,
    SiteRevenueLine,
    SiteRevenueResponse,
    SiteRevenueSummary,
    SourceRevenue,
)
from sitepulse.services.aggregate_store import (
    AggregateStore,
    dialect_insert,
    to_decimal,
    utc_today,
)
from sitepulse.services.site_service import SiteService

logger = logging.getLogger(__name__)


@dataclass
class RevenueRecord:
    """One normalized revenue line, as produced by a sync source or a manual submission."""

    site_id: int
    source: str
    amount: Decimal
    date: date
    currency: str = "USD"
    impressions: int = 0
    clicks: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


class RevenueService:
    """Service for recording and reporting ad revenue."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert_revenue(
        self,
        site_id: int | None,
        source: str | None,
        amount: Decimal | float | int | None,
        currency: str | None = None,
        impressions: int | None = None,
        clicks: int | None = None,
        date: date | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RevenueEntry:
        """Insert or fully replace the entry for (site, source, date).

        The previous amount is overwritten, never added to. After the upsert
        commits, the day's ``total_revenue`` is re-summed across all sources.

        Raises:
            ValidationError: site, source, amount or date missing, or a negative value.
            NotFoundError: The site does not exist.
            TransientStoreError: The database is unreachable.
        """
        if site_id is None or not source or amount is None or date is None:
            raise ValidationError("site_id, source, amount, and date are required")
        amount = to_decimal(amount)
        impressions = impressions or 0
        clicks = clicks or 0
        if amount < 0 or impressions < 0 or clicks < 0:
            raise ValidationError("amount, impressions and clicks must not be negative")

        try:
            await SiteService(self.db).get(site_id)

            insert = dialect_insert(self.db)
            stmt = insert(RevenueEntry).values(
                site_id=site_id,
                source=source,
                amount=amount,
                currency=currency or "USD",
                impressions=impressions,
                clicks=clicks,
                date=date,
                entry_metadata=metadata or {},
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["site_id", "source", "date"],
                set_={
                    "amount": stmt.excluded.amount,
                    "currency": stmt.excluded.currency,
                    "impressions": stmt.excluded.impressions,
                    "clicks": stmt.excluded.clicks,
                    "entry_metadata": stmt.excluded.entry_metadata,
                    "updated_at": func.now(),
                },
            )
            await self.db.execute(stmt)
            await self.db.commit()

            await AggregateStore(self.db).refresh_revenue(site_id, date)
            await self.db.commit()

            result = await self.db.execute(
                select(RevenueEntry)
                .where(
                    RevenueEntry.site_id == site_id,
                    RevenueEntry.source == source,
                    RevenueEntry.date == date,
                )
                .execution_options(populate_existing=True)
            )
            entry = result.scalar_one()
        except STORE_UNAVAILABLE_ERRORS as exc:
            await self.db.rollback()
            logger.warning("Revenue store unavailable: %s", exc)
            raise TransientStoreError() from None

        logger.info("Recorded %s revenue for site %s on %s: %s", source, site_id, date, amount)
        return entry

    async def record(self, record: RevenueRecord) -> RevenueEntry:
        return await self.upsert_revenue(
            site_id=record.site_id,
            source=record.source,
            amount=record.amount,
            currency=record.currency,
            impressions=record.impressions,
            clicks=record.clicks,
            date=record.date,
            metadata=record.metadata,
        )

    async def list_entries(self, site_id: int, day: date) -> list[RevenueEntry]:
        result = await self.db.execute(
            select(RevenueEntry)
            .where(RevenueEntry.site_id == site_id, RevenueEntry.date == day)
            .order_by(RevenueEntry.source)
        )
        return list(result.scalars().all())

    async def get_overview(self, days: int = 30) -> RevenueOverview:
        """Totals across all sites for the trailing ``days``."""
        since = utc_today() - timedelta(days=days)
        in_period = RevenueEntry.date >= since

        daily_rows = await self.db.execute(
            select(
                RevenueEntry.date,
                func.sum(RevenueEntry.amount),
                func.sum(RevenueEntry.impressions),
                func.sum(RevenueEntry.clicks),
            )
            .where(in_period)
            .group_by(RevenueEntry.date)
            .order_by(RevenueEntry.date)
        )
        source_rows = await self.db.execute(
            select(
                RevenueEntry.source,
                func.sum(RevenueEntry.amount).label("total"),
                func.sum(RevenueEntry.impressions),
                func.sum(RevenueEntry.clicks),
            )
            .where(in_period)
            .group_by(RevenueEntry.source)
            .order_by(func.sum(RevenueEntry.amount).desc())
        )
        site_rows = await self.db.execute(
            select(Site.id, Site.name, Site.url, func.sum(RevenueEntry.amount))
            .join(RevenueEntry, RevenueEntry.site_id == Site.id)
            .where(in_period)
            .group_by(Site.id, Site.name, Site.url)
            .order_by(func.sum(RevenueEntry.amount).desc())
            .limit(10)
        )
        totals = (
            await self.db.execute(
                select(
                    func.sum(RevenueEntry.amount),
                    func.sum(RevenueEntry.impressions),
                    func.sum(RevenueEntry.clicks),
                ).where(in_period)
            )
        ).one()

        total_revenue, impressions, clicks = to_decimal(totals[0]), totals[1] or 0, totals[2] or 0
        return RevenueOverview(
            daily=[
                DailyRevenue(
                    date=day,
                    total_revenue=to_decimal(amount),
                    total_impressions=imps or 0,
                    total_clicks=clk or 0,
                )
                for day, amount, imps, clk in daily_rows.all()
            ],
            by_source=[
                SourceRevenue(
                    source=source,
                    total_revenue=to_decimal(amount),
                    total_impressions=imps or 0,
                    total_clicks=clk or 0,
                )
                for source, amount, imps, clk in source_rows.all()
            ],
            top_sites=[
                SiteRevenue(id=sid, name=name, url=url, total_revenue=to_decimal(amount))
                for sid, name, url, amount in site_rows.all()
            ],
            summary=RevenueSummary(
                total_revenue=total_revenue,
                total_impressions=impressions,
                total_clicks=clicks,
                ctr=clicks / impressions * 100 if impressions else 0.0,
                rpm=float(total_revenue / impressions * 1000) if impressions else 0.0,
            ),
        )

    async def get_site_revenue(self, site_id: int, days: int = 30) -> SiteRevenueResponse:
        """Per-source lines and summary for one site."""
        await SiteService(self.db).get(site_id)
        since = utc_today() - timedelta(days=days)
        result = await self.db.execute(
            select(RevenueEntry)
            .where(RevenueEntry.site_id == site_id, RevenueEntry.date >= since)
            .order_by(RevenueEntry.date, RevenueEntry.source)
        )
        lines = [SiteRevenueLine.model_validate(entry) for entry in result.scalars().all()]
        total = sum((line.amount for line in lines), Decimal("0"))
        return SiteRevenueResponse(
            daily=lines,
            summary=SiteRevenueSummary(
                total_revenue=total,
                total_impressions=sum(line.impressions for line in lines),
                total_clicks=sum(line.clicks for line in lines),
                avg_daily_revenue=total / len(lines) if lines else Decimal("0"),
            ),
        )

    async def get_comparison(self, days: int = 7) -> RevenueComparison:
        """Revenue of the trailing ``days`` against the ``days`` before that."""
        today = utc_today()
        current_start = today - timedelta(days=days)
        previous_start = today - timedelta(days=days * 2)

        current = to_decimal(
            await self.db.scalar(
                select(func.sum(RevenueEntry.amount)).where(RevenueEntry.date >= current_start)
            )
        )
        previous = to_decimal(
            await self.db.scalar(
                select(func.sum(RevenueEntry.amount)).where(
                    RevenueEntry.date >= previous_start,
                    RevenueEntry.date < current_start,
                )
            )
        )
        change = float((current - previous) / previous * 100) if previous > 0 else 0.0
        return RevenueComparison(
            current=current,
            previous=previous,
            change=round(change, 2),
            trend="up" if change >= 0 else "down",
        )
