"""Per-site-per-day aggregate rows (``daily_stats``).

Every write here is either a single-statement upsert or a re-derivation from
raw rows, so concurrent writers never lose updates. Callers own the
transaction: nothing in this module commits.
"""

import logging
import math
from collections import defaultdict
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from numbers import Real
from typing import Any

from sqlalchemy import case, distinct, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from sitepulse.models.daily_stats import DailyStats
from sitepulse.models.event import MAX_SESSION_DURATION_MS, PAGEVIEW, SESSION_END, Event
from sitepulse.models.revenue import RevenueEntry

logger = logging.getLogger(__name__)

_CONFLICT_KEY = ["site_id", "date"]


def is_valid_duration(value: Any) -> bool:
    """A session_end duration in ms: finite, non-negative and at most a day."""
    # bool is a Real subclass
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return 0 <= value <= MAX_SESSION_DURATION_MS


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the half-open UTC range [start, end) covering ``day``."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def dialect_insert(db: AsyncSession) -> Callable[..., Any]:
    """Pick the dialect insert that supports ON CONFLICT DO UPDATE."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Upserts are not supported on dialect {dialect!r}")


class AggregateStore:
    """Reads and writes ``daily_stats`` rows keyed by (site, date)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def increment_pageviews(self, site_id: int, day: date) -> None:
        """Insert the row with pageviews=1, or add one to the existing row.

        Single round trip; the database serializes concurrent increments.
        """
        insert = dialect_insert(self.db)
        stmt = insert(DailyStats).values(site_id=site_id, date=day, pageviews=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=_CONFLICT_KEY,
            set_={"pageviews": DailyStats.pageviews + 1, "updated_at": func.now()},
        )
        await self.db.execute(stmt)

    async def refresh_unique_visitors(self, site_id: int, day: date) -> None:
        """Recompute unique_visitors as the distinct session count for the day."""
        start, end = day_bounds(day)
        distinct_sessions = (
            select(func.count(distinct(Event.session_id)))
            .where(
                Event.site_id == site_id,
                Event.timestamp >= start,
                Event.timestamp < end,
            )
            .scalar_subquery()
        )
        await self.db.execute(
            update(DailyStats)
            .where(DailyStats.site_id == site_id, DailyStats.date == day)
            .values(unique_visitors=distinct_sessions, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )

    async def refresh_revenue(self, site_id: int, day: date) -> None:
        """Re-derive total_revenue as SUM(amount) over every source for the day.

        Creates the row when the day has revenue but no traffic yet.
        """
        revenue_sum = (
            select(func.coalesce(func.sum(RevenueEntry.amount), 0))
            .where(RevenueEntry.site_id == site_id, RevenueEntry.date == day)
            .scalar_subquery()
        )
        insert = dialect_insert(self.db)
        stmt = insert(DailyStats).values(site_id=site_id, date=day, total_revenue=revenue_sum)
        stmt = stmt.on_conflict_do_update(
            index_elements=_CONFLICT_KEY,
            set_={"total_revenue": stmt.excluded.total_revenue, "updated_at": func.now()},
        )
        await self.db.execute(stmt)

    async def finalize_day(self, day: date) -> int:
        """Back-fill sessions, avg_session_duration and bounce_rate for ``day``.

        Every site with at least one event that day gets a row. Returns the
        number of rows written.
        """
        start, end = day_bounds(day)
        in_day = (Event.timestamp >= start, Event.timestamp < end)

        session_rows = await self.db.execute(
            select(Event.site_id, func.count(distinct(Event.session_id)))
            .where(*in_day)
            .group_by(Event.site_id)
        )
        sessions = {site_id: count for site_id, count in session_rows.all()}
        if not sessions:
            logger.info("No events on %s, nothing to finalize", day)
            return 0

        durations = await self._average_durations(in_day)

        views_per_session = (
            select(Event.site_id, Event.session_id, func.count().label("views"))
            .where(*in_day, Event.event_type == PAGEVIEW)
            .group_by(Event.site_id, Event.session_id)
            .subquery()
        )
        bounce_rows = await self.db.execute(
            select(
                views_per_session.c.site_id,
                func.count(),
                func.sum(case((views_per_session.c.views == 1, 1), else_=0)),
            ).group_by(views_per_session.c.site_id)
        )
        bounces = {
            site_id: (viewed, bounced or 0) for site_id, viewed, bounced in bounce_rows.all()
        }

        insert = dialect_insert(self.db)
        for site_id, session_count in sessions.items():
            avg_duration = durations.get(site_id)
            viewed, bounced = bounces.get(site_id, (0, 0))
            bounce_rate = (
                (Decimal(bounced) / Decimal(viewed) * 100).quantize(Decimal("0.01"))
                if viewed
                else Decimal("0")
            )
            stmt = insert(DailyStats).values(
                site_id=site_id,
                date=day,
                sessions=session_count,
                avg_session_duration=round(avg_duration) if avg_duration is not None else 0,
                bounce_rate=bounce_rate,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=_CONFLICT_KEY,
                set_={
                    "sessions": stmt.excluded.sessions,
                    "avg_session_duration": stmt.excluded.avg_session_duration,
                    "bounce_rate": stmt.excluded.bounce_rate,
                    "updated_at": func.now(),
                },
            )
            await self.db.execute(stmt)

        logger.info("Finalized daily stats for %d site(s) on %s", len(sessions), day)
        return len(sessions)

    async def _average_durations(self, in_day: tuple) -> dict[int, float]:
        """Mean session_end duration per site, ignoring unusable values.

        Older rows may hold durations the database JSON functions cannot
        parse, so values are filtered here instead of in SQL.
        """
        result = await self.db.execute(
            select(Event.site_id, Event.attributes).where(*in_day, Event.event_type == SESSION_END)
        )
        per_site: dict[int, list[float]] = defaultdict(list)
        skipped = 0
        for site_id, attributes in result.all():
            duration = (attributes or {}).get("duration")
            if duration is None:
                continue
            if not is_valid_duration(duration):
                skipped += 1
                continue
            per_site[site_id].append(float(duration))
        if skipped:
            logger.warning("Ignored %d out-of-range session durations", skipped)
        return {site_id: sum(values) / len(values) for site_id, values in per_site.items()}

    async def get(self, site_id: int, day: date) -> DailyStats | None:
        result = await self.db.execute(
            select(DailyStats).where(DailyStats.site_id == site_id, DailyStats.date == day)
        )
        return result.scalar_one_or_none()

    async def get_metric(
        self, site_id: int, day: date, column: InstrumentedAttribute[Any]
    ) -> Decimal:
        """Value of one daily_stats column; a missing row counts as zero."""
        value = await self.db.scalar(
            select(column).where(DailyStats.site_id == site_id, DailyStats.date == day)
        )
        return to_decimal(value)

    async def get_range(self, site_id: int, start: date, end: date) -> list[DailyStats]:
        """Rows for ``site_id`` with start <= date <= end, oldest first."""
        result = await self.db.execute(
            select(DailyStats)
            .where(
                DailyStats.site_id == site_id,
                DailyStats.date >= start,
                DailyStats.date <= end,
            )
            .order_by(DailyStats.date)
        )
        return list(result.scalars().all())
