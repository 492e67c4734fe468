import datetime as dt
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitepulse.db.base import Base
from sitepulse.models.base import TimestampMixin


class DailyStats(Base, TimestampMixin):
    """Per-site-per-day rollup read by the dashboard and the rule evaluator.

    ``pageviews`` is incremented atomically on ingest. ``unique_visitors`` and
    ``total_revenue`` are re-derived from raw rows after every write, and
    ``sessions`` / ``avg_session_duration`` / ``bounce_rate`` are back-filled
    by the nightly finalization.
    """

    __tablename__ = "daily_stats"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    site_id: Mapped[int] = mapped_column(
        ForeignKey("sites.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    pageviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    unique_visitors: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    # milliseconds, as reported by the tracker's session_end payload
    avg_session_duration: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    bounce_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    total_revenue: Mapped[Decimal] = mapped_column(
        Numeric(14, 4), nullable=False, default=Decimal("0"), server_default="0"
    )

    # Relationships
    site: Mapped["Site"] = relationship("Site", back_populates="daily_stats")  # noqa: F821

    __table_args__ = (UniqueConstraint("site_id", "date", name="uq_daily_stats_site_date"),)
