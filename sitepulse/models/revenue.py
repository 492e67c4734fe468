import datetime as dt
from decimal import Decimal
from typing import Any

from sqlalchemy import Date, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from sitepulse.db.base import Base
from sitepulse.models.base import TimestampMixin


class RevenueEntry(Base, TimestampMixin):
    """One revenue line per (site, source, date). Resubmission replaces it."""

    __tablename__ = "revenue"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    site_id: Mapped[int] = mapped_column(
        ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    impressions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    entry_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Relationships
    site: Mapped["Site"] = relationship("Site", back_populates="revenue_entries")  # noqa: F821

    __table_args__ = (
        UniqueConstraint("site_id", "source", "date", name="uq_revenue_site_source_date"),
    )
