from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitepulse.db.base import Base
from sitepulse.models.base import TimestampMixin

if TYPE_CHECKING:
    from sitepulse.models.alert import Alert, AlertRule
    from sitepulse.models.daily_stats import DailyStats
    from sitepulse.models.event import Event
    from sitepulse.models.revenue import RevenueEntry


class Site(Base, TimestampMixin):
    """A registered website. ``tracking_id`` is public and never changes."""

    __tablename__ = "sites"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="other")
    tracking_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    # Relationships
    events: Mapped[list[Event]] = relationship(
        "Event", back_populates="site", cascade="all, delete-orphan", passive_deletes=True
    )
    daily_stats: Mapped[list[DailyStats]] = relationship(
        "DailyStats", back_populates="site", cascade="all, delete-orphan", passive_deletes=True
    )
    revenue_entries: Mapped[list[RevenueEntry]] = relationship(
        "RevenueEntry", back_populates="site", cascade="all, delete-orphan", passive_deletes=True
    )
    alert_rules: Mapped[list[AlertRule]] = relationship(
        "AlertRule", back_populates="site", cascade="all, delete-orphan", passive_deletes=True
    )
    alerts: Mapped[list[Alert]] = relationship(
        "Alert", back_populates="site", cascade="all, delete-orphan", passive_deletes=True
    )

    @staticmethod
    def generate_tracking_id() -> str:
        """Generate a new public tracking identifier."""
        return f"wm_{uuid.uuid4().hex[:12]}"
