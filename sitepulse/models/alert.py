from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Text, false, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitepulse.db.base import Base
from sitepulse.models.base import TimestampMixin

REVENUE_DROP = "revenue_drop"
TRAFFIC_DROP = "traffic_drop"

PERCENT_DECREASE = "percent_decrease"
PERCENT_INCREASE = "percent_increase"
LESS_THAN = "less_than"
GREATER_THAN = "greater_than"

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertRule(Base, TimestampMixin):
    """Threshold rule evaluated hourly against a site's daily stats."""

    __tablename__ = "alert_rules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    site_id: Mapped[int] = mapped_column(
        ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rule_type: Mapped[str] = mapped_column(String(50), nullable=False)
    threshold: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    comparison: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    # Relationships
    site: Mapped["Site"] = relationship("Site", back_populates="alert_rules")  # noqa: F821


class Alert(Base):
    """Raised by the rule evaluator or created manually; resolved, never deleted."""

    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    site_id: Mapped[int] = mapped_column(
        ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True
    )
    alert_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default=SEVERITY_WARNING)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_resolved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false(), index=True
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    # Relationships
    site: Mapped["Site"] = relationship("Site", back_populates="alerts")  # noqa: F821

    __table_args__ = (
        Index("ix_alerts_dedup", "site_id", "alert_type", "is_resolved", "created_at"),
    )
