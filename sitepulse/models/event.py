from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from sitepulse.db.base import Base

PAGEVIEW = "pageview"
SESSION_END = "session_end"

# Longest session_end duration (ms) accepted or averaged
MAX_SESSION_DURATION_MS = 24 * 60 * 60 * 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(Base):
    """Raw tracker event. Append-only, high volume."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    site_id: Mapped[int] = mapped_column(
        ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    referrer: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    attributes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True, default=_utcnow
    )

    # Relationships
    site: Mapped["Site"] = relationship("Site", back_populates="events")  # noqa: F821

    __table_args__ = (Index("ix_events_site_timestamp", "site_id", "timestamp"),)
