import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.exceptions import TransientStoreError, ValidationError
from sitepulse.db.session import STORE_UNAVAILABLE_ERRORS
from sitepulse.models.event import MAX_SESSION_DURATION_MS, PAGEVIEW, SESSION_END, Event
from sitepulse.schemas.event import RealtimeStats
from sitepulse.services.aggregate_store import AggregateStore, is_valid_duration
from sitepulse.services.site_service import SiteService

logger = logging.getLogger(__name__)


def _has_non_finite(value: Any) -> bool:
    if isinstance(value, float):
        return not math.isfinite(value)
    if isinstance(value, dict):
        return any(_has_non_finite(v) for v in value.values())
    if isinstance(value, list):
        return any(_has_non_finite(v) for v in value)
    return False


def _validate_attributes(event_type: str, attributes: dict[str, Any]) -> None:
    # NaN and Infinity cannot be stored as JSON
    if _has_non_finite(attributes):
        raise ValidationError("data must not contain NaN or Infinity")
    if event_type != SESSION_END or "duration" not in attributes:
        return
    if not is_valid_duration(attributes["duration"]):
        raise ValidationError(
            f"session_end duration must be a number between 0 and {MAX_SESSION_DURATION_MS} ms"
        )


class EventService:
    """Service for event ingestion and querying."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_event(
        self,
        tracking_id: str,
        session_id: str,
        event_type: str,
        url: str | None = None,
        referrer: str | None = None,
        attributes: dict[str, Any] | None = None,
        user_agent: str | None = None,
    ) -> Event:
        """Validate and append one tracker event, then update today's aggregate.

        Raises:
            ValidationError: A required field is missing or the payload is malformed.
            NotFoundError: The tracking identifier is unknown or the site is inactive.
            TransientStoreError: The database is unreachable. Never retried here.
        """
        if not tracking_id or not session_id or not event_type:
            raise ValidationError("siteId, sessionId and eventType are required")
        attributes = attributes or {}
        _validate_attributes(event_type, attributes)

        try:
            site = await SiteService(self.db).get_active_by_tracking_id(tracking_id)

            now = datetime.now(timezone.utc)
            event = Event(
                site_id=site.id,
                session_id=session_id,
                event_type=event_type,
                url=url,
                referrer=referrer,
                user_agent=user_agent,
                attributes=attributes,
                timestamp=now,
            )
            self.db.add(event)
            await self.db.flush()

            if event_type == PAGEVIEW:
                store = AggregateStore(self.db)
                await store.increment_pageviews(site.id, now.date())
                await self.db.commit()
                # Derived field; may trail pageviews briefly
                await store.refresh_unique_visitors(site.id, now.date())

            await self.db.commit()
        except STORE_UNAVAILABLE_ERRORS as exc:
            await self.db.rollback()
            logger.warning("Event store unavailable, dropping event: %s", exc)
            raise TransientStoreError() from None

        return event

    async def list_events(
        self,
        site_id: int,
        event_type: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Event]:
        """Most recent raw events for a site."""
        stmt = select(Event).where(Event.site_id == site_id)
        if event_type:
            stmt = stmt.where(Event.event_type == event_type)
        stmt = stmt.order_by(Event.timestamp.desc(), Event.id.desc()).limit(limit).offset(offset)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_realtime(self, site_id: int, window_minutes: int = 30) -> RealtimeStats:
        """Pageviews and distinct sessions over the trailing window."""
        since = datetime.now(timezone.utc) - timedelta(minutes=window_minutes)
        pageviews = await self.db.scalar(
            select(func.count()).where(
                Event.site_id == site_id,
                Event.timestamp >= since,
                Event.event_type == PAGEVIEW,
            )
        )
        active_users = await self.db.scalar(
            select(func.count(distinct(Event.session_id))).where(
                Event.site_id == site_id,
                Event.timestamp >= since,
            )
        )
        return RealtimeStats(
            pageviews=pageviews or 0,
            active_users=active_users or 0,
            window_minutes=window_minutes,
        )
