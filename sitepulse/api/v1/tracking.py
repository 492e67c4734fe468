import logging

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.api.deps import require_admin
from sitepulse.core.config import settings
from sitepulse.core.exceptions import ValidationError
from sitepulse.core.limiter import limiter
from sitepulse.db.session import get_db
from sitepulse.schemas.event import (
    EventResponse,
    RealtimeStats,
    TrackingEventIn,
    TrackingEventResponse,
)
from sitepulse.services.event_service import EventService
from sitepulse.services.site_service import SiteService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/event", response_model=TrackingEventResponse)
@limiter.limit(f"{settings.TRACKING_RATE_LIMIT_PER_MINUTE}/minute")
async def track_event(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Receive one tracker beacon. Public; identified by the site's tracking id.

    ``navigator.sendBeacon`` posts ``text/plain``, so the raw body is parsed as
    JSON regardless of the declared content type.
    """
    try:
        event_in = TrackingEventIn.model_validate_json(await request.body())
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "body" for err in exc.errors())
        raise ValidationError(f"Invalid tracking payload: {fields}") from None

    service = EventService(db)
    await service.record_event(
        tracking_id=event_in.tracking_id,
        session_id=event_in.session_id,
        event_type=event_in.event_type,
        url=event_in.url,
        referrer=event_in.referrer,
        attributes=event_in.data,
        user_agent=request.headers.get("user-agent"),
    )
    return TrackingEventResponse()


@router.get(
    "/events/{site_id}",
    response_model=list[EventResponse],
    dependencies=[Depends(require_admin)],
)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def list_events(
    request: Request,
    site_id: int,
    event_type: str | None = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Most recent raw events for a site."""
    await SiteService(db).get(site_id)
    return await EventService(db).list_events(site_id, event_type, limit, offset)


@router.get(
    "/realtime/{site_id}",
    response_model=RealtimeStats,
    dependencies=[Depends(require_admin)],
)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def realtime(
    request: Request,
    site_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Pageviews and active sessions over the last 30 minutes."""
    await SiteService(db).get(site_id)
    return await EventService(db).get_realtime(site_id)
