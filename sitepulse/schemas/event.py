from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TrackingEventIn(BaseModel):
    """Beacon payload posted by the tracker script (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    tracking_id: str = Field(..., alias="siteId", min_length=1, max_length=50)
    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=100)
    event_type: str = Field(..., alias="eventType", min_length=1, max_length=50)
    url: str | None = Field(None, max_length=2048)
    referrer: str | None = Field(None, max_length=2048)
    data: dict[str, Any] | None = None


class TrackingEventResponse(BaseModel):
    success: bool = True


class EventResponse(BaseModel):
    """Schema for a stored raw event."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    site_id: int
    session_id: str
    event_type: str
    url: str | None
    referrer: str | None
    attributes: dict[str, Any]
    timestamp: datetime


class RealtimeStats(BaseModel):
    """Activity over the trailing window (30 minutes by default)."""

    pageviews: int
    active_users: int
    window_minutes: int
