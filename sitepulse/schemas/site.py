import datetime as dt
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class SiteCreate(BaseModel):
    """Schema for registering a new site."""

    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=500)
    category: str = Field("other", min_length=1, max_length=100)


class SiteUpdate(BaseModel):
    """Schema for updating a site. The tracking identifier cannot be changed."""

    name: str | None = Field(None, min_length=1, max_length=255)
    url: str | None = Field(None, min_length=1, max_length=500)
    category: str | None = Field(None, min_length=1, max_length=100)
    is_active: bool | None = None


class SiteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    url: str
    category: str
    tracking_id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class SiteListItem(SiteResponse):
    """Site row with today's headline numbers."""

    today_pageviews: int = 0
    today_revenue: Decimal = Decimal("0")


class TrackingCodeResponse(BaseModel):
    tracking_id: str
    tracking_code: str
    instructions: str


class DailyStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    pageviews: int
    unique_visitors: int
    sessions: int
    avg_session_duration: int
    bounce_rate: Decimal
    total_revenue: Decimal


class StatsTotals(BaseModel):
    total_pageviews: int
    total_visitors: int
    total_sessions: int
    avg_duration: float
    avg_bounce_rate: float
    total_revenue: Decimal


class SiteStatsResponse(BaseModel):
    daily: list[DailyStatsResponse]
    totals: StatsTotals
