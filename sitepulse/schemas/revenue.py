import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class RevenueCreate(BaseModel):
    """Manual revenue submission. Same (site, source, date) replaces the prior entry."""

    site_id: int
    source: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=4)
    currency: str = Field("USD", min_length=3, max_length=3)
    impressions: int = Field(0, ge=0)
    clicks: int = Field(0, ge=0)
    date: dt.date
    metadata: dict[str, Any] = Field(default_factory=dict)


class RevenueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    site_id: int
    source: str
    amount: Decimal
    currency: str
    impressions: int
    clicks: int
    date: dt.date
    metadata: dict[str, Any] = Field(validation_alias=AliasChoices("entry_metadata", "metadata"))
    created_at: datetime
    updated_at: datetime


class DailyRevenue(BaseModel):
    date: dt.date
    total_revenue: Decimal
    total_impressions: int
    total_clicks: int


class SourceRevenue(BaseModel):
    source: str
    total_revenue: Decimal
    total_impressions: int
    total_clicks: int


class SiteRevenue(BaseModel):
    id: int
    name: str
    url: str
    total_revenue: Decimal


class RevenueSummary(BaseModel):
    total_revenue: Decimal
    total_impressions: int
    total_clicks: int
    ctr: float  # clicks / impressions * 100
    rpm: float  # revenue per 1000 impressions


class RevenueOverview(BaseModel):
    daily: list[DailyRevenue]
    by_source: list[SourceRevenue]
    top_sites: list[SiteRevenue]
    summary: RevenueSummary


class SiteRevenueLine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    source: str
    amount: Decimal
    impressions: int
    clicks: int


class SiteRevenueSummary(BaseModel):
    total_revenue: Decimal
    total_impressions: int
    total_clicks: int
    avg_daily_revenue: Decimal


class SiteRevenueResponse(BaseModel):
    daily: list[SiteRevenueLine]
    summary: SiteRevenueSummary


class RevenueComparison(BaseModel):
    current: Decimal
    previous: Decimal
    change: float  # percent
    trend: str  # "up" or "down"
