from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AlertCreate(BaseModel):
    """Manually raised alert."""

    site_id: int
    alert_type: str = Field(..., min_length=1, max_length=50)
    severity: Literal["info", "warning", "critical"] = "warning"
    message: str = Field(..., min_length=1)


class AlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    site_id: int
    alert_type: str
    severity: str
    message: str
    is_resolved: bool
    resolved_at: datetime | None
    created_at: datetime


class AlertWithSite(AlertResponse):
    site_name: str
    site_url: str


class AlertTypeCount(BaseModel):
    alert_type: str
    severity: str
    count: int


class AlertSummary(BaseModel):
    by_type: list[AlertTypeCount]
    total_unresolved: int


class AlertRuleCreate(BaseModel):
    """New threshold rule. Supported combinations are checked by the service."""

    site_id: int
    rule_type: str = Field(..., min_length=1, max_length=50)
    threshold: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    comparison: str = Field(..., min_length=1, max_length=20)


class AlertRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    site_id: int
    rule_type: str
    threshold: Decimal
    comparison: str
    is_active: bool
    created_at: datetime


class AlertRuleWithSite(AlertRuleResponse):
    site_name: str
