from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.config import settings
from sitepulse.core.limiter import limiter
from sitepulse.db.session import get_db
from sitepulse.schemas.alert import (
    AlertCreate,
    AlertResponse,
    AlertRuleCreate,
    AlertRuleResponse,
    AlertRuleWithSite,
    AlertSummary,
    AlertWithSite,
)
from sitepulse.schemas.common import MessageResponse
from sitepulse.services.alert_service import AlertRuleService, AlertService

router = APIRouter()


@router.get("/", response_model=list[AlertWithSite])
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def list_alerts(
    request: Request,
    resolved: bool = False,
    site_id: int | None = None,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Alerts newest first; unresolved unless ``resolved=true``."""
    return await AlertService(db).list_alerts(resolved=resolved, site_id=site_id, limit=limit)


@router.post("/", response_model=AlertResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def create_alert(request: Request, data: AlertCreate, db: AsyncSession = Depends(get_db)):
    return await AlertService(db).create(data)


@router.get("/summary", response_model=AlertSummary)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def alert_summary(request: Request, db: AsyncSession = Depends(get_db)):
    return await AlertService(db).summary()


@router.put("/{alert_id}/resolve", response_model=AlertResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def resolve_alert(request: Request, alert_id: int, db: AsyncSession = Depends(get_db)):
    return await AlertService(db).resolve(alert_id)


@router.get("/rules", response_model=list[AlertRuleWithSite])
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def list_rules(request: Request, db: AsyncSession = Depends(get_db)):
    return await AlertRuleService(db).list_active()


@router.post("/rules", response_model=AlertRuleResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def create_rule(request: Request, data: AlertRuleCreate, db: AsyncSession = Depends(get_db)):
    """Create a threshold rule (``revenue_drop`` or ``traffic_drop`` with ``percent_decrease``)."""
    return await AlertRuleService(db).create(data)


@router.delete("/rules/{rule_id}", response_model=MessageResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def delete_rule(request: Request, rule_id: int, db: AsyncSession = Depends(get_db)):
    await AlertRuleService(db).delete(rule_id)
    return {"message": "Alert rule deleted successfully"}
