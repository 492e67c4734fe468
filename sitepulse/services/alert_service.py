import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.config import settings
from sitepulse.core.exceptions import ConflictError, NotFoundError, ValidationError
from sitepulse.models.alert import (
    PERCENT_DECREASE,
    REVENUE_DROP,
    SEVERITY_WARNING,
    TRAFFIC_DROP,
    Alert,
    AlertRule,
)
from sitepulse.models.site import Site
from sitepulse.schemas.alert import (
    AlertCreate,
    AlertRuleCreate,
    AlertRuleWithSite,
    AlertSummary,
    AlertTypeCount,
    AlertWithSite,
)
from sitepulse.services.site_service import SiteService

logger = logging.getLogger(__name__)

# rule_type -> comparisons the evaluator knows how to compute
SUPPORTED_RULES: dict[str, frozenset[str]] = {
    REVENUE_DROP: frozenset({PERCENT_DECREASE}),
    TRAFFIC_DROP: frozenset({PERCENT_DECREASE}),
}


class AlertDeduplicator:
    """Suppresses repeat alerts of one type for one site inside a time window.

    A new alert is written only when no unresolved alert with the same
    (site_id, alert_type) was created within the last ``window_hours``.
    Resolving an alert re-arms its type immediately.
    """

    def __init__(self, db: AsyncSession, window_hours: int | None = None):
        self.db = db
        self.window = timedelta(
            hours=window_hours if window_hours is not None else settings.ALERT_DEDUP_WINDOW_HOURS
        )

    async def has_recent(self, site_id: int, alert_type: str, now: datetime) -> bool:
        existing = await self.db.scalar(
            select(Alert.id)
            .where(
                Alert.site_id == site_id,
                Alert.alert_type == alert_type,
                Alert.is_resolved.is_(False),
                Alert.created_at > now - self.window,
            )
            .limit(1)
        )
        return existing is not None

    async def raise_alert(
        self,
        site_id: int,
        alert_type: str,
        message: str,
        severity: str = SEVERITY_WARNING,
        now: datetime | None = None,
    ) -> Alert | None:
        """Insert and commit an alert, or return None when one is already open."""
        now = now or datetime.now(timezone.utc)
        if await self.has_recent(site_id, alert_type, now):
            logger.debug("Suppressed duplicate %s alert for site %s", alert_type, site_id)
            return None

        alert = Alert(
            site_id=site_id,
            alert_type=alert_type,
            severity=severity,
            message=message,
            created_at=now,
        )
        self.db.add(alert)
        await self.db.commit()
        logger.info("Raised %s alert for site %s: %s", alert_type, site_id, message)
        return alert


class AlertService:
    """Service for listing, creating and resolving alerts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_alerts(
        self,
        resolved: bool = False,
        site_id: int | None = None,
        limit: int = 50,
    ) -> list[AlertWithSite]:
        stmt = (
            select(Alert, Site.name, Site.url)
            .join(Site, Site.id == Alert.site_id)
            .where(Alert.is_resolved.is_(resolved))
        )
        if site_id is not None:
            stmt = stmt.where(Alert.site_id == site_id)
        stmt = stmt.order_by(Alert.created_at.desc(), Alert.id.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return [
            AlertWithSite.model_validate(
                {**_alert_fields(alert), "site_name": name, "site_url": url}
            )
            for alert, name, url in result.all()
        ]

    async def create(self, data: AlertCreate) -> Alert:
        """Create a manual alert through the same dedup window as rule alerts.

        Raises:
            NotFoundError: The site does not exist.
            ConflictError: An unresolved alert of this type is already open for the site.
        """
        await SiteService(self.db).get(data.site_id)
        alert = await AlertDeduplicator(self.db).raise_alert(
            data.site_id, data.alert_type, data.message, severity=data.severity
        )
        if alert is None:
            raise ConflictError(
                f"An unresolved {data.alert_type} alert is already open for this site"
            )
        await self.db.refresh(alert)
        return alert

    async def resolve(self, alert_id: int) -> Alert:
        """Mark an alert resolved. Resolving twice keeps the first resolved_at."""
        await self.db.execute(
            update(Alert)
            .where(Alert.id == alert_id, Alert.is_resolved.is_(False))
            .values(is_resolved=True, resolved_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(
            select(Alert).where(Alert.id == alert_id).execution_options(populate_existing=True)
        )
        alert = result.scalar_one_or_none()
        if not alert:
            raise NotFoundError("Alert not found")
        return alert

    async def summary(self) -> AlertSummary:
        """Unresolved alert counts grouped by type and severity."""
        result = await self.db.execute(
            select(Alert.alert_type, Alert.severity, func.count())
            .where(Alert.is_resolved.is_(False))
            .group_by(Alert.alert_type, Alert.severity)
            .order_by(func.count().desc(), Alert.alert_type)
        )
        by_type = [
            AlertTypeCount(alert_type=alert_type, severity=severity, count=count)
            for alert_type, severity, count in result.all()
        ]
        return AlertSummary(by_type=by_type, total_unresolved=sum(c.count for c in by_type))


class AlertRuleService:
    """Service for managing threshold rules."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active(self) -> list[AlertRuleWithSite]:
        result = await self.db.execute(
            select(AlertRule, Site.name)
            .join(Site, Site.id == AlertRule.site_id)
            .where(AlertRule.is_active.is_(True))
            .order_by(AlertRule.created_at.desc(), AlertRule.id.desc())
        )
        return [
            AlertRuleWithSite(
                id=rule.id,
                site_id=rule.site_id,
                rule_type=rule.rule_type,
                threshold=rule.threshold,
                comparison=rule.comparison,
                is_active=rule.is_active,
                created_at=rule.created_at,
                site_name=name,
            )
            for rule, name in result.all()
        ]

    async def create(self, data: AlertRuleCreate) -> AlertRule:
        """Create a rule. Only combinations the evaluator can compute are accepted."""
        comparisons = SUPPORTED_RULES.get(data.rule_type)
        if comparisons is None:
            raise ValidationError(f"Unsupported rule_type: {data.rule_type}")
        if data.comparison not in comparisons:
            raise ValidationError(
                f"Unsupported comparison {data.comparison!r} for rule_type {data.rule_type}"
            )
        await SiteService(self.db).get(data.site_id)

        rule = AlertRule(
            site_id=data.site_id,
            rule_type=data.rule_type,
            threshold=data.threshold,
            comparison=data.comparison,
        )
        self.db.add(rule)
        await self.db.flush()
        await self.db.refresh(rule)
        return rule

    async def delete(self, rule_id: int) -> None:
        result = await self.db.execute(select(AlertRule).where(AlertRule.id == rule_id))
        rule = result.scalar_one_or_none()
        if not rule:
            raise NotFoundError("Alert rule not found")
        await self.db.delete(rule)
        await self.db.flush()


def _alert_fields(alert: Alert) -> dict:
    return {
        "id": alert.id,
        "site_id": alert.site_id,
        "alert_type": alert.alert_type,
        "severity": alert.severity,
        "message": alert.message,
        "is_resolved": alert.is_resolved,
        "resolved_at": alert.resolved_at,
        "created_at": alert.created_at,
    }
