"""Hourly threshold-rule evaluation.

Each active rule compares today's value of one ``daily_stats`` metric with
yesterday's and fires a deduplicated alert when the drop crosses the rule's
threshold. Rules are evaluated independently: an error in one is logged and
the pass continues with the next.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from sitepulse.models.alert import PERCENT_DECREASE, REVENUE_DROP, TRAFFIC_DROP, AlertRule
from sitepulse.models.daily_stats import DailyStats
from sitepulse.models.site import Site
from sitepulse.services.aggregate_store import AggregateStore, utc_today
from sitepulse.services.alert_service import AlertDeduplicator

logger = logging.getLogger(__name__)

METRICS: dict[str, tuple[InstrumentedAttribute[Any], str]] = {
    REVENUE_DROP: (DailyStats.total_revenue, "Revenue"),
    TRAFFIC_DROP: (DailyStats.pageviews, "Traffic"),
}


@dataclass(frozen=True)
class RuleSnapshot:
    """Plain copy of an active rule, safe to use after a rollback."""

    id: int
    site_id: int
    site_name: str
    rule_type: str
    threshold: Decimal
    comparison: str


def percent_change(today: Decimal, yesterday: Decimal) -> Decimal:
    return (today - yesterday) / yesterday * 100


class RuleEvaluator:
    def __init__(self, db: AsyncSession, deduplicator: AlertDeduplicator | None = None):
        self.db = db
        self.store = AggregateStore(db)
        self.deduplicator = deduplicator or AlertDeduplicator(db)

    async def load_rules(self) -> list[RuleSnapshot]:
        result = await self.db.execute(
            select(AlertRule, Site.name)
            .join(Site, Site.id == AlertRule.site_id)
            .where(AlertRule.is_active.is_(True))
            .order_by(AlertRule.id)
        )
        return [
            RuleSnapshot(
                id=rule.id,
                site_id=rule.site_id,
                site_name=name,
                rule_type=rule.rule_type,
                threshold=Decimal(str(rule.threshold)),
                comparison=rule.comparison,
            )
            for rule, name in result.all()
        ]

    async def run_pass(self, today: date | None = None) -> int:
        """Evaluate every active rule once and return the number of alerts written.

        A failure while loading rules propagates to the caller.
        """
        today = today or utc_today()
        rules = await self.load_rules()

        fired = 0
        for rule in rules:
            try:
                if await self.evaluate(rule, today):
                    fired += 1
            except Exception:
                logger.exception("Failed to evaluate alert rule %s", rule.id)
                await self.db.rollback()

        logger.info(
            "Rule evaluation for %s: %d rule(s) checked, %d alert(s) fired",
            today,
            len(rules),
            fired,
        )
        return fired

    async def evaluate(self, rule: RuleSnapshot, today: date) -> bool:
        """Return True when the rule fired and a new alert was written."""
        metric = METRICS.get(rule.rule_type)
        if metric is None or rule.comparison != PERCENT_DECREASE:
            logger.warning(
                "Skipping alert rule %s: unsupported %s/%s",
                rule.id,
                rule.rule_type,
                rule.comparison,
            )
            return False
        column, label = metric

        current = await self.store.get_metric(rule.site_id, today, column)
        previous = await self.store.get_metric(rule.site_id, today - timedelta(days=1), column)
        if previous == 0:
            return False

        change = percent_change(current, previous)
        if change > -rule.threshold:
            return False

        message = f"{label} dropped {abs(change):.1f}% for {rule.site_name}"
        alert = await self.deduplicator.raise_alert(rule.site_id, rule.rule_type, message)
        return alert is not None
