"""Tests for hourly threshold-rule evaluation."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.models.alert import Alert, AlertRule
from sitepulse.models.daily_stats import DailyStats
from sitepulse.services.aggregate_store import AggregateStore
from sitepulse.services.rule_evaluator import RuleEvaluator, percent_change

TODAY = date(2026, 5, 20)
YESTERDAY = TODAY - timedelta(days=1)


async def _stats(db: AsyncSession, site_id: int, day: date, **values) -> None:
    db.add(DailyStats(site_id=site_id, date=day, **values))
    await db.commit()


async def _rule(
    db: AsyncSession,
    site_id: int,
    rule_type: str = "revenue_drop",
    threshold: str = "20",
    comparison: str = "percent_decrease",
) -> AlertRule:
    rule = AlertRule(
        site_id=site_id,
        rule_type=rule_type,
        threshold=Decimal(threshold),
        comparison=comparison,
    )
    db.add(rule)
    await db.commit()
    return rule


async def _alerts(db: AsyncSession) -> list[Alert]:
    return list((await db.execute(select(Alert).order_by(Alert.id))).scalars().all())


def test_percent_change_is_exact():
    assert percent_change(Decimal("70"), Decimal("100")) == Decimal("-30")
    assert percent_change(Decimal("0.7"), Decimal("1")) == Decimal("-30")


@pytest.mark.asyncio
async def test_revenue_drop_fires(db_session: AsyncSession, site):
    await _stats(db_session, site.id, YESTERDAY, total_revenue=Decimal("100"))
    await _stats(db_session, site.id, TODAY, total_revenue=Decimal("70"))
    await _rule(db_session, site.id)

    fired = await RuleEvaluator(db_session).run_pass(TODAY)

    assert fired == 1
    (alert,) = await _alerts(db_session)
    assert alert.alert_type == "revenue_drop"
    assert alert.severity == "warning"
    assert alert.message == "Revenue dropped 30.0% for Recipe Hub"
    assert alert.is_resolved is False


@pytest.mark.asyncio
async def test_drop_equal_to_threshold_fires(db_session: AsyncSession, site):
    await _stats(db_session, site.id, YESTERDAY, total_revenue=Decimal("100"))
    await _stats(db_session, site.id, TODAY, total_revenue=Decimal("70"))
    await _rule(db_session, site.id, threshold="30")

    assert await RuleEvaluator(db_session).run_pass(TODAY) == 1


@pytest.mark.asyncio
async def test_small_drop_does_not_fire(db_session: AsyncSession, site):
    await _stats(db_session, site.id, YESTERDAY, total_revenue=Decimal("100"))
    await _stats(db_session, site.id, TODAY, total_revenue=Decimal("90"))
    await _rule(db_session, site.id)

    assert await RuleEvaluator(db_session).run_pass(TODAY) == 0
    assert await _alerts(db_session) == []


@pytest.mark.asyncio
async def test_traffic_drop_uses_pageviews(db_session: AsyncSession, site):
    await _stats(db_session, site.id, YESTERDAY, pageviews=200, total_revenue=Decimal("5"))
    await _stats(db_session, site.id, TODAY, pageviews=50, total_revenue=Decimal("5"))
    await _rule(db_session, site.id, rule_type="traffic_drop", threshold="50")

    assert await RuleEvaluator(db_session).run_pass(TODAY) == 1
    (alert,) = await _alerts(db_session)
    assert alert.message == "Traffic dropped 75.0% for Recipe Hub"


@pytest.mark.asyncio
async def test_zero_yesterday_never_fires(db_session: AsyncSession, site):
    await _stats(db_session, site.id, YESTERDAY, total_revenue=Decimal("0"))
    await _stats(db_session, site.id, TODAY, total_revenue=Decimal("0"))
    await _rule(db_session, site.id, threshold="0")

    assert await RuleEvaluator(db_session).run_pass(TODAY) == 0


@pytest.mark.asyncio
async def test_missing_rows_count_as_zero(db_session: AsyncSession, site):
    await _rule(db_session, site.id)
    assert await RuleEvaluator(db_session).run_pass(TODAY) == 0


@pytest.mark.asyncio
async def test_missing_today_row_is_full_drop(db_session: AsyncSession, site):
    await _stats(db_session, site.id, YESTERDAY, total_revenue=Decimal("40"))
    await _rule(db_session, site.id)

    assert await RuleEvaluator(db_session).run_pass(TODAY) == 1
    (alert,) = await _alerts(db_session)
    assert "100.0%" in alert.message


@pytest.mark.asyncio
async def test_repeat_firing_is_deduplicated(db_session: AsyncSession, site):
    await _stats(db_session, site.id, YESTERDAY, total_revenue=Decimal("100"))
    await _stats(db_session, site.id, TODAY, total_revenue=Decimal("70"))
    await _rule(db_session, site.id)
    evaluator = RuleEvaluator(db_session)

    assert await evaluator.run_pass(TODAY) == 1
    assert await evaluator.run_pass(TODAY) == 0
    assert len(await _alerts(db_session)) == 1


@pytest.mark.asyncio
async def test_inactive_rules_ignored(db_session: AsyncSession, site):
    await _stats(db_session, site.id, YESTERDAY, total_revenue=Decimal("100"))
    rule = await _rule(db_session, site.id)
    rule.is_active = False
    await db_session.commit()

    assert await RuleEvaluator(db_session).run_pass(TODAY) == 0


@pytest.mark.asyncio
async def test_unsupported_rule_skipped(db_session: AsyncSession, site, caplog):
    await _stats(db_session, site.id, YESTERDAY, total_revenue=Decimal("100"))
    await _rule(db_session, site.id, comparison="less_than", threshold="500")
    await _rule(db_session, site.id, rule_type="bounce_spike")

    with caplog.at_level("WARNING"):
        assert await RuleEvaluator(db_session).run_pass(TODAY) == 0
    assert "unsupported" in caplog.text


@pytest.mark.asyncio
async def test_failing_rule_does_not_stop_others(
    db_session: AsyncSession, site, other_site, monkeypatch, caplog
):
    bad_site_id, good_site_id = site.id, other_site.id
    for site_id in (bad_site_id, good_site_id):
        await _stats(db_session, site_id, YESTERDAY, total_revenue=Decimal("100"))
        await _stats(db_session, site_id, TODAY, total_revenue=Decimal("10"))
        await _rule(db_session, site_id)

    original = AggregateStore.get_metric

    async def flaky(self, site_id, day, column):
        if site_id == bad_site_id:
            raise RuntimeError("boom")
        return await original(self, site_id, day, column)

    monkeypatch.setattr(AggregateStore, "get_metric", flaky)

    with caplog.at_level("ERROR"):
        fired = await RuleEvaluator(db_session).run_pass(TODAY)

    assert fired == 1
    (alert,) = await _alerts(db_session)
    assert alert.site_id == good_site_id
    assert "Failed to evaluate alert rule" in caplog.text


@pytest.mark.asyncio
async def test_load_failure_propagates(db_session: AsyncSession, monkeypatch):
    async def broken(self):
        raise RuntimeError("database gone")

    monkeypatch.setattr(RuleEvaluator, "load_rules", broken)

    with pytest.raises(RuntimeError):
        await RuleEvaluator(db_session).run_pass(TODAY)
