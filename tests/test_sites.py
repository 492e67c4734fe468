"""Tests for site management endpoints and admin authentication."""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.config import settings
from sitepulse.models.alert import Alert
from sitepulse.models.daily_stats import DailyStats
from sitepulse.models.event import Event
from sitepulse.models.revenue import RevenueEntry
from sitepulse.services.aggregate_store import utc_today
from sitepulse.services.alert_service import AlertDeduplicator
from sitepulse.services.event_service import EventService
from sitepulse.services.revenue_service import RevenueService


class TestAdminAuth:
    """Tests for the X-API-Key guard."""

    @pytest.mark.asyncio
    async def test_missing_key(self, client: AsyncClient):
        response = await client.get("/api/v1/sites/")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_key(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/sites/", headers={"X-API-Key": "x" * 48}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_admin_api_disabled(self, client: AsyncClient, admin_headers, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_API_KEY", None)
        response = await client.get("/api/v1/sites/", headers=admin_headers)
        assert response.status_code == 403


class TestSiteCrud:
    """Tests for /api/v1/sites."""

    @pytest.mark.asyncio
    async def test_create_site(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/v1/sites/",
            json={"name": "Garden Blog", "url": "https://garden.example.com"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Garden Blog"
        assert data["category"] == "other"
        assert data["is_active"] is True
        assert data["tracking_id"].startswith("wm_")
        assert len(data["tracking_id"]) == 15

    @pytest.mark.asyncio
    async def test_create_site_validation(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/v1/sites/", json={"name": "", "url": "https://x"}, headers=admin_headers
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_tracking_ids_unique(self, client: AsyncClient, admin_headers):
        ids = set()
        for n in range(5):
            response = await client.post(
                "/api/v1/sites/",
                json={"name": f"Site {n}", "url": f"https://{n}.example.com"},
                headers=admin_headers,
            )
            ids.add(response.json()["tracking_id"])
        assert len(ids) == 5

    @pytest.mark.asyncio
    async def test_list_sites_with_today(
        self, client: AsyncClient, admin_headers, db_session: AsyncSession, site, other_site
    ):
        await EventService(db_session).record_event(site.tracking_id, "s1", "pageview")
        await RevenueService(db_session).upsert_revenue(
            site.id, "adsense", Decimal("4.2"), date=utc_today()
        )

        response = await client.get("/api/v1/sites/", headers=admin_headers)
        assert response.status_code == 200
        by_id = {s["id"]: s for s in response.json()}
        assert by_id[site.id]["today_pageviews"] == 1
        assert Decimal(by_id[site.id]["today_revenue"]) == Decimal("4.2")
        assert by_id[other_site.id]["today_pageviews"] == 0

    @pytest.mark.asyncio
    async def test_get_site(self, client: AsyncClient, admin_headers, site):
        response = await client.get(f"/api/v1/sites/{site.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["tracking_id"] == site.tracking_id

    @pytest.mark.asyncio
    async def test_get_unknown_site(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/v1/sites/9999", headers=admin_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_keeps_tracking_id(self, client: AsyncClient, admin_headers, site):
        response = await client.patch(
            f"/api/v1/sites/{site.id}",
            json={"name": "Recipe Hub Pro", "tracking_id": "wm_hijack"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Recipe Hub Pro"
        assert data["tracking_id"] == site.tracking_id

    @pytest.mark.asyncio
    async def test_deactivate_stops_ingestion(self, client: AsyncClient, admin_headers, site):
        response = await client.patch(
            f"/api/v1/sites/{site.id}", json={"is_active": False}, headers=admin_headers
        )
        assert response.json()["is_active"] is False

        response = await client.post(
            "/api/v1/tracking/event",
            json={"siteId": site.tracking_id, "sessionId": "s1", "eventType": "pageview"},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_cascades(
        self, client: AsyncClient, admin_headers, db_session: AsyncSession, site
    ):
        site_id = site.id
        await EventService(db_session).record_event(site.tracking_id, "s1", "pageview")
        await RevenueService(db_session).upsert_revenue(site_id, "adsense", 1, date=utc_today())
        await AlertDeduplicator(db_session).raise_alert(site_id, "revenue_drop", "drop")

        response = await client.delete(f"/api/v1/sites/{site_id}", headers=admin_headers)
        assert response.status_code == 204
        await db_session.commit()

        for model in (Event, DailyStats, RevenueEntry, Alert):
            count = await db_session.scalar(
                select(func.count()).select_from(model).where(model.site_id == site_id)
            )
            assert count == 0, model.__tablename__

        response = await client.get(f"/api/v1/sites/{site_id}", headers=admin_headers)
        assert response.status_code == 404


class TestSiteExtras:
    """Tests for the tracking-code and stats views."""

    @pytest.mark.asyncio
    async def test_tracking_code(self, client: AsyncClient, admin_headers, site):
        response = await client.get(f"/api/v1/sites/{site.id}/tracking-code", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["tracking_id"] == site.tracking_id
        assert f"/tracker.js?siteId={site.tracking_id}" in data["tracking_code"]
        assert "<head>" in data["instructions"]

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient, admin_headers, db_session: AsyncSession, site):
        today = utc_today()
        db_session.add_all(
            [
                DailyStats(
                    site_id=site.id,
                    date=today - timedelta(days=1),
                    pageviews=10,
                    unique_visitors=4,
                    sessions=4,
                    avg_session_duration=3000,
                    bounce_rate=Decimal("50"),
                    total_revenue=Decimal("2"),
                ),
                DailyStats(
                    site_id=site.id,
                    date=today,
                    pageviews=6,
                    unique_visitors=2,
                    sessions=2,
                    avg_session_duration=1000,
                    bounce_rate=Decimal("25"),
                    total_revenue=Decimal("1"),
                ),
                # Outside the window
                DailyStats(site_id=site.id, date=today - timedelta(days=60), pageviews=500),
            ]
        )
        await db_session.commit()

        response = await client.get(f"/api/v1/sites/{site.id}/stats?days=30", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert [d["date"] for d in data["daily"]] == [
            (today - timedelta(days=1)).isoformat(),
            today.isoformat(),
        ]
        totals = data["totals"]
        assert totals["total_pageviews"] == 16
        assert totals["total_visitors"] == 6
        assert totals["total_sessions"] == 6
        assert totals["avg_duration"] == pytest.approx(2000)
        assert totals["avg_bounce_rate"] == pytest.approx(37.5)
        assert Decimal(totals["total_revenue"]) == Decimal("3")
