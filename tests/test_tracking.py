"""Tests for event ingestion, both the service and the public beacon endpoint."""

import json
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.exceptions import NotFoundError, TransientStoreError, ValidationError
from sitepulse.models.event import MAX_SESSION_DURATION_MS, Event
from sitepulse.services.aggregate_store import AggregateStore, utc_today
from sitepulse.services.event_service import EventService


def _beacon(tracking_id: str, **overrides) -> dict:
    payload = {
        "siteId": tracking_id,
        "sessionId": "sess_abc123",
        "eventType": "pageview",
        "url": "https://recipes.example.com/pasta",
        "referrer": "https://www.google.com/",
        "data": {"title": "Pasta", "path": "/pasta"},
    }
    payload.update(overrides)
    return payload


class TestRecordEvent:
    """Tests for EventService.record_event."""

    @pytest.mark.asyncio
    async def test_pageview_updates_daily_stats(self, db_session: AsyncSession, site):
        service = EventService(db_session)
        await service.record_event(site.tracking_id, "s1", "pageview", url="https://a/")
        await service.record_event(site.tracking_id, "s1", "pageview", url="https://a/b")
        await service.record_event(site.tracking_id, "s2", "pageview", url="https://a/")

        row = await AggregateStore(db_session).get(site.id, utc_today())
        await db_session.refresh(row)
        assert row.pageviews == 3
        assert row.unique_visitors == 2

    @pytest.mark.asyncio
    async def test_event_is_stored_with_attributes(self, db_session: AsyncSession, site):
        event = await EventService(db_session).record_event(
            site.tracking_id,
            "s1",
            "click",
            url="https://a/",
            attributes={"target": "signup"},
            user_agent="pytest",
        )
        stored = await db_session.get(Event, event.id)
        assert stored.site_id == site.id
        assert stored.attributes == {"target": "signup"}
        assert stored.user_agent == "pytest"

    @pytest.mark.asyncio
    async def test_session_end_does_not_touch_daily_stats(self, db_session: AsyncSession, site):
        await EventService(db_session).record_event(
            site.tracking_id, "s1", "session_end", attributes={"duration": 4200}
        )
        assert await AggregateStore(db_session).get(site.id, utc_today()) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "tracking_id,session_id,event_type",
        [("", "s1", "pageview"), ("wm_x", "", "pageview"), ("wm_x", "s1", "")],
    )
    async def test_missing_fields_rejected(
        self, db_session: AsyncSession, tracking_id, session_id, event_type
    ):
        with pytest.raises(ValidationError):
            await EventService(db_session).record_event(tracking_id, session_id, event_type)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "duration", [-1, "long", True, float("inf"), float("nan"), 1e20, MAX_SESSION_DURATION_MS + 1]
    )
    async def test_bad_session_duration_rejected(self, db_session: AsyncSession, site, duration):
        with pytest.raises(ValidationError):
            await EventService(db_session).record_event(
                site.tracking_id, "s1", "session_end", attributes={"duration": duration}
            )

    @pytest.mark.asyncio
    async def test_full_day_duration_accepted(self, db_session: AsyncSession, site):
        event = await EventService(db_session).record_event(
            site.tracking_id,
            "s1",
            "session_end",
            attributes={"duration": MAX_SESSION_DURATION_MS},
        )
        assert event.attributes["duration"] == MAX_SESSION_DURATION_MS

    @pytest.mark.asyncio
    async def test_non_finite_data_rejected(self, db_session: AsyncSession, site):
        with pytest.raises(ValidationError):
            await EventService(db_session).record_event(
                site.tracking_id, "s1", "pageview", attributes={"scroll": {"depth": float("nan")}}
            )

    @pytest.mark.asyncio
    async def test_unknown_tracking_id(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await EventService(db_session).record_event("wm_doesnotexist", "s1", "pageview")

    @pytest.mark.asyncio
    async def test_inactive_site_rejected(self, db_session: AsyncSession, site):
        site.is_active = False
        await db_session.commit()

        with pytest.raises(NotFoundError):
            await EventService(db_session).record_event(site.tracking_id, "s1", "pageview")

        count = len((await db_session.execute(select(Event))).scalars().all())
        assert count == 0

    @pytest.mark.asyncio
    async def test_store_unavailable_surfaces_transient_error(
        self, db_session: AsyncSession, site, monkeypatch
    ):
        failing = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("connection lost")))
        monkeypatch.setattr(AggregateStore, "increment_pageviews", failing)

        with pytest.raises(TransientStoreError):
            await EventService(db_session).record_event(site.tracking_id, "s1", "pageview")
        failing.assert_awaited_once()


class TestTrackingEndpoint:
    """Tests for POST /api/v1/tracking/event."""

    @pytest.mark.asyncio
    async def test_json_beacon(self, client: AsyncClient, db_session: AsyncSession, site):
        response = await client.post("/api/v1/tracking/event", json=_beacon(site.tracking_id))
        assert response.status_code == 200
        assert response.json() == {"success": True}

        event = (await db_session.execute(select(Event))).scalar_one()
        assert event.session_id == "sess_abc123"
        assert event.url == "https://recipes.example.com/pasta"
        assert event.attributes["path"] == "/pasta"

    @pytest.mark.asyncio
    async def test_text_plain_beacon(self, client: AsyncClient, site):
        """sendBeacon posts a text/plain body."""
        response = await client.post(
            "/api/v1/tracking/event",
            content=json.dumps(_beacon(site.tracking_id)),
            headers={"Content-Type": "text/plain;charset=UTF-8"},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_missing_session_id(self, client: AsyncClient, site):
        payload = _beacon(site.tracking_id)
        del payload["sessionId"]
        response = await client.post("/api/v1/tracking/event", json=payload)
        assert response.status_code == 422
        assert "sessionId" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_malformed_body(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/tracking/event",
            content="not json",
            headers={"Content-Type": "text/plain"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", ["Infinity", "NaN", "1e20"])
    async def test_unusable_duration_rejected(
        self, client: AsyncClient, db_session: AsyncSession, site, duration
    ):
        body = (
            f'{{"siteId": "{site.tracking_id}", "sessionId": "s1", '
            f'"eventType": "session_end", "data": {{"duration": {duration}}}}}'
        )
        response = await client.post(
            "/api/v1/tracking/event", content=body, headers={"Content-Type": "text/plain"}
        )
        assert response.status_code == 422
        assert (await db_session.execute(select(Event))).first() is None

    @pytest.mark.asyncio
    async def test_unknown_site(self, client: AsyncClient):
        response = await client.post("/api/v1/tracking/event", json=_beacon("wm_nope"))
        assert response.status_code == 404
        assert response.json()["detail"] == "Site not found or inactive"

    @pytest.mark.asyncio
    async def test_no_admin_key_needed(self, client: AsyncClient, site):
        response = await client.post(
            "/api/v1/tracking/event", json=_beacon(site.tracking_id, eventType="click")
        )
        assert response.status_code == 200


class TestTrackingReads:
    """Tests for the admin-only event and realtime views."""

    @pytest.mark.asyncio
    async def test_list_events_newest_first(self, client: AsyncClient, admin_headers, site):
        for event_type in ("pageview", "click", "session_end"):
            await client.post(
                "/api/v1/tracking/event", json=_beacon(site.tracking_id, eventType=event_type)
            )

        response = await client.get(f"/api/v1/tracking/events/{site.id}", headers=admin_headers)
        assert response.status_code == 200
        events = response.json()
        assert [e["event_type"] for e in events] == ["session_end", "click", "pageview"]

        response = await client.get(
            f"/api/v1/tracking/events/{site.id}?event_type=click", headers=admin_headers
        )
        assert [e["event_type"] for e in response.json()] == ["click"]

    @pytest.mark.asyncio
    async def test_realtime(self, client: AsyncClient, admin_headers, site):
        await client.post("/api/v1/tracking/event", json=_beacon(site.tracking_id, sessionId="a"))
        await client.post("/api/v1/tracking/event", json=_beacon(site.tracking_id, sessionId="b"))
        await client.post(
            "/api/v1/tracking/event",
            json=_beacon(site.tracking_id, sessionId="b", eventType="session_end", data={}),
        )

        response = await client.get(f"/api/v1/tracking/realtime/{site.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {"pageviews": 2, "active_users": 2, "window_minutes": 30}

    @pytest.mark.asyncio
    async def test_reads_require_admin(self, client: AsyncClient, site):
        response = await client.get(f"/api/v1/tracking/events/{site.id}")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_site_404(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/v1/tracking/realtime/9999", headers=admin_headers)
        assert response.status_code == 404


@pytest.mark.asyncio
async def test_tracker_script_served(client: AsyncClient, site):
    response = await client.get(f"/tracker.js?siteId={site.tracking_id}")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/javascript")
    assert f'"{site.tracking_id}"' in response.text
    assert "/api/v1/tracking/event" in response.text
