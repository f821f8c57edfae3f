"""Integration tests for check-in endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from tests.conftest import EVENT_LAT, EVENT_LNG, point_north_of


def _geo_body(meters: float) -> dict:
    lat, lng = point_north_of(EVENT_LAT, EVENT_LNG, meters)
    return {"mode": "geo", "latitude": lat, "longitude": lng}


class TestCreateCheckIn:
    @pytest.mark.asyncio
    async def test_geo_checkin(self, client: AsyncClient, auth_headers, make_event):
        event = await make_event()
        response = await client.post(
            f"/api/v1/events/{event.id}/checkins", headers=auth_headers("u1"), json=_geo_body(20)
        )
        assert response.status_code == 201
        data = response.json()
        assert data["checkin"]["event_id"] == event.id
        assert data["checkin"]["mode"] == "geo"
        assert data["points_awarded"] == 40
        assert [a["id"] for a in data["achievements_unlocked"]] == ["first_checkin"]
        assert data["reward_pending"] is False

    @pytest.mark.asyncio
    async def test_secret_checkin(self, client: AsyncClient, auth_headers, make_event):
        event = await make_event(secret_code="TOWNHALL")
        response = await client.post(
            f"/api/v1/events/{event.id}/checkins",
            headers=auth_headers("u1"),
            json={"mode": "secret", "code": "townhall"},
        )
        assert response.status_code == 201
        assert response.json()["points_awarded"] == 35

    @pytest.mark.asyncio
    async def test_too_far(self, client: AsyncClient, auth_headers, make_event):
        event = await make_event()
        response = await client.post(
            f"/api/v1/events/{event.id}/checkins", headers=auth_headers("u1"), json=_geo_body(350)
        )
        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "too_far"
        assert data["distance_m"] == pytest.approx(350, abs=0.01)
        assert data["max_distance_m"] == 100.0

    @pytest.mark.asyncio
    async def test_duplicate(self, client: AsyncClient, auth_headers, make_event):
        event = await make_event()
        url = f"/api/v1/events/{event.id}/checkins"
        await client.post(url, headers=auth_headers("u1"), json=_geo_body(5))
        response = await client.post(url, headers=auth_headers("u1"), json=_geo_body(5))
        assert response.status_code == 409
        assert response.json()["code"] == "already_checked_in"

        points = await client.get("/api/v1/users/me/points", headers=auth_headers("u1"))
        assert points.json()["balance"] == 40

    @pytest.mark.asyncio
    async def test_at_capacity(self, client: AsyncClient, auth_headers, make_event):
        event = await make_event(capacity=1)
        url = f"/api/v1/events/{event.id}/checkins"
        assert (await client.post(url, headers=auth_headers("u1"), json=_geo_body(5))).status_code == 201
        response = await client.post(url, headers=auth_headers("u2"), json=_geo_body(5))
        assert response.status_code == 409
        assert response.json()["code"] == "at_capacity"

    @pytest.mark.asyncio
    async def test_wrong_code(self, client: AsyncClient, auth_headers, make_event):
        event = await make_event()
        response = await client.post(
            f"/api/v1/events/{event.id}/checkins",
            headers=auth_headers("u1"),
            json={"mode": "secret", "code": "NOPE"},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_code"

    @pytest.mark.asyncio
    async def test_unknown_event(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/events/424242/checkins", headers=auth_headers("u1"), json=_geo_body(5)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_out_of_range_coordinates(self, client: AsyncClient, auth_headers, make_event):
        event = await make_event()
        response = await client.post(
            f"/api/v1/events/{event.id}/checkins",
            headers=auth_headers("u1"),
            json={"mode": "geo", "latitude": 123.0, "longitude": 0.0},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_input"


class TestCheckInReads:
    @pytest.mark.asyncio
    async def test_user_history_and_stats(self, client: AsyncClient, auth_headers, make_event):
        event = await make_event(title="Library Forum")
        await client.post(f"/api/v1/events/{event.id}/checkins", headers=auth_headers("u1"), json=_geo_body(5))

        history = await client.get("/api/v1/users/me/checkins", headers=auth_headers("u1"))
        assert history.status_code == 200
        data = history.json()
        assert data["total"] == 1
        assert data["checkins"][0]["event_title"] == "Library Forum"
        assert data["checkins"][0]["city"] == "New York"

        stats = await client.get("/api/v1/users/me/checkins/stats", headers=auth_headers("u1"))
        assert stats.json()["total"] == 1
        assert stats.json()["unique_events"] == 1

    @pytest.mark.asyncio
    async def test_event_attendees_admin_only(self, client: AsyncClient, auth_headers, make_event):
        event = await make_event()
        await client.post(f"/api/v1/events/{event.id}/checkins", headers=auth_headers("u1"), json=_geo_body(5))

        forbidden = await client.get(f"/api/v1/events/{event.id}/checkins", headers=auth_headers("u1"))
        assert forbidden.status_code == 403

        response = await client.get(f"/api/v1/events/{event.id}/checkins", headers=auth_headers("ops", "admin"))
        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["checkins"][0]["user_id"] == "u1"

    @pytest.mark.asyncio
    async def test_heatmap(self, client: AsyncClient, auth_headers, make_event):
        event = await make_event()
        for user in ("u1", "u2", "u3"):
            await client.post(f"/api/v1/events/{event.id}/checkins", headers=auth_headers(user), json=_geo_body(5))

        response = await client.get("/api/v1/checkins/map", headers=auth_headers("u1"))
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["clusters"][0]["count"] == 3
        assert data["clusters"][0]["latitude"] == pytest.approx(EVENT_LAT)

    @pytest.mark.asyncio
    async def test_other_users_history_forbidden(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/users/u2/checkins", headers=auth_headers("u1"))
        assert response.status_code == 403
