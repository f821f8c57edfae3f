"""Health, readiness and version endpoint tests."""

import pytest
from httpx import AsyncClient

from civic_rewards.redis_client import ping_redis


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_ready_reports_each_dependency(client: AsyncClient):
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["checks"]["database"] == "ok"
    assert data["checks"]["catalog"] == "ok"
    assert data["pending_rewards"] == 0
    # No Redis in the test environment
    assert data["checks"]["redis"].startswith("error")
    assert data["status"] == "degraded"


@pytest.mark.asyncio
async def test_version_includes_catalog(client: AsyncClient):
    response = await client.get("/version")
    assert response.status_code == 200
    data = response.json()
    assert data["catalog_version"] == "2025.1"
    assert "version" in data


@pytest.mark.asyncio
async def test_request_id_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-Id": "abc-123"})
    assert response.headers["X-Request-Id"] == "abc-123"


@pytest.mark.asyncio
async def test_ping_before_init_reports_error():
    status = await ping_redis()
    assert status.startswith("error")
    assert "not initialised" in status
