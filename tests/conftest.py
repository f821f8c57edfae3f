"""Shared test fixtures.

Every test gets its own SQLite database file built from the ORM metadata,
so tests never share state. Redis is absent unless a test supplies a mock.
"""

from __future__ import annotations

import math
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.achievements.catalog import AchievementCatalog, load_catalog
from civic_rewards.auth.jwt import create_access_token, reset_keys
from civic_rewards.config import get_settings
from civic_rewards.database import close_db, get_engine, get_session_factory, init_db
from civic_rewards.db import models  # noqa: F401
from civic_rewards.db.base import Base
from civic_rewards.db.models import Event, PointTransaction, UserProfile
from civic_rewards.dependencies import get_redis_dep
from civic_rewards.main import create_app

EVENT_LAT = 40.7128
EVENT_LNG = -74.0060


def point_north_of(latitude: float, longitude: float, meters: float) -> tuple[float, float]:
    """A coordinate ``meters`` due north on the same spherical earth the geofence uses."""
    return latitude + math.degrees(meters / 1000 / 6371.0), longitude


@pytest.fixture(autouse=True)
def _test_settings(tmp_path, monkeypatch):
    """Point the service at a throwaway SQLite file and a known JWT secret."""
    monkeypatch.setenv("CR_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'rewards.db'}")
    monkeypatch.setenv("CR_JWT_SECRET", "test-secret")
    monkeypatch.setenv("CR_LOG_FORMAT", "console")
    monkeypatch.setenv("CR_LEADERBOARD_CACHE_TTL_SECONDS", "0")
    get_settings.cache_clear()
    reset_keys()
    yield
    get_settings.cache_clear()
    reset_keys()


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Initialise the engine and create the schema."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for service calls and assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def catalog() -> AchievementCatalog:
    return load_catalog()


@pytest.fixture
def redis_mock() -> MagicMock:
    """Stand-in Redis client that records publishes and never caches."""
    redis = MagicMock()
    redis.publish = AsyncMock(return_value=1)
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    return redis


@pytest_asyncio.fixture
async def client(database) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against a fresh app with Redis disabled."""
    app = create_app()

    async def _no_redis() -> AsyncGenerator[object, None]:
        yield None

    app.dependency_overrides[get_redis_dep] = _no_redis
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Build an Authorization header for a user id and role."""

    def _headers(user_id: str = "user-1", role: str = "user") -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}

    return _headers


@pytest.fixture
def make_event(db_session: AsyncSession) -> Callable[..., Awaitable[Event]]:
    """Insert and commit an event row."""

    async def _make(**overrides) -> Event:
        values = {
            "title": "Town Hall Meeting",
            "latitude": EVENT_LAT,
            "longitude": EVENT_LNG,
            "capacity": None,
            "secret_code": "VOTE2025",
            "status": "active",
            "city": "New York",
            "state": "NY",
        }
        values.update(overrides)
        event = Event(**values)
        db_session.add(event)
        await db_session.commit()
        return event

    return _make


@pytest.fixture
def make_profile(db_session: AsyncSession) -> Callable[..., Awaitable[UserProfile]]:
    async def _make(user_id: str, city: str | None = None, state: str | None = None, **extra) -> UserProfile:
        profile = UserProfile(user_id=user_id, display_name=extra.get("display_name", user_id), city=city, state=state)
        db_session.add(profile)
        await db_session.commit()
        return profile

    return _make


@pytest.fixture
def add_points(db_session: AsyncSession) -> Callable[..., Awaitable[None]]:
    """Insert a ledger row with an explicit timestamp."""

    async def _add(user_id: str, amount: int, created_at: datetime | None = None, reason: str = "test") -> None:
        db_session.add(PointTransaction(
            user_id=user_id,
            amount=amount,
            reason=reason,
            source="other",
            details={},
            created_at=created_at or datetime.now(timezone.utc),
        ))
        await db_session.commit()

    return _add
