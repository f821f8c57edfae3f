"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Request

from civic_rewards.achievements.catalog import AchievementCatalog
from civic_rewards.database import get_session as _get_session
from civic_rewards.redis_client import get_redis as _get_redis

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client as a FastAPI dependency."""
    yield _get_redis()


def get_catalog(request: Request) -> AchievementCatalog:
    """The achievement catalog loaded at startup."""
    return request.app.state.catalog
