"""Shared Redis client for the activity feed and the leaderboard cache.

Redis is an accelerator here, never a source of truth: callers treat a
missing or failing client as "no cache, no broadcast".
"""

import redis.asyncio as redis

_client: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 20) -> None:
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """The shared client. Raises RuntimeError before ``init_redis``."""
    if _client is None:
        msg = "Redis client not initialised; the feed and leaderboard cache are unavailable"
        raise RuntimeError(msg)
    return _client


async def ping_redis() -> str:
    """Connectivity status for the readiness check: "ok" or the error text."""
    try:
        await get_redis().ping()
    except (RuntimeError, redis.RedisError, OSError) as exc:
        return f"error: {exc}"
    return "ok"
