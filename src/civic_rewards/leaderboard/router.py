"""Leaderboard API endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.auth.dependencies import Principal, get_current_principal
from civic_rewards.config import get_settings
from civic_rewards.dependencies import get_db, get_redis_dep
from civic_rewards.leaderboard.schemas import LeaderboardResponse
from civic_rewards.leaderboard.service import Geography, TimeWindow, geography_of, rank

router = APIRouter(prefix="/api/v1", tags=["Leaderboard"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    window: TimeWindow = Query(TimeWindow.MONTH),
    scope: Literal["global", "city", "state"] = Query("global"),
    city: str | None = Query(None, max_length=100),
    state: str | None = Query(None, max_length=100),
    limit: int | None = Query(None, ge=1, le=500),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Ranking for a time window, optionally limited to a city or state.

    ``scope=city|state`` uses the caller's own profile; explicit ``city`` /
    ``state`` parameters override it.
    """
    settings = get_settings()
    if city or state:
        geography = Geography(city=city, state=state)
    else:
        geography = await geography_of(db, principal.user_id, scope)

    result = await rank(
        db,
        redis,
        window,
        geography=geography,
        user_id=principal.user_id,
        limit=limit or settings.leaderboard_default_limit,
        cache_ttl=settings.leaderboard_cache_ttl_seconds,
    )
    return LeaderboardResponse(
        scope="global" if geography.is_empty else scope,
        city=geography.city,
        state=geography.state,
        **result,
    )
