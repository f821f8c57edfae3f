"""Check-in API endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.achievements.catalog import AchievementCatalog
from civic_rewards.achievements.router import unlocked_entries
from civic_rewards.auth.dependencies import Principal, get_current_principal, require_elevated, resolve_user
from civic_rewards.checkins import service as checkins
from civic_rewards.checkins.schemas import (
    CheckInEntry,
    CheckInMapResponse,
    CheckInRequest,
    CheckInResponse,
    CheckInStatsResponse,
    EventCheckInsResponse,
    GeoCheckInRequest,
    MapCluster,
    UserCheckInEntry,
    UserCheckInsResponse,
)
from civic_rewards.config import get_settings
from civic_rewards.dependencies import get_catalog, get_db, get_redis_dep

router = APIRouter(prefix="/api/v1", tags=["Check-ins"])


@router.post("/events/{event_id}/checkins", response_model=CheckInResponse, status_code=201)
async def create_checkin(
    event_id: int,
    body: CheckInRequest = Body(...),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
    catalog: AchievementCatalog = Depends(get_catalog),
):
    """Check in to an event by location or secret code."""
    if isinstance(body, GeoCheckInRequest):
        mode: checkins.CheckInMode = checkins.GeoMode(latitude=body.latitude, longitude=body.longitude)
    else:
        mode = checkins.SecretMode(code=body.code)

    result = await checkins.check_in(db, redis, catalog, principal.user_id, event_id, mode)
    return CheckInResponse(
        checkin=CheckInEntry.model_validate(result.checkin),
        points_awarded=result.points_awarded,
        achievements_unlocked=unlocked_entries(catalog, result.unlocked),
        reward_pending=result.reward_pending,
    )


@router.get("/events/{event_id}/checkins", response_model=EventCheckInsResponse)
async def get_event_checkins(
    event_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Attendees of an event (administrators only)."""
    require_elevated(principal)
    rows = await checkins.list_event_checkins(db, event_id)
    return EventCheckInsResponse(
        event_id=event_id,
        checkins=[CheckInEntry.model_validate(c) for c in rows],
        total=len(rows),
    )


@router.get("/users/{user_id}/checkins", response_model=UserCheckInsResponse)
async def get_user_checkins(
    user_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """A user's check-ins, newest first."""
    user_id = resolve_user(principal, user_id)
    rows, total = await checkins.list_user_checkins(db, user_id, page=page, per_page=per_page)
    return UserCheckInsResponse(
        checkins=[
            UserCheckInEntry(
                **CheckInEntry.model_validate(checkin).model_dump(),
                event_title=event.title,
                city=event.city,
                state=event.state,
            )
            for checkin, event in rows
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/users/{user_id}/checkins/stats", response_model=CheckInStatsResponse)
async def get_checkin_stats(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    user_id = resolve_user(principal, user_id)
    return CheckInStatsResponse(**await checkins.checkin_stats(db, user_id))


@router.get("/checkins/map", response_model=CheckInMapResponse)
async def get_checkin_map(
    city: str | None = Query(None, max_length=100),
    state: str | None = Query(None, max_length=100),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    _principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Check-in heatmap clusters."""
    clusters = await checkins.checkin_map(
        db,
        get_settings().heatmap_cluster_radius_m,
        city=city,
        state=state,
        date_from=date_from,
        date_to=date_to,
    )
    return CheckInMapResponse(
        clusters=[
            MapCluster(
                latitude=c.latitude,
                longitude=c.longitude,
                count=c.count,
                city=c.city,
                state=c.state,
                first_checkin_at=c.first_checkin_at,
                last_checkin_at=c.last_checkin_at,
            )
            for c in clusters
        ],
        total=len(clusters),
    )
