"""Leaderboard: on-demand ranking computed from the point ledger.

Rankings are derived from ``point_transactions`` on every read. Redis only
holds a short-lived copy of the computed standings so that bursts of reads
for the same scope share one aggregate query.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from enum import Enum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.db.models import PointTransaction, UserProfile
from civic_rewards.errors import InvalidInputError
from civic_rewards.ledger.levels import compute_level

logger = logging.getLogger(__name__)


class TimeWindow(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL_TIME = "all_time"


@dataclass(frozen=True)
class Geography:
    city: str | None = None
    state: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.city and not self.state


@dataclass(frozen=True)
class Standing:
    user_id: str
    points: int
    first_activity_at: datetime


def window_start(window: TimeWindow, now: datetime | None = None) -> datetime | None:
    """UTC start of the window containing ``now``; None for all-time."""
    now = now or datetime.now(timezone.utc)
    today = now.date()
    if window is TimeWindow.DAY:
        start = today
    elif window is TimeWindow.WEEK:
        start = today - timedelta(days=today.weekday())
    elif window is TimeWindow.MONTH:
        start = today.replace(day=1)
    elif window is TimeWindow.YEAR:
        start = today.replace(month=1, day=1)
    elif window is TimeWindow.ALL_TIME:
        return None
    else:
        raise ValueError(f"Unknown window: {window}")
    return datetime.combine(start, time.min, tzinfo=timezone.utc)


def assign_positions(standings: list[Standing]) -> list[tuple[int, Standing]]:
    """Sort standings and attach competition positions.

    Order: points DESC, first activity in the window ASC (earlier wins),
    user_id ASC. Position is 1 + the number of users with strictly more
    points, so equal totals share a position.
    """
    ordered = sorted(standings, key=lambda s: (-s.points, s.first_activity_at, s.user_id))
    positioned: list[tuple[int, Standing]] = []
    position = 0
    previous_points: int | None = None
    for index, standing in enumerate(ordered, start=1):
        if standing.points != previous_points:
            position = index
            previous_points = standing.points
        positioned.append((position, standing))
    return positioned


def _cache_key(window: TimeWindow, start: datetime | None, geography: Geography) -> str:
    suffix = start.date().isoformat() if start else "all"
    return f"leaderboard:{window.value}:{suffix}:{geography.city or '*'}:{geography.state or '*'}"


async def _read_cache(redis: object, key: str) -> list[Standing] | None:
    if redis is None:
        return None
    try:
        raw = await redis.get(key)  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Leaderboard cache read failed", exc_info=True)
        return None
    if not raw:
        return None
    return [
        Standing(user_id=item[0], points=item[1], first_activity_at=datetime.fromisoformat(item[2]))
        for item in json.loads(raw)
    ]


async def _write_cache(redis: object, key: str, standings: list[Standing], ttl: int) -> None:
    if redis is None or ttl <= 0:
        return
    try:
        payload = json.dumps([[s.user_id, s.points, s.first_activity_at.isoformat()] for s in standings])
        await redis.set(key, payload, ex=ttl)  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Leaderboard cache write failed", exc_info=True)


async def compute_standings(
    db: AsyncSession,
    start: datetime | None,
    geography: Geography,
) -> list[Standing]:
    """Per-user point sums inside the window, pre-filtered by geography."""
    stmt = (
        select(
            PointTransaction.user_id,
            func.sum(PointTransaction.amount).label("points"),
            func.min(PointTransaction.created_at).label("first_activity_at"),
        )
        .group_by(PointTransaction.user_id)
    )
    if start is not None:
        stmt = stmt.where(PointTransaction.created_at >= start)
    if not geography.is_empty:
        members = select(UserProfile.user_id)
        if geography.city:
            members = members.where(func.lower(UserProfile.city) == geography.city.lower())
        if geography.state:
            members = members.where(func.lower(UserProfile.state) == geography.state.lower())
        stmt = stmt.where(PointTransaction.user_id.in_(members))

    result = await db.execute(stmt)
    return [
        Standing(user_id=row.user_id, points=int(row.points), first_activity_at=row.first_activity_at)
        for row in result
    ]


async def rank(
    db: AsyncSession,
    redis: object,
    window: TimeWindow | str,
    geography: Geography | None = None,
    user_id: str | None = None,
    limit: int = 50,
    cache_ttl: int = 0,
) -> dict[str, Any]:
    """Ranked entries for a scope, plus the requesting user's position.

    Returns dict with keys: window, window_start, rankings (list of entry
    dicts, at most ``limit``), total_participants, position and me (None
    when the user has no points in scope).
    """
    window = TimeWindow(window)
    geography = geography or Geography()
    start = window_start(window)

    key = _cache_key(window, start, geography)
    standings = await _read_cache(redis, key)
    if standings is None:
        standings = await compute_standings(db, start, geography)
        await _write_cache(redis, key, standings, cache_ttl)

    positioned = assign_positions(standings)
    top = positioned[:limit]

    position = None
    user_entry = None
    if user_id is not None:
        for pos, standing in positioned:
            if standing.user_id == user_id:
                position = pos
                user_entry = (pos, standing)
                break

    shown_ids = {s.user_id for _, s in top}
    if user_entry is not None:
        shown_ids.add(user_id)
    profiles = await _load_profiles(db, shown_ids)
    balances = await _load_balances(db, shown_ids)

    def entry(pos: int, standing: Standing) -> dict[str, Any]:
        profile = profiles.get(standing.user_id)
        return {
            "position": pos,
            "user_id": standing.user_id,
            "display_name": profile.display_name if profile else None,
            "city": profile.city if profile else None,
            "state": profile.state if profile else None,
            "points": standing.points,
            "level": compute_level(balances.get(standing.user_id, 0))["level"],
        }

    return {
        "window": window.value,
        "window_start": start,
        "rankings": [entry(pos, s) for pos, s in top],
        "total_participants": len(positioned),
        "position": position,
        "me": entry(*user_entry) if user_entry is not None else None,
    }


async def _load_profiles(db: AsyncSession, user_ids: set[str]) -> dict[str, UserProfile]:
    if not user_ids:
        return {}
    result = await db.execute(select(UserProfile).where(UserProfile.user_id.in_(user_ids)))
    return {p.user_id: p for p in result.scalars()}


async def _load_balances(db: AsyncSession, user_ids: set[str]) -> dict[str, int]:
    if not user_ids:
        return {}
    result = await db.execute(
        select(PointTransaction.user_id, func.sum(PointTransaction.amount))
        .where(PointTransaction.user_id.in_(user_ids))
        .group_by(PointTransaction.user_id)
    )
    return {row[0]: int(row[1]) for row in result}


async def geography_of(db: AsyncSession, user_id: str, scope: str) -> Geography:
    """Geography filter derived from a user's own profile (scope: city | state)."""
    result = await db.execute(select(UserProfile).where(UserProfile.user_id == user_id))
    profile = result.scalar_one_or_none()
    if scope not in ("city", "state"):
        return Geography()
    value = getattr(profile, scope, None) if profile is not None else None
    if not value:
        raise InvalidInputError(f"No {scope} on the user profile for a {scope} leaderboard", scope=scope)
    if scope == "city":
        return Geography(city=profile.city, state=profile.state)
    return Geography(state=profile.state)
