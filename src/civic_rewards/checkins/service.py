"""Check-in intake: admission, atomic capacity reservation and recording."""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Union

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.achievements.catalog import AchievementCatalog
from civic_rewards.achievements.counters import record_checkin
from civic_rewards.checkins.rewards import OUTBOX_KIND_CHECKIN, settle_checkin_reward
from civic_rewards.db.models import CheckIn, Event, EventAttendance, RewardOutbox, UnlockedAchievement
from civic_rewards.db.upsert import insert_ignore
from civic_rewards.errors import (
    AlreadyCheckedInError,
    AtCapacityError,
    InvalidCodeError,
    NotFoundError,
    TooFarError,
)
from civic_rewards.feed.publisher import publish_activity
from civic_rewards.geo.clustering import Cluster, MapPoint, cluster_points
from civic_rewards.geo.validator import (
    GEOFENCE_RADIUS_M,
    AlreadyCheckedIn,
    AtCapacity,
    TooFar,
    validate_admission,
    validate_coordinate,
)

logger = logging.getLogger(__name__)

CHECKIN_POINTS_SECRET = 10
CHECKIN_POINTS_GEO = 15


@dataclass(frozen=True)
class GeoMode:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class SecretMode:
    code: str


CheckInMode = Union[GeoMode, SecretMode]


@dataclass
class CheckInResult:
    checkin: CheckIn
    points_awarded: int
    unlocked: list[UnlockedAchievement] = field(default_factory=list)
    reward_pending: bool = False


async def get_active_event(db: AsyncSession, event_id: int) -> Event:
    result = await db.execute(select(Event).where(Event.id == event_id))
    event = result.scalar_one_or_none()
    if event is None or event.status != "active":
        raise NotFoundError("Event not found or not active", event_id=event_id)
    return event


def _code_matches(submitted: str, expected: str | None) -> bool:
    if not expected:
        return False
    return hmac.compare_digest(submitted.strip().upper().encode(), expected.strip().upper().encode())


async def _attendance_count(db: AsyncSession, event_id: int) -> int:
    result = await db.execute(select(EventAttendance.checkin_count).where(EventAttendance.event_id == event_id))
    return result.scalar_one_or_none() or 0


async def _has_checked_in(db: AsyncSession, user_id: str, event_id: int) -> bool:
    result = await db.execute(
        select(CheckIn.id).where(CheckIn.user_id == user_id, CheckIn.event_id == event_id)
    )
    return result.scalar_one_or_none() is not None


async def _reserve_slot(db: AsyncSession, event: Event) -> bool:
    """Take one admission slot with a single conditional UPDATE.

    The row lock taken by the UPDATE serialises concurrent check-ins for the
    same event, so the counter can never pass the capacity.
    """
    await insert_ignore(db, EventAttendance, {"event_id": event.id, "checkin_count": 0}, ["event_id"],
                        returning="event_id")
    stmt = (
        update(EventAttendance)
        .where(EventAttendance.event_id == event.id)
        .values(checkin_count=EventAttendance.checkin_count + 1)
        .execution_options(synchronize_session=False)
    )
    if event.capacity is not None:
        stmt = stmt.where(EventAttendance.checkin_count < event.capacity)
    result = await db.execute(stmt)
    return result.rowcount == 1


async def check_in(
    db: AsyncSession,
    redis: object,
    catalog: AchievementCatalog,
    user_id: str,
    event_id: int,
    mode: CheckInMode,
) -> CheckInResult:
    """Validate and record a check-in, then settle its reward.

    Raises NotFoundError, InvalidCodeError, InvalidInputError, TooFarError,
    AlreadyCheckedInError or AtCapacityError. Once recorded, the check-in
    stands even if the reward step fails; the result then carries
    ``reward_pending=True``.
    """
    event = await get_active_event(db, event_id)

    reported = None
    if isinstance(mode, SecretMode):
        if not _code_matches(mode.code, event.secret_code):
            raise InvalidCodeError("Invalid check-in code", event_id=event_id)
        points = CHECKIN_POINTS_SECRET
    else:
        reported = validate_coordinate(mode.latitude, mode.longitude)
        points = CHECKIN_POINTS_GEO

    admission = validate_admission(
        reported,
        event,
        await _attendance_count(db, event.id),
        already_checked_in=await _has_checked_in(db, user_id, event.id),
    )
    if isinstance(admission, TooFar):
        raise TooFarError(
            "You are too far from the event to check in",
            distance_m=admission.distance_m,
            max_distance_m=GEOFENCE_RADIUS_M,
        )
    if isinstance(admission, AlreadyCheckedIn):
        raise AlreadyCheckedInError("Already checked in to this event", event_id=event_id)
    if isinstance(admission, AtCapacity):
        raise AtCapacityError("Event is at capacity", event_id=event_id, capacity=admission.capacity)

    # Rollbacks expire the event row; keep what the error and feed need
    capacity = event.capacity
    activity = {"event_id": event.id, "event_title": event.title, "city": event.city, "state": event.state}

    # The pre-check above may be stale; the reservation is authoritative.
    if not await _reserve_slot(db, event):
        await db.rollback()
        raise AtCapacityError("Event is at capacity", event_id=event_id, capacity=capacity)

    now = datetime.now(timezone.utc)
    checkin_id = await insert_ignore(
        db,
        CheckIn,
        {
            "user_id": user_id,
            "event_id": event.id,
            "latitude": reported.latitude if reported else None,
            "longitude": reported.longitude if reported else None,
            "mode": "secret" if isinstance(mode, SecretMode) else "geo",
            "distance_m": admission.distance_m,
            "checked_in_at": now,
        },
        ["user_id", "event_id"],
    )
    if checkin_id is None:
        await db.rollback()
        raise AlreadyCheckedInError("Already checked in to this event", event_id=event_id)

    await record_checkin(db, user_id)
    outbox_id = await insert_ignore(
        db,
        RewardOutbox,
        {
            "user_id": user_id,
            "kind": OUTBOX_KIND_CHECKIN,
            "reference_id": str(checkin_id),
            "payload": {
                "checkin_id": checkin_id,
                "event_id": event.id,
                "event_title": event.title,
                "mode": "secret" if isinstance(mode, SecretMode) else "geo",
                "points": points,
            },
            "status": "pending",
            "attempts": 0,
            "created_at": now,
        },
        ["kind", "reference_id"],
    )
    await db.commit()
    logger.info("Check-in recorded: user=%s event=%s mode=%s", user_id, event.id, type(mode).__name__)

    outcome = await settle_checkin_reward(db, redis, catalog, outbox_id)
    checkin = (await db.execute(select(CheckIn).where(CheckIn.id == checkin_id))).scalar_one()

    await publish_activity(redis, "checkin_created", user_id, activity)

    return CheckInResult(
        checkin=checkin,
        points_awarded=outcome.points_awarded,
        unlocked=outcome.unlocked,
        reward_pending=outcome.pending,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_user_checkins(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[tuple[CheckIn, Event]], int]:
    total_result = await db.execute(select(func.count()).select_from(CheckIn).where(CheckIn.user_id == user_id))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(CheckIn, Event)
        .join(Event, Event.id == CheckIn.event_id)
        .where(CheckIn.user_id == user_id)
        .order_by(CheckIn.checked_in_at.desc(), CheckIn.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return [(row[0], row[1]) for row in result], total


async def list_event_checkins(db: AsyncSession, event_id: int) -> list[CheckIn]:
    result = await db.execute(
        select(CheckIn).where(CheckIn.event_id == event_id).order_by(CheckIn.checked_in_at.desc())
    )
    return list(result.scalars().all())


async def checkin_stats(db: AsyncSession, user_id: str, today: date | None = None) -> dict[str, int]:
    """Totals for the user: all time, this month, this week, distinct events."""
    today = today or datetime.now(timezone.utc).date()
    month_start = datetime.combine(today.replace(day=1), time.min, tzinfo=timezone.utc)
    week_start = datetime.combine(today - timedelta(days=today.weekday()), time.min, tzinfo=timezone.utc)

    def count_since(since: datetime | None):
        stmt = select(func.count()).select_from(CheckIn).where(CheckIn.user_id == user_id)
        if since is not None:
            stmt = stmt.where(CheckIn.checked_in_at >= since)
        return stmt

    total = (await db.execute(count_since(None))).scalar() or 0
    monthly = (await db.execute(count_since(month_start))).scalar() or 0
    weekly = (await db.execute(count_since(week_start))).scalar() or 0
    unique_events = (
        await db.execute(select(func.count(func.distinct(CheckIn.event_id))).where(CheckIn.user_id == user_id))
    ).scalar() or 0

    return {"total": total, "this_month": monthly, "this_week": weekly, "unique_events": unique_events}


async def checkin_map(
    db: AsyncSession,
    radius_m: float,
    city: str | None = None,
    state: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[Cluster]:
    """Check-ins placed at their event's coordinates and clustered for a heatmap."""
    stmt = (
        select(CheckIn.checked_in_at, Event.latitude, Event.longitude, Event.city, Event.state)
        .join(Event, Event.id == CheckIn.event_id)
        .order_by(CheckIn.checked_in_at.desc())
    )
    if city:
        stmt = stmt.where(Event.city.ilike(f"%{city}%"))
    if state:
        stmt = stmt.where(Event.state.ilike(f"%{state}%"))
    if date_from is not None:
        stmt = stmt.where(CheckIn.checked_in_at >= date_from)
    if date_to is not None:
        stmt = stmt.where(CheckIn.checked_in_at <= date_to)

    result = await db.execute(stmt)
    points = [
        MapPoint(
            latitude=row.latitude,
            longitude=row.longitude,
            checked_in_at=row.checked_in_at,
            city=row.city,
            state=row.state,
        )
        for row in result
    ]
    return cluster_points(points, radius_m)
