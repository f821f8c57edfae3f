"""Goal tracker: periodic targets with lazy expiry."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.db.models import CheckIn, Goal, PointTransaction
from civic_rewards.db.upsert import insert_ignore
from civic_rewards.errors import ConflictError, InvalidInputError, NotFoundError
from civic_rewards.goals.periods import GoalMetric, GoalType, period_window, today_utc, window_bounds_utc

logger = logging.getLogger(__name__)

MIN_AUTO_TARGET = 500
POINTS_PER_LEVEL_TARGET = 100

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_EXPIRED = "expired"


def auto_target(level: int) -> int:
    """Target for an auto-provisioned goal: max(500, level * 100)."""
    return max(MIN_AUTO_TARGET, level * POINTS_PER_LEVEL_TARGET)


async def expire_overdue(db: AsyncSession, user_id: str | None = None, today: date | None = None) -> int:
    """Mark active goals whose window has passed as expired. Returns rows changed."""
    today = today or today_utc()
    stmt = (
        update(Goal)
        .where(Goal.status == STATUS_ACTIVE, Goal.period_end < today)
        .values(status=STATUS_EXPIRED, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if user_id is not None:
        stmt = stmt.where(Goal.user_id == user_id)
    result = await db.execute(stmt)
    if result.rowcount:
        logger.info("Expired %d overdue goal(s)%s", result.rowcount, f" for {user_id}" if user_id else "")
    return result.rowcount or 0


async def _goal_for_window(db: AsyncSession, user_id: str, goal_type: GoalType, period_start: date) -> Goal | None:
    result = await db.execute(
        select(Goal)
        .where(
            Goal.user_id == user_id,
            Goal.goal_type == goal_type.value,
            Goal.period_start == period_start,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_active_goal(
    db: AsyncSession,
    user_id: str,
    goal_type: GoalType | str,
    on: date | None = None,
) -> Goal | None:
    """Active goal whose window contains ``on`` (default today), or None."""
    goal_type = GoalType(goal_type)
    today = today_utc()
    on = on or today
    await expire_overdue(db, user_id, today)

    start, _ = period_window(goal_type.period, on)
    goal = await _goal_for_window(db, user_id, goal_type, start)
    if goal is None or goal.status != STATUS_ACTIVE:
        return None
    return goal


async def get_period_goal(
    db: AsyncSession,
    user_id: str,
    goal_type: GoalType | str,
    on: date | None = None,
) -> Goal | None:
    """Goal of any status for the window containing ``on`` (default today)."""
    goal_type = GoalType(goal_type)
    await expire_overdue(db, user_id)
    start, _ = period_window(goal_type.period, on or today_utc())
    return await _goal_for_window(db, user_id, goal_type, start)


async def _window_progress(db: AsyncSession, user_id: str, goal_type: GoalType, start: date, end: date) -> int:
    """Activity already recorded inside a window, used to seed a new goal."""
    lower, upper = window_bounds_utc(start, end)
    if goal_type.metric is GoalMetric.POINTS:
        stmt = select(func.coalesce(func.sum(PointTransaction.amount), 0)).where(
            PointTransaction.user_id == user_id,
            PointTransaction.created_at >= lower,
            PointTransaction.created_at < upper,
        )
    else:
        stmt = select(func.count()).select_from(CheckIn).where(
            CheckIn.user_id == user_id,
            CheckIn.checked_in_at >= lower,
            CheckIn.checked_in_at < upper,
        )
    result = await db.execute(stmt)
    return max(0, int(result.scalar_one()))


async def _insert_goal(
    db: AsyncSession,
    user_id: str,
    goal_type: GoalType,
    target_value: int,
    auto_generated: bool,
) -> tuple[Goal, bool]:
    start, end = period_window(goal_type.period, today_utc())
    current = await _window_progress(db, user_id, goal_type, start, end)
    now = datetime.now(timezone.utc)
    completed = current >= target_value

    row_id = await insert_ignore(
        db,
        Goal,
        {
            "user_id": user_id,
            "goal_type": goal_type.value,
            "target_value": target_value,
            "current_value": current,
            "period_start": start,
            "period_end": end,
            "status": STATUS_COMPLETED if completed else STATUS_ACTIVE,
            "auto_generated": auto_generated,
            "created_at": now,
            "updated_at": now,
            "completed_at": now if completed else None,
        },
        ["user_id", "goal_type", "period_start"],
    )
    goal = await _goal_for_window(db, user_id, goal_type, start)
    if goal is None:
        raise NotFoundError("Goal vanished after insert", user_id=user_id, goal_type=goal_type.value)
    return goal, row_id is not None


async def auto_create_goal(db: AsyncSession, user_id: str, goal_type: GoalType | str, level: int) -> Goal:
    """Provision the goal for the current window; idempotent within the window.

    An existing goal for the window (active or already completed) is
    returned unchanged.
    """
    goal_type = GoalType(goal_type)
    await expire_overdue(db, user_id)
    goal, created = await _insert_goal(db, user_id, goal_type, auto_target(level), auto_generated=True)
    if created:
        logger.info("Auto-created %s goal for %s (target=%d)", goal_type.value, user_id, goal.target_value)
    return goal


async def create_goal(db: AsyncSession, user_id: str, goal_type: GoalType | str, target_value: int) -> Goal:
    """User-defined goal for the current window."""
    goal_type = GoalType(goal_type)
    if target_value <= 0:
        raise InvalidInputError("Goal target must be positive", target_value=target_value)
    await expire_overdue(db, user_id)
    goal, created = await _insert_goal(db, user_id, goal_type, target_value, auto_generated=False)
    if not created:
        raise ConflictError(
            "A goal already exists for this period",
            goal_id=goal.id,
            goal_type=goal_type.value,
        )
    return goal


async def update_progress(
    db: AsyncSession,
    user_id: str,
    goal_type: GoalType | str,
    delta: int,
    on: date | None = None,
) -> Goal | None:
    """Add ``delta`` to the live goal for the window; complete it once the target is met."""
    goal_type = GoalType(goal_type)
    start, _ = period_window(goal_type.period, on or today_utc())
    now = datetime.now(timezone.utc)

    where = (
        Goal.user_id == user_id,
        Goal.goal_type == goal_type.value,
        Goal.period_start == start,
        Goal.status == STATUS_ACTIVE,
    )
    result = await db.execute(
        update(Goal)
        .where(*where)
        .values(current_value=Goal.current_value + delta, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        return None

    await db.execute(
        update(Goal)
        .where(*where, Goal.current_value >= Goal.target_value)
        .values(status=STATUS_COMPLETED, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    return await _goal_for_window(db, user_id, goal_type, start)


async def apply_progress(db: AsyncSession, user_id: str, metric: GoalMetric, delta: int) -> list[Goal]:
    """Feed ``delta`` into every goal type that tracks ``metric``."""
    if delta == 0:
        return []
    touched = []
    for goal_type in GoalType:
        if goal_type.metric is metric:
            goal = await update_progress(db, user_id, goal_type, delta)
            if goal is not None:
                touched.append(goal)
    return touched


async def get_goal(db: AsyncSession, goal_id: int) -> Goal:
    result = await db.execute(select(Goal).where(Goal.id == goal_id).execution_options(populate_existing=True))
    goal = result.scalar_one_or_none()
    if goal is None:
        raise NotFoundError("Goal not found", goal_id=goal_id)
    return goal


async def update_target(db: AsyncSession, goal: Goal, target_value: int) -> Goal:
    """Change the target of an active goal, completing it if already met."""
    if target_value <= 0:
        raise InvalidInputError("Goal target must be positive", target_value=target_value)
    if goal.status != STATUS_ACTIVE:
        raise ConflictError("Only active goals can be edited", goal_id=goal.id, status=goal.status)

    now = datetime.now(timezone.utc)
    goal.target_value = target_value
    goal.auto_generated = False
    goal.updated_at = now
    if goal.current_value >= target_value:
        goal.status = STATUS_COMPLETED
        goal.completed_at = now
    await db.flush()
    return goal


async def list_goals(db: AsyncSession, user_id: str, limit: int = 24) -> list[Goal]:
    await expire_overdue(db, user_id)
    result = await db.execute(
        select(Goal)
        .where(Goal.user_id == user_id)
        .order_by(Goal.period_start.desc(), Goal.id.desc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
