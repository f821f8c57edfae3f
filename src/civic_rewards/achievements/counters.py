"""Per-user engagement counters backing the achievement requirements."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.achievements.catalog import Metric
from civic_rewards.db.models import UserEngagementStats
from civic_rewards.db.upsert import insert_ignore


async def ensure_stats_row(db: AsyncSession, user_id: str) -> None:
    """Create the counters row for a user if it does not exist."""
    await insert_ignore(db, UserEngagementStats, {"user_id": user_id}, ["user_id"], returning="user_id")


async def get_stats(db: AsyncSession, user_id: str) -> UserEngagementStats | None:
    result = await db.execute(
        select(UserEngagementStats)
        .where(UserEngagementStats.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _bump(db: AsyncSession, user_id: str, **values) -> None:
    await ensure_stats_row(db, user_id)
    await db.execute(
        update(UserEngagementStats)
        .where(UserEngagementStats.user_id == user_id)
        .values(updated_at=datetime.now(timezone.utc), **values)
        .execution_options(synchronize_session=False)
    )


async def record_quiz(db: AsyncSession, user_id: str, score: int) -> None:
    await _bump(
        db,
        user_id,
        quiz_count=UserEngagementStats.quiz_count + 1,
        best_quiz_score=case(
            (UserEngagementStats.best_quiz_score < score, score),
            else_=UserEngagementStats.best_quiz_score,
        ),
    )


async def record_checkin(db: AsyncSession, user_id: str) -> None:
    await _bump(db, user_id, checkin_count=UserEngagementStats.checkin_count + 1)


async def record_ai_conversation(db: AsyncSession, user_id: str) -> None:
    await _bump(db, user_id, ai_conversation_count=UserEngagementStats.ai_conversation_count + 1)


async def record_registration(db: AsyncSession, user_id: str) -> None:
    await _bump(db, user_id, registered=True)


async def record_login(db: AsyncSession, user_id: str) -> None:
    await _bump(db, user_id, logged_in=True)


def counter_value(stats: UserEngagementStats | None, metric: Metric) -> int:
    """Stored value for a metric; 0 when the user has no counters yet.

    QUIZ_SCORE maps to the best recorded score, which is only used for
    progress display. Unlocking reads the triggering payload instead.
    """
    if stats is None:
        return 0
    if metric is Metric.QUIZ_COUNT:
        return stats.quiz_count
    if metric is Metric.QUIZ_SCORE:
        return stats.best_quiz_score
    if metric is Metric.CHECKIN_COUNT:
        return stats.checkin_count
    if metric is Metric.AI_CONVERSATION_COUNT:
        return stats.ai_conversation_count
    if metric is Metric.REGISTRATION:
        return int(stats.registered)
    if metric is Metric.LOGIN:
        return int(stats.logged_in)
    raise ValueError(f"Unknown metric: {metric}")
