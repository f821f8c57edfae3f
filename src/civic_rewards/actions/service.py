"""Action intake: quiz, AI and account events reported by other services.

Collaborators call these after persisting their own records. Each call
updates the user's counters, awards the base points for the action and runs
the achievement engine, all in one transaction. The collaborator's
``action_id`` keys the ledger award, so a retried call is a no-op.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.achievements import counters
from civic_rewards.achievements.catalog import AchievementCatalog, ActionType
from civic_rewards.achievements.engine import AchievementEngine
from civic_rewards.db.models import UnlockedAchievement
from civic_rewards.errors import InvalidInputError
from civic_rewards.feed.publisher import publish_level_change
from civic_rewards.goals.periods import GoalMetric
from civic_rewards.goals.service import apply_progress
from civic_rewards.ledger.service import PointSource, award_once, balance

logger = logging.getLogger(__name__)

AI_CONVERSATION_POINTS = 5
QUIZ_POINTS_PER_CORRECT = 10
QUIZ_ACCURACY_BONUS_MAX = 50


@dataclass
class ActionResult:
    action_type: ActionType
    points_awarded: int = 0
    unlocked: list[UnlockedAchievement] = field(default_factory=list)
    duplicate: bool = False


def quiz_points(correct: int, total: int, time_spent_seconds: float | None = None) -> int:
    """Points for a completed quiz.

    10 per correct answer, plus up to 50 for accuracy, plus a speed bonus of
    20 (under 30 s per question) or 10 (under 60 s per question).
    """
    if total <= 0:
        raise InvalidInputError("A quiz needs at least one question", total=total)
    base = correct * QUIZ_POINTS_PER_CORRECT
    accuracy_bonus = (correct * QUIZ_ACCURACY_BONUS_MAX) // total

    time_bonus = 0
    if time_spent_seconds is not None:
        per_question = time_spent_seconds / total
        if per_question < 30:
            time_bonus = 20
        elif per_question < 60:
            time_bonus = 10
    return base + accuracy_bonus + time_bonus


def quiz_score(correct: int, total: int, score: int | None = None) -> int:
    """Percentage score; derived from correct/total when the reporter omits it.

    The derived score is floored so it never reaches a threshold the ratio
    itself falls short of (199/200 is 99, not 100).
    """
    if score is not None:
        if not 0 <= score <= 100:
            raise InvalidInputError("Quiz score must be between 0 and 100", score=score)
        return score
    return correct * 100 // total


async def _finish(
    db: AsyncSession,
    redis: object,
    catalog: AchievementCatalog,
    user_id: str,
    action: ActionType,
    payload: dict[str, Any],
    base_points: int,
    starting_balance: int,
) -> ActionResult:
    engine = AchievementEngine(db, catalog, redis)
    unlocked = await engine.on_action(user_id, action, payload)
    gained = base_points + engine.bonus_points(unlocked)
    await apply_progress(db, user_id, GoalMetric.POINTS, gained)
    await db.commit()

    await engine.publish_unlocks()
    await publish_level_change(redis, user_id, starting_balance, starting_balance + gained)
    return ActionResult(action_type=action, points_awarded=gained, unlocked=unlocked)


async def quiz_completed(
    db: AsyncSession,
    redis: object,
    catalog: AchievementCatalog,
    user_id: str,
    action_id: str,
    correct: int,
    total: int,
    score: int | None = None,
    time_spent_seconds: float | None = None,
) -> ActionResult:
    if total <= 0 or correct < 0 or correct > total:
        raise InvalidInputError("Quiz answers out of range", correct=correct, total=total)
    final_score = quiz_score(correct, total, score)
    points = quiz_points(correct, total, time_spent_seconds)

    starting_balance = await balance(db, user_id)
    _, created = await award_once(
        db,
        user_id,
        points,
        reason=f"Quiz completed ({correct}/{total})",
        source=PointSource.QUIZ,
        metadata={"action_id": action_id, "correct": correct, "total": total, "score": final_score},
        idempotency_key=f"quiz:{action_id}",
    )
    if not created:
        await db.rollback()
        return ActionResult(action_type=ActionType.QUIZ_COMPLETED, duplicate=True)

    await counters.record_quiz(db, user_id, final_score)
    return await _finish(
        db, redis, catalog, user_id, ActionType.QUIZ_COMPLETED,
        {"score": final_score, "correct": correct, "total": total, "time_spent": time_spent_seconds},
        points, starting_balance,
    )


async def ai_conversation(
    db: AsyncSession,
    redis: object,
    catalog: AchievementCatalog,
    user_id: str,
    action_id: str,
) -> ActionResult:
    starting_balance = await balance(db, user_id)
    _, created = await award_once(
        db,
        user_id,
        AI_CONVERSATION_POINTS,
        reason="AI conversation",
        source=PointSource.AI_CONVERSATION,
        metadata={"action_id": action_id},
        idempotency_key=f"ai_conversation:{action_id}",
    )
    if not created:
        await db.rollback()
        return ActionResult(action_type=ActionType.AI_CONVERSATION, duplicate=True)

    await counters.record_ai_conversation(db, user_id)
    return await _finish(
        db, redis, catalog, user_id, ActionType.AI_CONVERSATION, {}, AI_CONVERSATION_POINTS, starting_balance
    )


async def account_event(
    db: AsyncSession,
    redis: object,
    catalog: AchievementCatalog,
    user_id: str,
    action: ActionType,
) -> ActionResult:
    """Registration or login. Flags are idempotent; only the achievement bonus pays out."""
    if action is ActionType.USER_REGISTERED:
        await counters.record_registration(db, user_id)
    elif action is ActionType.USER_LOGIN:
        await counters.record_login(db, user_id)
    else:
        raise InvalidInputError("Not an account action", action_type=action.value)

    starting_balance = await balance(db, user_id)
    return await _finish(db, redis, catalog, user_id, action, {}, 0, starting_balance)
