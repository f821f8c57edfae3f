"""Reward step for recorded check-ins.

A check-in is committed together with a ``reward_outbox`` row before any
points move. Settling that row (points, achievements, goal progress) runs in
its own transaction so a storage failure here never undoes the check-in;
unsettled rows are retried by the worker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.achievements.catalog import AchievementCatalog, ActionType
from civic_rewards.achievements.engine import AchievementEngine
from civic_rewards.db.models import RewardOutbox, UnlockedAchievement
from civic_rewards.errors import StorageUnavailableError
from civic_rewards.feed.publisher import publish_level_change
from civic_rewards.goals.periods import GoalMetric
from civic_rewards.goals.service import apply_progress
from civic_rewards.ledger.service import PointSource, award_once, balance

logger = logging.getLogger(__name__)

OUTBOX_KIND_CHECKIN = "checkin"
RETRYABLE_ERRORS = (StorageUnavailableError, OperationalError, InterfaceError)


@dataclass
class RewardOutcome:
    points_awarded: int = 0
    unlocked: list[UnlockedAchievement] = field(default_factory=list)
    pending: bool = False


async def _load_pending(db: AsyncSession, outbox_id: int) -> RewardOutbox | None:
    result = await db.execute(
        select(RewardOutbox)
        .where(RewardOutbox.id == outbox_id, RewardOutbox.status == "pending")
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def settle_checkin_reward(
    db: AsyncSession,
    redis: object,
    catalog: AchievementCatalog,
    outbox_id: int,
) -> RewardOutcome:
    """Award the points owed for a recorded check-in and commit.

    Safe to call repeatedly: the ledger award is keyed on the check-in id
    and unlocks are unique per user. Returns ``pending=True`` when storage
    failed; the outbox row stays pending for a later retry.
    """
    try:
        outbox = await _load_pending(db, outbox_id)
        if outbox is None:
            return RewardOutcome()

        user_id = outbox.user_id
        payload = outbox.payload
        starting_balance = await balance(db, user_id)

        _, created = await award_once(
            db,
            user_id,
            payload["points"],
            reason=f"Check-in: {payload.get('event_title') or payload['event_id']}",
            source=PointSource.CHECKIN,
            metadata={"event_id": payload["event_id"], "checkin_id": payload["checkin_id"], "mode": payload["mode"]},
            idempotency_key=f"checkin:{payload['checkin_id']}",
        )

        engine = AchievementEngine(db, catalog, redis)
        unlocked = await engine.on_action(user_id, ActionType.CHECKIN_CREATED, {"event_id": payload["event_id"]})

        gained = (payload["points"] if created else 0) + engine.bonus_points(unlocked)
        await apply_progress(db, user_id, GoalMetric.POINTS, gained)
        if created:
            await apply_progress(db, user_id, GoalMetric.CHECKINS, 1)

        outbox.status = "processed"
        outbox.attempts += 1
        outbox.last_error = None
        outbox.processed_at = datetime.now(timezone.utc)
        await db.commit()
    except RETRYABLE_ERRORS as exc:
        await db.rollback()
        logger.warning("Check-in reward deferred (outbox=%s): %s", outbox_id, exc, exc_info=True)
        await _record_failure(db, outbox_id, exc)
        return RewardOutcome(pending=True)

    await engine.publish_unlocks()
    await publish_level_change(redis, user_id, starting_balance, starting_balance + gained)
    return RewardOutcome(points_awarded=gained, unlocked=unlocked)


async def _record_failure(db: AsyncSession, outbox_id: int, exc: Exception) -> None:
    try:
        await db.execute(
            update(RewardOutbox)
            .where(RewardOutbox.id == outbox_id)
            .values(attempts=RewardOutbox.attempts + 1, last_error=str(exc)[:500])
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except (OperationalError, InterfaceError):
        await db.rollback()
        logger.error("Could not record reward failure for outbox %s", outbox_id, exc_info=True)


async def retry_pending_rewards(
    db: AsyncSession,
    redis: object,
    catalog: AchievementCatalog,
    batch_size: int = 100,
) -> dict[str, int]:
    """Settle pending outbox rows, oldest first."""
    result = await db.execute(
        select(RewardOutbox.id)
        .where(RewardOutbox.status == "pending", RewardOutbox.kind == OUTBOX_KIND_CHECKIN)
        .order_by(RewardOutbox.created_at, RewardOutbox.id)
        .limit(batch_size)
    )
    outbox_ids = list(result.scalars().all())

    settled = failed = 0
    for outbox_id in outbox_ids:
        outcome = await settle_checkin_reward(db, redis, catalog, outbox_id)
        if outcome.pending:
            failed += 1
        else:
            settled += 1

    if outbox_ids:
        logger.info("Reward retry: %d settled, %d still pending", settled, failed)
    return {"settled": settled, "pending": failed}
