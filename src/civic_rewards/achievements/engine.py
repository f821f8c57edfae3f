"""Achievement rule engine: evaluates catalog requirements on each action."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.achievements.catalog import (
    FLAG_ACTIONS,
    AchievementCatalog,
    AchievementDefinition,
    ActionType,
    Metric,
    MetricKind,
    Requirement,
)
from civic_rewards.achievements.counters import counter_value, get_stats
from civic_rewards.db.models import UnlockedAchievement, UserEngagementStats
from civic_rewards.db.upsert import insert_ignore
from civic_rewards.feed.publisher import publish_activity
from civic_rewards.ledger.service import PointSource, award

logger = logging.getLogger(__name__)


def _payload_value(metric: Metric, action: ActionType, payload: dict[str, Any]) -> int | None:
    """Value of a single-event metric on the triggering action, if it carries one."""
    if metric is Metric.QUIZ_SCORE and action is ActionType.QUIZ_COMPLETED:
        score = payload.get("score")
        return int(score) if score is not None else None
    return None


def requirement_met(
    requirement: Requirement,
    stats: UserEngagementStats | None,
    action: ActionType,
    payload: dict[str, Any],
) -> bool:
    kind = requirement.metric.kind
    if kind is MetricKind.COUNT:
        return counter_value(stats, requirement.metric) >= requirement.target
    if kind is MetricKind.THRESHOLD:
        value = _payload_value(requirement.metric, action, payload)
        return value is not None and value >= requirement.target
    # FLAG
    if FLAG_ACTIONS[requirement.metric] is action:
        return True
    return counter_value(stats, requirement.metric) >= requirement.target


def requirement_progress(requirement: Requirement, stats: UserEngagementStats | None) -> float:
    current = counter_value(stats, requirement.metric)
    return min(100.0, current / requirement.target * 100)


class AchievementEngine:
    """Unlocks catalog achievements for a user as actions arrive."""

    def __init__(self, db: AsyncSession, catalog: AchievementCatalog, redis: object = None) -> None:
        self.db = db
        self.catalog = catalog
        self.redis = redis
        # Unlocks announced only once the caller has committed them
        self._announcements: list[tuple[str, dict[str, Any]]] = []

    async def unlocked_ids(self, user_id: str) -> dict[str, datetime]:
        result = await self.db.execute(
            select(UnlockedAchievement.achievement_id, UnlockedAchievement.earned_at)
            .where(UnlockedAchievement.user_id == user_id)
        )
        return {row.achievement_id: row.earned_at for row in result}

    async def on_action(
        self,
        user_id: str,
        action_type: ActionType | str,
        payload: dict[str, Any] | None = None,
    ) -> list[UnlockedAchievement]:
        """Evaluate candidate achievements for an action.

        Returns the achievements unlocked by this call (empty if none).
        Counters must already reflect the action. The caller owns the commit
        and calls ``publish_unlocks`` once it has committed.
        """
        action = ActionType(action_type)
        payload = payload or {}

        candidates = self.catalog.candidates_for(action)
        if not candidates:
            return []

        already = await self.unlocked_ids(user_id)
        pending = [d for d in candidates if d.id not in already]
        if not pending:
            return []

        stats = await get_stats(self.db, user_id)

        unlocked_row_ids: list[int] = []
        for definition in pending:
            if not all(requirement_met(r, stats, action, payload) for r in definition.requirements):
                continue
            row_id = await self._unlock(user_id, definition)
            if row_id is not None:
                unlocked_row_ids.append(row_id)

        if not unlocked_row_ids:
            return []

        result = await self.db.execute(
            select(UnlockedAchievement)
            .where(UnlockedAchievement.id.in_(unlocked_row_ids))
            .order_by(UnlockedAchievement.id)
        )
        return list(result.scalars().all())

    async def _unlock(self, user_id: str, definition: AchievementDefinition) -> int | None:
        """Insert the unlock row and award its points.

        The unique (user_id, achievement_id) index is the idempotency
        boundary: a conflict means another call already unlocked it, so
        nothing is awarded here.
        """
        now = datetime.now(timezone.utc)
        row_id = await insert_ignore(
            self.db,
            UnlockedAchievement,
            {
                "user_id": user_id,
                "achievement_id": definition.id,
                "catalog_version": self.catalog.version,
                "earned_at": now,
            },
            ["user_id", "achievement_id"],
        )
        if row_id is None:
            logger.debug("Achievement %s already unlocked for %s", definition.id, user_id)
            return None

        await award(
            self.db,
            user_id,
            definition.reward_points,
            reason=definition.name,
            source=PointSource.ACHIEVEMENT,
            metadata={"achievement_id": definition.id, "catalog_version": self.catalog.version},
            idempotency_key=f"achievement:{definition.id}:{user_id}",
        )
        logger.info("Achievement unlocked: %s for user %s (+%d)", definition.id, user_id, definition.reward_points)

        self._announcements.append((user_id, {
            "achievement_id": definition.id,
            "name": definition.name,
            "rarity": definition.rarity,
            "reward_points": definition.reward_points,
        }))
        return row_id

    async def publish_unlocks(self) -> None:
        """Announce the unlocks from this engine's calls. Call after commit."""
        announcements, self._announcements = self._announcements, []
        for user_id, data in announcements:
            await publish_activity(self.redis, "achievement_unlocked", user_id, data)

    def bonus_points(self, unlocked: list[UnlockedAchievement]) -> int:
        """Points awarded for a batch of unlocks."""
        total = 0
        for row in unlocked:
            definition = self.catalog.get(row.achievement_id)
            if definition is not None:
                total += definition.reward_points
        return total

    async def progress(self, user_id: str) -> list[dict[str, Any]]:
        """Every catalog definition with unlock state and progress percentage."""
        already = await self.unlocked_ids(user_id)
        stats = await get_stats(self.db, user_id)

        items = []
        for definition in self.catalog.definitions:
            earned_at = already.get(definition.id)
            if earned_at is not None:
                percent = 100
            else:
                parts = [requirement_progress(r, stats) for r in definition.requirements]
                percent = int(sum(parts) / len(parts))
            items.append({
                "definition": definition,
                "unlocked": earned_at is not None,
                "earned_at": earned_at,
                "progress": percent,
            })
        return items
