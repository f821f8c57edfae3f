"""Periodic maintenance jobs run by the arq worker."""

from __future__ import annotations

import logging

from civic_rewards.checkins.rewards import retry_pending_rewards
from civic_rewards.config import get_settings
from civic_rewards.database import get_session_factory
from civic_rewards.goals.service import expire_overdue

logger = logging.getLogger(__name__)


async def settle_pending_rewards(ctx: dict) -> dict[str, int]:  # type: ignore[type-arg]
    """Retry check-in rewards whose first attempt hit a storage failure."""
    settings = get_settings()
    async with get_session_factory()() as db:
        return await retry_pending_rewards(
            db,
            ctx.get("redis"),
            ctx["catalog"],
            batch_size=settings.reward_retry_batch_size,
        )


async def expire_goals(ctx: dict) -> int:  # type: ignore[type-arg]
    """Sweep goals whose period ended without reaching the target."""
    async with get_session_factory()() as db:
        expired = await expire_overdue(db)
        await db.commit()
    return expired
