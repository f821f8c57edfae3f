"""Best-effort activity feed broadcasts over Redis pub/sub."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from civic_rewards.ledger.levels import compute_level

logger = logging.getLogger(__name__)

ACTIVITY_CHANNEL = "pubsub:activity"


async def publish_activity(redis: object, event_type: str, user_id: str, data: dict[str, Any]) -> None:
    """Publish an activity entry. Failures are logged, never raised."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            ACTIVITY_CHANNEL,
            json.dumps({
                "type": event_type,
                "user_id": user_id,
                "data": data,
                "at": datetime.now(timezone.utc).isoformat(),
            }),
        )
    except Exception:
        logger.warning("Failed to publish %s activity", event_type, exc_info=True)


async def publish_level_change(redis: object, user_id: str, old_balance: int, new_balance: int) -> None:
    """Announce a level change when a balance move crosses a level boundary."""
    old_level = compute_level(old_balance)["level"]
    new_level = compute_level(new_balance)["level"]
    if old_level == new_level:
        return
    await publish_activity(redis, "level_changed", user_id, {
        "old_level": old_level,
        "new_level": new_level,
        "balance": new_balance,
    })
