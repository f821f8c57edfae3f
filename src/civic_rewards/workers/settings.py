"""arq worker settings module.

Import path for arq CLI: arq civic_rewards.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from civic_rewards.achievements.catalog import load_catalog
from civic_rewards.config import get_settings
from civic_rewards.database import close_db, init_db
from civic_rewards.redis_client import close_redis, get_redis, init_redis
from civic_rewards.workers.jobs import expire_goals, settle_pending_rewards

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the database and Redis pools and load the catalog."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url, settings.redis_max_connections)
    ctx["redis"] = get_redis()
    ctx["catalog"] = load_catalog(settings.achievement_catalog_path)
    logger.info("Rewards worker started (catalog=%s)", ctx["catalog"].version)


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    await close_db()
    await close_redis()
    logger.info("Rewards worker shut down")


class WorkerSettings:
    """arq worker settings for reward retries and goal expiry."""

    functions = [settle_pending_rewards, expire_goals]
    cron_jobs = [
        cron(settle_pending_rewards, second={0}, run_at_startup=True),
        cron(expire_goals, minute={5}, second={0}),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 4
