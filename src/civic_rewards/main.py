"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from civic_rewards.achievements.catalog import load_catalog
from civic_rewards.achievements.router import router as achievements_router
from civic_rewards.actions.router import router as actions_router
from civic_rewards.checkins.router import router as checkins_router
from civic_rewards.config import get_settings
from civic_rewards.database import close_db, init_db
from civic_rewards.goals.router import router as goals_router
from civic_rewards.health.router import router as health_router
from civic_rewards.leaderboard.router import router as leaderboard_router
from civic_rewards.ledger.router import router as ledger_router
from civic_rewards.middleware import setup_middleware
from civic_rewards.redis_client import close_redis, init_redis


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url, settings.redis_max_connections)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Civic Rewards API",
        description="Points, achievements, goals, leaderboards and event check-ins",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    # Loaded once; a bad catalog fails startup rather than the first request
    app.state.catalog = load_catalog(settings.achievement_catalog_path)

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(ledger_router)
    app.include_router(achievements_router)
    app.include_router(goals_router)
    app.include_router(leaderboard_router)
    app.include_router(checkins_router)
    app.include_router(actions_router)

    return app


app = create_app()
