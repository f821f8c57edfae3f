"""Health, readiness and version endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.config import get_settings
from civic_rewards.database import get_session
from civic_rewards.db.models import RewardOutbox
from civic_rewards.redis_client import ping_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    request: Request,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness: database, Redis and the loaded catalog.

    ``pending_rewards`` counts check-in rewards still waiting on the retry
    worker; a growing number means settlement keeps failing.
    """
    checks: dict[str, object] = {}
    pending_rewards = None

    try:
        result = await db.execute(
            select(func.count()).select_from(RewardOutbox).where(RewardOutbox.status == "pending")
        )
        pending_rewards = result.scalar_one()
        checks["database"] = "ok"
    except SQLAlchemyError as exc:
        checks["database"] = f"error: {exc}"

    checks["redis"] = await ping_redis()
    catalog = getattr(request.app.state, "catalog", None)
    checks["catalog"] = "ok" if catalog is not None else "error: not loaded"

    all_ok = all(v == "ok" for v in checks.values())
    return {
        "status": "ready" if all_ok else "degraded",
        "checks": checks,
        "pending_rewards": pending_rewards,
    }


@router.get("/version")
async def version(request: Request) -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
        "catalog_version": request.app.state.catalog.version,
    }
