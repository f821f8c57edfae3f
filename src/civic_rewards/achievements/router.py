"""Achievement API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.achievements.catalog import AchievementCatalog, AchievementDefinition
from civic_rewards.achievements.engine import AchievementEngine
from civic_rewards.achievements.schemas import (
    AchievementDefinitionResponse,
    CatalogResponse,
    RequirementEntry,
    UnlockedAchievementEntry,
    UserAchievementEntry,
    UserAchievementsResponse,
)
from civic_rewards.auth.dependencies import Principal, get_current_principal, resolve_user
from civic_rewards.db.models import UnlockedAchievement
from civic_rewards.dependencies import get_catalog, get_db
from civic_rewards.errors import NotFoundError

router = APIRouter(prefix="/api/v1", tags=["Achievements"])


def definition_fields(definition: AchievementDefinition) -> dict:
    return {
        "id": definition.id,
        "name": definition.name,
        "description": definition.description,
        "category": definition.category,
        "icon": definition.icon,
        "reward_points": definition.reward_points,
        "rarity": definition.rarity,
        "requirements": [RequirementEntry(metric=r.metric.value, target=r.target) for r in definition.requirements],
    }


def unlocked_entries(catalog: AchievementCatalog, rows: list[UnlockedAchievement]) -> list[UnlockedAchievementEntry]:
    """Shape engine output for API responses."""
    entries = []
    for row in rows:
        definition = catalog.get(row.achievement_id)
        if definition is None:
            continue
        entries.append(UnlockedAchievementEntry(
            id=definition.id,
            name=definition.name,
            reward_points=definition.reward_points,
            rarity=definition.rarity,
            earned_at=row.earned_at,
        ))
    return entries


# ── Public endpoints ──


@router.get("/achievements", response_model=CatalogResponse)
async def list_achievements(catalog: AchievementCatalog = Depends(get_catalog)):
    """The achievement catalog."""
    return CatalogResponse(
        version=catalog.version,
        achievements=[AchievementDefinitionResponse(**definition_fields(d)) for d in catalog.definitions],
    )


@router.get("/achievements/{achievement_id}", response_model=AchievementDefinitionResponse)
async def get_achievement(achievement_id: str, catalog: AchievementCatalog = Depends(get_catalog)):
    definition = catalog.get(achievement_id)
    if definition is None:
        raise NotFoundError("Achievement not found", achievement_id=achievement_id)
    return AchievementDefinitionResponse(**definition_fields(definition))


# ── Authenticated endpoints ──


@router.get("/users/{user_id}/achievements", response_model=UserAchievementsResponse)
async def get_user_achievements(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    catalog: AchievementCatalog = Depends(get_catalog),
):
    """Unlocked and locked achievements with progress percentages."""
    user_id = resolve_user(principal, user_id)
    engine = AchievementEngine(db, catalog)
    items = await engine.progress(user_id)
    entries = [
        UserAchievementEntry(
            **definition_fields(item["definition"]),
            unlocked=item["unlocked"],
            earned_at=item["earned_at"],
            progress=item["progress"],
        )
        for item in items
    ]
    return UserAchievementsResponse(
        user_id=user_id,
        achievements=entries,
        total_available=len(catalog),
        total_unlocked=sum(1 for e in entries if e.unlocked),
    )
