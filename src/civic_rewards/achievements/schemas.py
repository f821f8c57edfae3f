"""Pydantic response models for achievement endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class RequirementEntry(BaseModel):
    metric: str
    target: int


class AchievementDefinitionResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    icon: str
    reward_points: int
    rarity: str
    requirements: list[RequirementEntry]


class CatalogResponse(BaseModel):
    version: str
    achievements: list[AchievementDefinitionResponse]


class UserAchievementEntry(AchievementDefinitionResponse):
    unlocked: bool
    earned_at: datetime | None = None
    progress: int


class UserAchievementsResponse(BaseModel):
    user_id: str
    achievements: list[UserAchievementEntry]
    total_available: int
    total_unlocked: int


class UnlockedAchievementEntry(BaseModel):
    id: str
    name: str
    reward_points: int
    rarity: str
    earned_at: datetime
