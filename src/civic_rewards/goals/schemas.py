"""Pydantic request/response models for goal endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from civic_rewards.goals.periods import GoalType


class GoalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    goal_type: str
    target_value: int
    current_value: int
    period_start: date
    period_end: date
    status: str
    auto_generated: bool
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


class CurrentGoalResponse(BaseModel):
    goal: GoalResponse | None


class GoalListResponse(BaseModel):
    goals: list[GoalResponse]


class AutoGoalRequest(BaseModel):
    goal_type: GoalType = GoalType.MONTHLY_POINTS
    level: int | None = Field(None, ge=1)


class CreateGoalRequest(BaseModel):
    goal_type: GoalType = GoalType.MONTHLY_POINTS
    target_value: int = Field(..., gt=0)


class UpdateGoalRequest(BaseModel):
    target_value: int = Field(..., gt=0)
