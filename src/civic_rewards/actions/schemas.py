"""Pydantic request/response models for action intake endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from civic_rewards.achievements.schemas import UnlockedAchievementEntry


class QuizCompletedRequest(BaseModel):
    user_id: str | None = Field(None, description="Target user; defaults to the caller")
    action_id: str = Field(..., min_length=1, max_length=128)
    correct: int = Field(..., ge=0)
    total: int = Field(..., gt=0)
    score: int | None = Field(None, ge=0, le=100)
    time_spent_seconds: float | None = Field(None, ge=0)

    @model_validator(mode="after")
    def correct_within_total(self) -> QuizCompletedRequest:
        if self.correct > self.total:
            raise ValueError("correct cannot exceed total")
        return self


class AIConversationRequest(BaseModel):
    user_id: str | None = None
    action_id: str = Field(..., min_length=1, max_length=128)


class AccountEventRequest(BaseModel):
    user_id: str | None = None


class ActionResponse(BaseModel):
    action_type: str
    points_awarded: int
    achievements_unlocked: list[UnlockedAchievementEntry]
    duplicate: bool = False
