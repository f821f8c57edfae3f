"""Action intake endpoints called by the quiz, AI and identity services."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.achievements.catalog import AchievementCatalog, ActionType
from civic_rewards.achievements.router import unlocked_entries
from civic_rewards.actions import service as actions
from civic_rewards.actions.schemas import (
    AccountEventRequest,
    ActionResponse,
    AIConversationRequest,
    QuizCompletedRequest,
)
from civic_rewards.auth.dependencies import Principal, get_current_principal, resolve_user
from civic_rewards.dependencies import get_catalog, get_db, get_redis_dep

router = APIRouter(prefix="/api/v1/actions", tags=["Actions"])


def _response(catalog: AchievementCatalog, result: actions.ActionResult) -> ActionResponse:
    return ActionResponse(
        action_type=result.action_type.value,
        points_awarded=result.points_awarded,
        achievements_unlocked=unlocked_entries(catalog, result.unlocked),
        duplicate=result.duplicate,
    )


@router.post("/quiz-completed", response_model=ActionResponse)
async def quiz_completed(
    body: QuizCompletedRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
    catalog: AchievementCatalog = Depends(get_catalog),
):
    user_id = resolve_user(principal, body.user_id or "me")
    result = await actions.quiz_completed(
        db, redis, catalog, user_id,
        action_id=body.action_id,
        correct=body.correct,
        total=body.total,
        score=body.score,
        time_spent_seconds=body.time_spent_seconds,
    )
    return _response(catalog, result)


@router.post("/ai-conversation", response_model=ActionResponse)
async def ai_conversation(
    body: AIConversationRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
    catalog: AchievementCatalog = Depends(get_catalog),
):
    user_id = resolve_user(principal, body.user_id or "me")
    result = await actions.ai_conversation(db, redis, catalog, user_id, action_id=body.action_id)
    return _response(catalog, result)


@router.post("/registered", response_model=ActionResponse)
async def user_registered(
    body: AccountEventRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
    catalog: AchievementCatalog = Depends(get_catalog),
):
    user_id = resolve_user(principal, body.user_id or "me")
    result = await actions.account_event(db, redis, catalog, user_id, ActionType.USER_REGISTERED)
    return _response(catalog, result)


@router.post("/login", response_model=ActionResponse)
async def user_login(
    body: AccountEventRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
    catalog: AchievementCatalog = Depends(get_catalog),
):
    user_id = resolve_user(principal, body.user_id or "me")
    result = await actions.account_event(db, redis, catalog, user_id, ActionType.USER_LOGIN)
    return _response(catalog, result)
