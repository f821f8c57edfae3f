"""Goal API endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.auth.dependencies import Principal, get_current_principal, resolve_user
from civic_rewards.dependencies import get_db
from civic_rewards.errors import NotFoundError
from civic_rewards.goals import service as goals
from civic_rewards.goals.periods import GoalType
from civic_rewards.goals.schemas import (
    AutoGoalRequest,
    CreateGoalRequest,
    CurrentGoalResponse,
    GoalListResponse,
    GoalResponse,
    UpdateGoalRequest,
)
from civic_rewards.ledger.service import level_info

router = APIRouter(prefix="/api/v1", tags=["Goals"])


@router.get("/users/{user_id}/goals", response_model=GoalListResponse)
async def list_goals(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Recent goals, newest period first."""
    user_id = resolve_user(principal, user_id)
    rows = await goals.list_goals(db, user_id)
    await db.commit()
    return GoalListResponse(goals=[GoalResponse.model_validate(g) for g in rows])


@router.get("/users/{user_id}/goals/current", response_model=CurrentGoalResponse)
async def get_current_goal(
    user_id: str,
    goal_type: GoalType = Query(GoalType.MONTHLY_POINTS),
    on: date | None = Query(None),
    active_only: bool = Query(False),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Goal for the period containing ``on`` (default today)."""
    user_id = resolve_user(principal, user_id)
    if active_only:
        goal = await goals.get_active_goal(db, user_id, goal_type, on)
    else:
        goal = await goals.get_period_goal(db, user_id, goal_type, on)
    # Persist any lazy expiry performed by the read
    await db.commit()
    return CurrentGoalResponse(goal=GoalResponse.model_validate(goal) if goal else None)


@router.post("/users/{user_id}/goals/auto", response_model=GoalResponse)
async def auto_create_goal(
    user_id: str,
    body: AutoGoalRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Provision the current period's goal; returns the existing one if present."""
    user_id = resolve_user(principal, user_id)
    level = body.level
    if level is None:
        level = (await level_info(db, user_id))["level"]
    goal = await goals.auto_create_goal(db, user_id, body.goal_type, level)
    await db.commit()
    return GoalResponse.model_validate(goal)


@router.post("/users/{user_id}/goals", response_model=GoalResponse, status_code=201)
async def create_goal(
    user_id: str,
    body: CreateGoalRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Create a goal with a custom target for the current period."""
    user_id = resolve_user(principal, user_id)
    goal = await goals.create_goal(db, user_id, body.goal_type, body.target_value)
    await db.commit()
    return GoalResponse.model_validate(goal)


@router.patch("/users/{user_id}/goals/{goal_id}", response_model=GoalResponse)
async def update_goal(
    user_id: str,
    goal_id: int,
    body: UpdateGoalRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Change the target of an active goal."""
    user_id = resolve_user(principal, user_id)
    goal = await goals.get_goal(db, goal_id)
    if goal.user_id != user_id:
        raise NotFoundError("Goal not found", goal_id=goal_id)
    goal = await goals.update_target(db, goal, body.target_value)
    await db.commit()
    return GoalResponse.model_validate(goal)
