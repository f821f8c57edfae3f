"""Point ledger API endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.auth.dependencies import Principal, get_current_principal, require_elevated, resolve_user
from civic_rewards.dependencies import get_db, get_redis_dep
from civic_rewards.errors import InvalidInputError
from civic_rewards.feed.publisher import publish_level_change
from civic_rewards.goals.periods import GoalMetric
from civic_rewards.goals.service import apply_progress
from civic_rewards.ledger import service as ledger
from civic_rewards.ledger.levels import compute_level
from civic_rewards.ledger.schemas import (
    BalanceResponse,
    ManualAwardRequest,
    ManualAwardResponse,
    TransactionEntry,
    TransactionHistoryResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Points"])


@router.get("/users/{user_id}/points", response_model=BalanceResponse)
async def get_points(
    user_id: str,
    as_of: datetime | None = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Balance and level for a user (``me`` for the caller)."""
    user_id = resolve_user(principal, user_id)
    if as_of is None:
        info = await ledger.level_info(db, user_id)
    else:
        info = compute_level(await ledger.balance(db, user_id, as_of))
    return BalanceResponse(user_id=user_id, **info)


@router.get("/users/{user_id}/points/history", response_model=TransactionHistoryResponse)
async def get_points_history(
    user_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    since: datetime | None = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Paginated transaction history, newest first."""
    user_id = resolve_user(principal, user_id)
    rows, total = await ledger.history(db, user_id, page=page, per_page=per_page, since=since)
    return TransactionHistoryResponse(
        transactions=[
            TransactionEntry(
                id=tx.id,
                amount=tx.amount,
                reason=tx.reason,
                source=tx.source,
                metadata=tx.details or {},
                created_at=tx.created_at,
            )
            for tx in rows
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/users/{user_id}/points", response_model=ManualAwardResponse, status_code=201)
async def add_points(
    user_id: str,
    body: ManualAwardRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Manual award or correction (administrators only)."""
    require_elevated(principal)
    user_id = resolve_user(principal, user_id)
    if body.amount == 0:
        raise InvalidInputError("Amount must be non-zero", amount=body.amount)

    before = await ledger.balance(db, user_id)
    tx_id = await ledger.award(
        db,
        user_id,
        body.amount,
        reason=body.reason,
        source=body.source,
        metadata={**body.metadata, "granted_by": principal.user_id},
    )
    await apply_progress(db, user_id, GoalMetric.POINTS, body.amount)
    await db.commit()

    after = before + body.amount
    await publish_level_change(redis, user_id, before, after)
    info = compute_level(after)
    return ManualAwardResponse(transaction_id=tx_id, balance=after, level=info["level"])
