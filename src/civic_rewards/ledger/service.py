"""Point ledger: append-only transactions, balance and level reads."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import func, insert, select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.db.models import PointTransaction
from civic_rewards.db.upsert import insert_ignore
from civic_rewards.errors import InvalidInputError, StorageUnavailableError
from civic_rewards.ledger.levels import compute_level

logger = logging.getLogger(__name__)


class PointSource(str, Enum):
    CHECKIN = "checkin"
    QUIZ = "quiz"
    AI_CONVERSATION = "ai_conversation"
    ACHIEVEMENT = "achievement"
    MANUAL = "manual"
    OTHER = "other"


def _validate_amount(amount: object) -> int:
    # bool is an int subclass but never a meaningful amount
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInputError("Point amount must be an integer", amount=repr(amount))
    return amount


async def award_once(
    db: AsyncSession,
    user_id: str,
    amount: int,
    reason: str,
    source: PointSource | str,
    metadata: dict[str, Any] | None = None,
    idempotency_key: str | None = None,
) -> tuple[int, bool]:
    """Append a transaction. Returns (transaction_id, created).

    With an idempotency key, a repeated call appends nothing and returns the
    id of the original transaction with created=False. The caller owns the
    commit.
    """
    amount = _validate_amount(amount)
    source = PointSource(source)
    if not reason:
        raise InvalidInputError("A reason is required for every point transaction")

    values = {
        "user_id": user_id,
        "amount": amount,
        "reason": reason,
        "source": source.value,
        "metadata": metadata or {},
        "idempotency_key": idempotency_key,
        "created_at": datetime.now(timezone.utc),
    }

    try:
        if idempotency_key is None:
            result = await db.execute(
                insert(PointTransaction.__table__).values(values).returning(PointTransaction.__table__.c.id)
            )
            return result.scalar_one(), True

        tx_id = await insert_ignore(db, PointTransaction, values, ["idempotency_key"])
        if tx_id is not None:
            return tx_id, True

        existing = await db.execute(
            select(PointTransaction.id).where(PointTransaction.idempotency_key == idempotency_key)
        )
        return existing.scalar_one(), False
    except (OperationalError, InterfaceError) as exc:
        logger.error("Ledger append failed for user %s (%s %+d)", user_id, source.value, amount)
        raise StorageUnavailableError("Point ledger is temporarily unavailable") from exc


async def award(
    db: AsyncSession,
    user_id: str,
    amount: int,
    reason: str,
    source: PointSource | str,
    metadata: dict[str, Any] | None = None,
    idempotency_key: str | None = None,
) -> int:
    """Append a transaction and return its id."""
    tx_id, _ = await award_once(db, user_id, amount, reason, source, metadata, idempotency_key)
    return tx_id


async def balance(db: AsyncSession, user_id: str, as_of: datetime | None = None) -> int:
    """Sum of the user's transactions up to ``as_of`` (default: everything)."""
    stmt = select(func.coalesce(func.sum(PointTransaction.amount), 0)).where(PointTransaction.user_id == user_id)
    if as_of is not None:
        stmt = stmt.where(PointTransaction.created_at <= as_of)
    try:
        result = await db.execute(stmt)
    except (OperationalError, InterfaceError) as exc:
        raise StorageUnavailableError("Point ledger is temporarily unavailable") from exc
    return int(result.scalar_one())


async def level_info(db: AsyncSession, user_id: str) -> dict:
    """Balance plus derived level for a user."""
    return compute_level(await balance(db, user_id))


async def history(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 20,
    since: datetime | None = None,
) -> tuple[list[PointTransaction], int]:
    """Newest-first page of transactions and the total matching count."""
    filters = [PointTransaction.user_id == user_id]
    if since is not None:
        filters.append(PointTransaction.created_at >= since)

    total_result = await db.execute(select(func.count()).select_from(PointTransaction).where(*filters))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(PointTransaction)
        .where(*filters)
        .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total
