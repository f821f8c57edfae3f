"""Dialect-aware INSERT ... ON CONFLICT DO NOTHING."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from civic_rewards.db.base import Base


async def insert_ignore(
    db: AsyncSession,
    model: type[Base],
    values: dict[str, Any],
    conflict_columns: list[str],
    returning: str = "id",
) -> Any | None:
    """Insert a row unless it collides with a unique index.

    ``values`` are keyed by column name. Returns the ``returning`` column of
    the new row, or None when the unique index already held a matching row.
    """
    table = model.__table__
    dialect = db.bind.dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(table)
    elif dialect == "sqlite":
        stmt = sqlite_insert(table)
    else:
        msg = f"insert_ignore is not supported on {dialect}"
        raise NotImplementedError(msg)

    stmt = (
        stmt.values(values)
        .on_conflict_do_nothing(index_elements=conflict_columns)
        .returning(table.c[returning])
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
