"""Dialect-aware ``INSERT ... ON CONFLICT`` helpers.

Every write performed by a scheduled job is an upsert or a conditional update,
so overlapping runs converge on the same rows.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(session: AsyncSession, model: Any):
    """Return the ``insert()`` construct for the session's dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")


async def upsert(
    session: AsyncSession,
    model: Any,
    values: dict[str, Any],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
) -> None:
    """Insert a row or replace the listed columns of the conflicting one.

    With ``update_columns=[]`` the statement becomes insert-or-ignore.
    """
    stmt = insert_for(session, model).values(**values)
    if update_columns is None:
        update_columns = [c for c in values if c not in conflict_columns]
    if update_columns:
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_columns,
            set_={column: stmt.excluded[column] for column in update_columns},
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)
    await session.execute(stmt)
