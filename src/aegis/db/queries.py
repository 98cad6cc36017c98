# src/aegis/db/queries.py
"""
Helpers shared by the list endpoints.

All caller-supplied values reach the database as bound parameters: ``equals``
filters compile to ``column = :param`` and free-text search compiles to
``column ILIKE :param`` with LIKE wildcards in the input escaped. An absent
filter adds no clause at all.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as pg_dialect
from sqlalchemy.dialects import sqlite as sqlite_dialect
from sqlalchemy.ext.asyncio import AsyncSession

LIKE_ESCAPE = "\\"


def clamp_page(
    page: Optional[int],
    limit: Optional[int],
    *,
    default_limit: int,
    max_limit: int,
) -> Tuple[int, int]:
    """Return ``(limit, offset)`` for 1-based ``page``; page floors at 1, limit clamps to 1..max."""
    page = max(page or 1, 1)
    limit = default_limit if limit is None else limit
    limit = min(max(limit, 1), max_limit)
    return limit, (page - 1) * limit


def clamp_offset(limit: Optional[int], offset: Optional[int], *, default_limit: int, max_limit: int) -> Tuple[int, int]:
    limit = default_limit if limit is None else limit
    return min(max(limit, 1), max_limit), max(offset or 0, 0)


def escape_like(text: str) -> str:
    return (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def search_clause(text: str, columns: Sequence[Any]):
    pattern = f"%{escape_like(text)}%"
    return sa.or_(*(col.ilike(pattern, escape=LIKE_ESCAPE) for col in columns))


def apply_filters(
    stmt,
    equals: Optional[Mapping[Any, Any]] = None,
    search: Optional[Tuple[Optional[str], Iterable[Any]]] = None,
):
    """
    Append WHERE clauses for the filters that are actually present.

    ``equals`` maps a column to a value; ``None`` means "no filter", not
    "match NULL". ``search`` is ``(text, columns)``; blank text is ignored.
    """
    for column, value in (equals or {}).items():
        if value is None:
            continue
        stmt = stmt.where(column == value)

    if search is not None:
        text, columns = search
        if text is not None and text.strip():
            stmt = stmt.where(search_clause(text.strip(), list(columns)))
    return stmt


def dialect_insert(session: AsyncSession, table):
    """
    INSERT construct for the bound dialect, so callers can use
    ``on_conflict_do_nothing`` / ``on_conflict_do_update``.
    """
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return pg_dialect.insert(table)
    if name == "sqlite":
        return sqlite_dialect.insert(table)
    raise RuntimeError(f"Unsupported dialect for upserts: {name}")
