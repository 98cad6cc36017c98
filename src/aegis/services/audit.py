# src/aegis/services/audit.py
from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from aegis.db.models import AuditLog


async def record_audit(
    db: AsyncSession,
    user_id: Optional[uuid.UUID],
    action: str,
    metadata: Optional[Mapping[str, Any]] = None,
) -> AuditLog:
    """Append an audit row in the caller's transaction; the caller commits."""
    entry = AuditLog(
        user_id=user_id,
        action=action,
        meta={k: _jsonable(v) for k, v in (metadata or {}).items()} or None,
    )
    db.add(entry)
    await db.flush()
    return entry


def _jsonable(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if hasattr(value, "value"):  # str enums
        return value.value
    return value
