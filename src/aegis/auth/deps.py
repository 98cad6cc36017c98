# src/aegis/auth/deps.py
from __future__ import annotations

import uuid
from typing import Callable, Optional

import sqlalchemy as sa
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.app_logger import get_logger
from aegis.db.models import User, UserRole, UserStatus
from aegis.db.session import get_db
from aegis.errors import Forbidden, Unauthenticated
from aegis.sessions import USER_ID_KEY, SessionStore, get_session_store, session_id_from

log = get_logger("auth.deps")


async def _resolve_user(
    request: Request,
    db: AsyncSession,
    store: SessionStore,
) -> Optional[User]:
    """Map the session cookie to a User row, or None when nothing resolves."""
    sid = session_id_from(request)
    if not sid:
        return None

    data = await store.get(sid)
    if not data or not data.get(USER_ID_KEY):
        return None

    try:
        user_id = uuid.UUID(str(data[USER_ID_KEY]))
    except ValueError:
        log.warning("Session sid=%s… holds a malformed user id; dropping it", sid[:8])
        await store.delete(sid)
        return None

    user = (await db.execute(sa.select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        # the account is gone; the session is useless from now on
        await store.delete(sid)
        return None
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
) -> User:
    user = await _resolve_user(request, db, store)
    if user is None:
        raise Unauthenticated()
    if user.status != UserStatus.ACTIVE:
        raise Forbidden(f"Account is {user.status.value}")
    return user


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
) -> Optional[User]:
    """Browsing endpoints: no session just turns personalization off."""
    user = await _resolve_user(request, db, store)
    if user is None or user.status != UserStatus.ACTIVE:
        return None
    return user


def require_roles(*roles: UserRole) -> Callable:
    """
    Dependency factory: resolve the current user and require one of ``roles``.

    Usage:
        user: User = Depends(require_roles(UserRole.ADMIN))
    """
    allowed = frozenset(roles)

    async def _dep(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise Forbidden()
        return user

    return _dep
