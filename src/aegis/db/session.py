# src/aegis/db/session.py
from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from aegis.core.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    kwargs: dict = {
        "echo": bool(settings.DB_ECHO),
        "pool_pre_ping": True,  # protects against stale connections
    }
    # NullPool in tests so no connection is shared across event loops
    if settings.TESTING:
        kwargs["poolclass"] = NullPool
    return create_async_engine(settings.DATABASE_URL, **kwargs)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


# ---------------------------------------------------------------------------
# FastAPI dependency
#   One session (and one transaction) per request. Commit when the handler
#   returns, roll back when it raises.
# ---------------------------------------------------------------------------
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    maker: async_sessionmaker[AsyncSession] = request.app.state.async_sessionmaker
    async with maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
