# src/aegis/api/routers/health.py
from __future__ import annotations

import sqlalchemy as sa
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.app_logger import get_logger
from aegis.db.session import get_db

router = APIRouter(tags=["health"])
log = get_logger("routers.health")


@router.get("/")
async def root():
    return {"status": "ok", "message": "Backend is running"}


@router.get("/healthz")
async def healthz(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(sa.text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        log.warning("healthz: database ping failed", exc_info=True)
        await db.rollback()
        db_ok = False
    return {"status": "ok", "db": db_ok}
