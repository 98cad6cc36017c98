# src/aegis/api/routers/admin.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import sqlalchemy as sa
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.app_logger import get_logger
from aegis.auth.deps import require_roles
from aegis.db.models import AuditLog, Grievance, GrievanceStatus, User, UserRole, UserStatus
from aegis.db.models.enums import PENDING_GRIEVANCE_STATUSES
from aegis.db.queries import apply_filters, clamp_offset, clamp_page
from aegis.db.session import get_db
from aegis.errors import BadRequest, NotFound
from aegis.schemas.common import ok
from aegis.schemas.users import UserListItem, UserResponse, UserSummary, summarize
from aegis.services.audit import record_audit

router = APIRouter(prefix="/api/admin", tags=["admin"])
log = get_logger("routers.admin")

require_admin = require_roles(UserRole.ADMIN)

USERS_DEFAULT_LIMIT = 50
USERS_MAX_LIMIT = 100
AUDIT_DEFAULT_LIMIT = 100
AUDIT_MAX_LIMIT = 500


# ---- Schemas ----
class RoleUpdate(BaseModel):
    role: UserRole


class StatusUpdate(BaseModel):
    status: UserStatus


class AuditLogOut(BaseModel):
    id: UUID
    user: Optional[UserSummary] = None
    action: str
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime


class SystemStats(BaseModel):
    total_users: int
    active_users: int
    total_grievances: int
    pending_grievances: int
    resolved_grievances: int
    users_by_role: dict[str, int]


# ---- Helpers ----
async def _get_user_or_404(db: AsyncSession, user_id: UUID) -> User:
    user = (await db.execute(sa.select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


async def _count(db: AsyncSession, model, *where) -> int:
    stmt = sa.select(sa.func.count()).select_from(model)
    if where:
        stmt = stmt.where(*where)
    return int((await db.execute(stmt)).scalar_one())


# ---- Routes ----
@router.get("/users")
async def list_users(
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
    search: Optional[str] = None,
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    limit, offset = clamp_page(page, limit, default_limit=USERS_DEFAULT_LIMIT, max_limit=USERS_MAX_LIMIT)
    stmt = apply_filters(
        sa.select(User),
        equals={User.role: role, User.status: status},
        search=(search, (User.first_name, User.last_name, User.email)),
    )
    rows = (
        await db.execute(stmt.order_by(User.created_at.desc()).limit(limit).offset(offset))
    ).scalars().all()
    return ok([UserListItem.model_validate(u) for u in rows])


@router.get("/users/{user_id}")
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return ok(UserResponse.model_validate(await _get_user_or_404(db, user_id)))


@router.put("/users/{user_id}/role")
async def update_user_role(
    user_id: UUID,
    payload: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if user_id == admin.id:
        raise BadRequest("Cannot change your own role")
    target = await _get_user_or_404(db, user_id)

    old_role = target.role
    target.role = payload.role
    await record_audit(
        db,
        admin.id,
        "UPDATE_USER_ROLE",
        {"target_user_id": target.id, "old_role": old_role, "new_role": payload.role},
    )
    await db.commit()
    await db.refresh(target)
    log.info("Role of %s changed %s -> %s by %s", target.id, old_role.value, payload.role.value, admin.id)
    return ok(UserListItem.model_validate(target), "User role updated successfully")


@router.put("/users/{user_id}/status")
async def update_user_status(
    user_id: UUID,
    payload: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if user_id == admin.id:
        raise BadRequest("Cannot change your own status")
    target = await _get_user_or_404(db, user_id)

    old_status = target.status
    target.status = payload.status
    await record_audit(
        db,
        admin.id,
        "UPDATE_USER_STATUS",
        {"target_user_id": target.id, "old_status": old_status, "new_status": payload.status},
    )
    await db.commit()
    await db.refresh(target)
    return ok(UserListItem.model_validate(target), "User status updated successfully")


@router.get("/audit-logs")
async def list_audit_logs(
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    limit, offset = clamp_offset(limit, offset, default_limit=AUDIT_DEFAULT_LIMIT, max_limit=AUDIT_MAX_LIMIT)
    rows = (
        await db.execute(
            sa.select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit).offset(offset)
        )
    ).scalars().all()

    ids = {r.user_id for r in rows if r.user_id is not None}
    users = {}
    if ids:
        users = {u.id: u for u in (await db.execute(sa.select(User).where(User.id.in_(ids)))).scalars()}

    return ok([
        AuditLogOut(
            id=r.id,
            user=summarize(users.get(r.user_id)),
            action=r.action,
            metadata=r.meta,
            created_at=r.created_at,
        )
        for r in rows
    ])


@router.get("/stats")
async def system_stats(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    by_role = await db.execute(sa.select(User.role, sa.func.count()).group_by(User.role))
    stats = SystemStats(
        total_users=await _count(db, User),
        active_users=await _count(db, User, User.status == UserStatus.ACTIVE),
        total_grievances=await _count(db, Grievance),
        pending_grievances=await _count(db, Grievance, Grievance.status.in_(PENDING_GRIEVANCE_STATUSES)),
        resolved_grievances=await _count(db, Grievance, Grievance.status == GrievanceStatus.RESOLVED),
        users_by_role={role.value: int(n) for role, n in by_role.all()},
    )
    return ok(stats)
