# src/aegis/api/routers/dev.py
"""
Self-service role switching and fixture seeding for local development.

Mounted only when ``DEV_ROUTES_ENABLED`` is true.
"""
from __future__ import annotations

import uuid

import sqlalchemy as sa
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.app_logger import get_logger
from aegis.auth.deps import get_current_user
from aegis.db.models import User, UserRole, UserStatus
from aegis.db.session import get_db
from aegis.schemas.common import ok
from aegis.schemas.users import UserListItem
from aegis.services.audit import record_audit

router = APIRouter(tags=["dev"])
log = get_logger("routers.dev")

DUMMY_USERS = (
    ("Dr. Strange", "strange@iitmandi.ac.in", UserRole.FACULTY),
    ("Tony Stark", "stark@iitmandi.ac.in", UserRole.AUTHORITY),
    ("Steve Rogers", "rogers@students.iitmandi.ac.in", UserRole.STUDENT),
)


class OwnRoleUpdate(BaseModel):
    role: UserRole


@router.put("/api/user/role")
async def update_own_role(
    payload: OwnRoleUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    old_role = user.role
    user.role = payload.role
    await record_audit(db, user.id, "UPDATE_OWN_ROLE", {"old_role": old_role, "new_role": payload.role})
    await db.commit()
    await db.refresh(user)
    return ok(UserListItem.model_validate(user), "Your role has been updated")


@router.post("/api/dev/seed")
async def seed_dummy_users(db: AsyncSession = Depends(get_db)):
    created = 0
    for name, email, role in DUMMY_USERS:
        exists = (await db.execute(sa.select(User.id).where(User.email == email))).first()
        if exists:
            continue
        first, _, last = name.partition(" ")
        db.add(
            User(
                email=email,
                google_id=str(uuid.uuid4()),
                role=role,
                status=UserStatus.ACTIVE,
                first_name=first,
                last_name=last,
                profile_picture="",
            )
        )
        created += 1
    await db.commit()
    log.info("Seeded %d dummy user(s)", created)
    return ok("Dummy users created. You can now assign them tasks.")
