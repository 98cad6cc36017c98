# src/aegis/api/routers/tasks.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

import sqlalchemy as sa
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.auth import policies
from aegis.auth.deps import get_current_user
from aegis.db.models import PersonalTask, Priority, TaskStatus, User
from aegis.db.session import get_db
from aegis.errors import NotFound
from aegis.schemas.common import ok

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


# ---- Schemas ----
class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None
    tags: list[str] = []


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    progress_percentage: Optional[int] = Field(None, ge=0, le=100)
    due_date: Optional[datetime] = None
    tags: Optional[list[str]] = None


class TaskOut(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    priority: Priority
    due_date: Optional[datetime] = None
    tags: Optional[list[str]] = None
    status: TaskStatus
    progress_percentage: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---- Routes ----
@router.post("")
async def create_task(
    payload: TaskCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    task = PersonalTask(
        user_id=user.id,
        status=TaskStatus.PENDING,
        progress_percentage=0,
        **payload.model_dump(),
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)
    return ok(TaskOut.model_validate(task), "Task created")


@router.get("")
async def list_tasks(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    stmt = (
        sa.select(PersonalTask)
        .where(PersonalTask.user_id == user.id)
        .order_by(PersonalTask.due_date.asc().nulls_last(), PersonalTask.created_at.asc())
    )
    rows = (await db.execute(stmt)).scalars().all()
    return ok([TaskOut.model_validate(t) for t in rows])


@router.put("/{task_id}")
async def update_task(
    task_id: UUID,
    payload: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    task = (await db.execute(sa.select(PersonalTask).where(PersonalTask.id == task_id))).scalar_one_or_none()
    # someone else's task is indistinguishable from a missing one
    if task is None or not policies.can_manage_task(user, task):
        raise NotFound("Task not found")

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(task, field, value)
    await db.commit()
    await db.refresh(task)
    return ok(TaskOut.model_validate(task), "Task updated")


@router.delete("/{task_id}")
async def delete_task(
    task_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(
        sa.delete(PersonalTask).where(PersonalTask.id == task_id, PersonalTask.user_id == user.id)
    )
    if not result.rowcount:
        raise NotFound("Task not found")
    await db.commit()
    return ok("Task deleted")
