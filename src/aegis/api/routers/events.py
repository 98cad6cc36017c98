# src/aegis/api/routers/events.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

import sqlalchemy as sa
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.api.routers.courses import get_course_or_404
from aegis.auth import policies
from aegis.auth.deps import get_current_user
from aegis.db.models import AcademicEvent, Course, CourseEnrollment, EventType, User
from aegis.db.session import get_db
from aegis.errors import Forbidden
from aegis.schemas.common import ok

router = APIRouter(prefix="/api/events", tags=["academics"])


# ---- Schemas ----
class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    event_type: EventType
    start_time: datetime
    end_time: Optional[datetime] = None
    course_id: Optional[UUID] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "EventCreate":
        end, start = self.end_time, self.start_time
        if end is not None and (end.tzinfo is None) == (start.tzinfo is None) and end < start:
            raise ValueError("end_time must not be before start_time")
        return self


class EventOut(BaseModel):
    id: UUID
    course_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    event_type: EventType
    start_time: datetime
    end_time: Optional[datetime] = None
    course_code: Optional[str] = None
    course_title: Optional[str] = None


def _event_out(e: AcademicEvent, code: Optional[str], title: Optional[str]) -> EventOut:
    return EventOut(
        id=e.id,
        course_id=e.course_id,
        title=e.title,
        description=e.description,
        event_type=e.event_type,
        start_time=e.start_time,
        end_time=e.end_time,
        course_code=code,
        course_title=title,
    )


# ---- Routes ----
@router.post("")
async def create_event(
    payload: EventCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.is_faculty_or_admin(user):
        raise Forbidden()

    course = await get_course_or_404(db, payload.course_id) if payload.course_id else None
    event = AcademicEvent(
        course_id=payload.course_id,
        created_by=user.id,
        title=payload.title,
        description=payload.description,
        event_type=payload.event_type,
        start_time=payload.start_time,
        end_time=payload.end_time,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)
    return ok(
        _event_out(event, course.code if course else None, course.title if course else None),
        "Event created successfully",
    )


@router.get("")
async def my_calendar(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Campus-wide events plus those of courses the caller takes or teaches, plus their own."""
    enrolled = sa.select(CourseEnrollment.course_id).where(CourseEnrollment.student_id == user.id)
    teaching = sa.select(Course.id).where(Course.instructor_id == user.id)

    stmt = (
        sa.select(AcademicEvent, Course.code, Course.title)
        .outerjoin(Course, Course.id == AcademicEvent.course_id)
        .where(
            sa.or_(
                AcademicEvent.course_id.is_(None),
                AcademicEvent.course_id.in_(enrolled),
                AcademicEvent.course_id.in_(teaching),
                AcademicEvent.created_by == user.id,
            )
        )
    )
    if start is not None:
        stmt = stmt.where(AcademicEvent.start_time >= start)
    if end is not None:
        stmt = stmt.where(AcademicEvent.start_time <= end)

    rows = (await db.execute(stmt.order_by(AcademicEvent.start_time.asc()))).all()
    return ok([_event_out(e, code, title) for e, code, title in rows])
