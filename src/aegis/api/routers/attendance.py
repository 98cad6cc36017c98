# src/aegis/api/routers/attendance.py
from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional
from uuid import UUID

import sqlalchemy as sa
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.app_logger import get_logger
from aegis.auth import policies
from aegis.auth.deps import get_current_user
from aegis.db.base import utcnow
from aegis.db.models import AttendanceLog, AttendanceStatus, CourseEnrollment, User
from aegis.db.queries import dialect_insert
from aegis.db.session import get_db
from aegis.errors import BadRequest, Forbidden, NotFound
from aegis.schemas.common import ok

router = APIRouter(prefix="/api/attendance", tags=["academics"])
log = get_logger("routers.attendance")


# ---- Schemas ----
class MarkAttendance(BaseModel):
    course_id: UUID
    student_id: UUID
    date: dt.date
    status: AttendanceStatus
    remarks: Optional[str] = None


class AttendanceLogOut(BaseModel):
    id: UUID
    date: dt.date
    status: AttendanceStatus
    remarks: Optional[str] = None


class AttendanceSummary(BaseModel):
    total: int
    present: int
    absent: int
    cancelled: int
    percentage: float


class AttendanceReport(BaseModel):
    logs: list[AttendanceLogOut]
    summary: AttendanceSummary


def summarize_attendance(statuses: list[AttendanceStatus]) -> AttendanceSummary:
    """Cancelled classes don't count against the student: they leave the denominator."""
    present = sum(1 for s in statuses if s == AttendanceStatus.PRESENT)
    absent = sum(1 for s in statuses if s == AttendanceStatus.ABSENT)
    cancelled = sum(1 for s in statuses if s == AttendanceStatus.CANCELLED)
    held = len(statuses) - cancelled
    percentage = round(present / held * 100, 2) if held > 0 else 0.0
    return AttendanceSummary(
        total=len(statuses), present=present, absent=absent, cancelled=cancelled, percentage=percentage
    )


async def _enrollment_id(db: AsyncSession, student_id: UUID, course_id: UUID) -> Optional[UUID]:
    return (
        await db.execute(
            sa.select(CourseEnrollment.id).where(
                CourseEnrollment.student_id == student_id,
                CourseEnrollment.course_id == course_id,
            )
        )
    ).scalar_one_or_none()


# ---- Routes ----
@router.post("/mark")
async def mark_attendance(
    payload: MarkAttendance,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.is_faculty_or_admin(user):
        raise Forbidden()

    enrollment_id = await _enrollment_id(db, payload.student_id, payload.course_id)
    if enrollment_id is None:
        raise BadRequest("Student is not enrolled in this course")

    table = AttendanceLog.__table__
    stmt = dialect_insert(db, table).values(
        id=uuid.uuid4(),
        enrollment_id=enrollment_id,
        date=payload.date,
        status=payload.status,
        remarks=payload.remarks,
        created_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["enrollment_id", "date"],
        set_={"status": stmt.excluded.status, "remarks": stmt.excluded.remarks},
    ).returning(table.c.id)
    log_id = (await db.execute(stmt)).scalar_one()
    await db.commit()

    row = (await db.execute(sa.select(AttendanceLog).where(AttendanceLog.id == log_id))).scalar_one()
    out = AttendanceLogOut(id=row.id, date=row.date, status=row.status, remarks=row.remarks)
    return ok(out, "Attendance marked")


@router.get("/{course_id}")
async def my_attendance(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.is_student(user):
        raise Forbidden()

    enrollment_id = await _enrollment_id(db, user.id, course_id)
    if enrollment_id is None:
        raise NotFound("You are not enrolled in this course")

    rows = (
        await db.execute(
            sa.select(AttendanceLog)
            .where(AttendanceLog.enrollment_id == enrollment_id)
            .order_by(AttendanceLog.date.desc())
        )
    ).scalars().all()

    report = AttendanceReport(
        logs=[AttendanceLogOut(id=r.id, date=r.date, status=r.status, remarks=r.remarks) for r in rows],
        summary=summarize_attendance([r.status for r in rows]),
    )
    return ok(report)
