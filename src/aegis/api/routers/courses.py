# src/aegis/api/routers/courses.py
from __future__ import annotations

import uuid
from typing import Optional
from uuid import UUID

import sqlalchemy as sa
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.app_logger import get_logger
from aegis.auth import policies
from aegis.auth.deps import get_current_user, get_optional_user
from aegis.db.base import utcnow
from aegis.db.models import Course, CourseEnrollment, CourseType, User
from aegis.db.queries import apply_filters, dialect_insert
from aegis.db.session import get_db
from aegis.errors import BadRequest, Forbidden, NotFound
from aegis.schemas.common import ok
from aegis.schemas.users import UserSummary, summarize

router = APIRouter(prefix="/api/courses", tags=["academics"])
log = get_logger("routers.courses")


# ---- Schemas ----
class CourseCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    credits: int = Field(..., ge=0)
    department: str = Field(..., min_length=1)
    course_type: CourseType
    semester: str = Field(..., min_length=1)
    instructor_email: Optional[str] = None


class EnrollRequest(BaseModel):
    course_id: UUID


class CourseOut(BaseModel):
    id: UUID
    code: str
    title: str
    description: Optional[str] = None
    credits: int
    department: str
    course_type: CourseType
    instructor: Optional[UserSummary] = None
    semester: str

    model_config = ConfigDict(from_attributes=True)


class CourseDetail(CourseOut):
    enrolled_count: int


# ---- Helpers ----
async def get_course_or_404(db: AsyncSession, course_id: UUID) -> Course:
    course = (await db.execute(sa.select(Course).where(Course.id == course_id))).scalar_one_or_none()
    if course is None:
        raise NotFound("Course not found")
    return course


async def _instructors(db: AsyncSession, courses) -> dict[UUID, User]:
    ids = {c.instructor_id for c in courses if c.instructor_id is not None}
    if not ids:
        return {}
    return {u.id: u for u in (await db.execute(sa.select(User).where(User.id.in_(ids)))).scalars()}


def _course_out(course: Course, instructors: dict[UUID, User]) -> dict:
    data = {c: getattr(course, c) for c in ("id", "code", "title", "description", "credits",
                                            "department", "course_type", "semester")}
    data["instructor"] = summarize(instructors.get(course.instructor_id)) if course.instructor_id else None
    return data


async def render_courses(db: AsyncSession, courses) -> list[CourseOut]:
    instructors = await _instructors(db, courses)
    return [CourseOut(**_course_out(c, instructors)) for c in courses]


# ---- Routes ----
@router.post("")
async def create_course(
    payload: CourseCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.is_faculty_or_admin(user):
        raise Forbidden()

    # Admins may name the instructor; faculty always teach what they create
    instructor_id: Optional[UUID] = user.id
    if policies.is_admin(user):
        instructor_id = None
        if payload.instructor_email:
            instructor_id = (
                await db.execute(sa.select(User.id).where(User.email == payload.instructor_email.lower()))
            ).scalar_one_or_none()
            if instructor_id is None:
                raise BadRequest("Instructor email not found")

    table = Course.__table__
    now = utcnow()
    stmt = (
        dialect_insert(db, table)
        .values(
            id=uuid.uuid4(),
            code=payload.code,
            title=payload.title,
            description=payload.description,
            credits=payload.credits,
            department=payload.department,
            course_type=payload.course_type,
            semester=payload.semester,
            instructor_id=instructor_id,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["code"])
        .returning(table.c.id)
    )
    course_id = (await db.execute(stmt)).scalar_one_or_none()
    if course_id is None:
        raise BadRequest(f"Course code {payload.code} already exists")
    await db.commit()

    course = await get_course_or_404(db, course_id)
    log.info("Course %s created by %s", course.code, user.id)
    return ok((await render_courses(db, [course]))[0], "Course created successfully")


@router.get("")
async def list_courses(
    semester: Optional[str] = None,
    department: Optional[str] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    """Course catalogue; browsable without signing in."""
    stmt = apply_filters(
        sa.select(Course),
        equals={Course.semester: semester, Course.department: department},
        search=(search, (Course.title, Course.code)),
    )
    rows = (await db.execute(stmt.order_by(Course.code.asc()))).scalars().all()
    return ok(await render_courses(db, rows))


@router.post("/enroll")
async def enroll(
    payload: EnrollRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.is_student(user):
        raise Forbidden()
    await get_course_or_404(db, payload.course_id)

    table = CourseEnrollment.__table__
    stmt = (
        dialect_insert(db, table)
        .values(id=uuid.uuid4(), student_id=user.id, course_id=payload.course_id, enrolled_at=utcnow())
        .on_conflict_do_nothing(index_elements=["student_id", "course_id"])
        .returning(table.c.id)
    )
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise BadRequest("You are already enrolled in this course")
    await db.commit()
    return ok("Enrolled successfully")


@router.get("/my-enrollments")
async def my_enrollments(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.is_student(user):
        raise Forbidden()
    stmt = (
        sa.select(Course)
        .join(CourseEnrollment, CourseEnrollment.course_id == Course.id)
        .where(CourseEnrollment.student_id == user.id)
        .order_by(Course.semester.desc(), Course.code.asc())
    )
    rows = (await db.execute(stmt)).scalars().all()
    return ok(await render_courses(db, rows))


@router.get("/{course_id}")
async def course_detail(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    course = await get_course_or_404(db, course_id)
    enrolled = (
        await db.execute(
            sa.select(sa.func.count()).select_from(CourseEnrollment).where(CourseEnrollment.course_id == course_id)
        )
    ).scalar_one()
    data = _course_out(course, await _instructors(db, [course]))
    return ok(CourseDetail(**data, enrolled_count=int(enrolled)))
