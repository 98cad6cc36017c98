# src/aegis/api/routers/opportunities.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

import sqlalchemy as sa
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.app_logger import get_logger
from aegis.auth import policies
from aegis.auth.deps import get_current_user, get_optional_user
from aegis.db.base import utcnow
from aegis.db.models import Application, ApplicationStatus, Opportunity, OpportunityType, User
from aegis.db.queries import apply_filters, dialect_insert
from aegis.db.session import get_db
from aegis.errors import BadRequest, Forbidden, NotFound
from aegis.schemas.common import ok
from aegis.schemas.users import UserSummary, summarize

router = APIRouter(prefix="/api/opportunities", tags=["opportunities"])
applications_router = APIRouter(prefix="/api/applications", tags=["opportunities"])
log = get_logger("routers.opportunities")


# ---- Schemas ----
class OpportunityCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    opportunity_type: OpportunityType
    department: Optional[str] = None
    required_skills: list[str] = []
    duration: Optional[str] = None
    stipend: Optional[str] = None
    location: Optional[str] = None
    application_deadline: Optional[datetime] = None


class ApplyRequest(BaseModel):
    resume_url: Optional[str] = None
    cover_letter: Optional[str] = None
    portfolio_url: Optional[str] = None


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    faculty_remarks: Optional[str] = None


class OpportunityOut(BaseModel):
    id: UUID
    posted_by: Optional[UserSummary] = None
    title: str
    description: str
    opportunity_type: OpportunityType
    department: Optional[str] = None
    required_skills: list[str] = []
    duration: Optional[str] = None
    stipend: Optional[str] = None
    location: Optional[str] = None
    application_deadline: Optional[datetime] = None
    is_active: bool
    created_at: datetime
    has_applied: bool = False


class ApplicationOut(BaseModel):
    id: UUID
    opportunity: Optional[OpportunityOut] = None
    student: Optional[UserSummary] = None
    resume_url: Optional[str] = None
    cover_letter: Optional[str] = None
    portfolio_url: Optional[str] = None
    status: ApplicationStatus
    faculty_remarks: Optional[str] = None
    applied_at: datetime
    updated_at: datetime


# ---- Helpers ----
async def _users_by_id(db: AsyncSession, ids: Iterable[Optional[UUID]]) -> dict[UUID, User]:
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    return {u.id: u for u in (await db.execute(sa.select(User).where(User.id.in_(wanted)))).scalars()}


def _opportunity_out(op: Opportunity, poster: Optional[User], has_applied: bool) -> OpportunityOut:
    return OpportunityOut(
        id=op.id,
        posted_by=summarize(poster),
        title=op.title,
        description=op.description,
        opportunity_type=op.opportunity_type,
        department=op.department,
        required_skills=list(op.required_skills or []),
        duration=op.duration,
        stipend=op.stipend,
        location=op.location,
        application_deadline=op.application_deadline,
        is_active=op.is_active,
        created_at=op.created_at,
        has_applied=has_applied,
    )


def _application_out(
    app: Application,
    opportunity: Optional[OpportunityOut] = None,
    student: Optional[User] = None,
) -> ApplicationOut:
    return ApplicationOut(
        id=app.id,
        opportunity=opportunity,
        student=summarize(student),
        resume_url=app.resume_url,
        cover_letter=app.cover_letter,
        portfolio_url=app.portfolio_url,
        status=app.status,
        faculty_remarks=app.faculty_remarks,
        applied_at=app.applied_at,
        updated_at=app.updated_at,
    )


async def _get_opportunity_or_404(db: AsyncSession, opportunity_id: UUID) -> Opportunity:
    op = (await db.execute(sa.select(Opportunity).where(Opportunity.id == opportunity_id))).scalar_one_or_none()
    if op is None:
        raise NotFound("Opportunity not found")
    return op


# ---- Opportunities ----
@router.post("")
async def create_opportunity(
    payload: OpportunityCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.is_faculty_or_admin(user):
        raise Forbidden()

    op = Opportunity(posted_by=user.id, is_active=True, **payload.model_dump())
    db.add(op)
    await db.commit()
    await db.refresh(op)
    log.info("Opportunity %s posted by %s", op.id, user.id)
    return ok(_opportunity_out(op, user, False), "Opportunity posted successfully")


@router.get("")
async def list_opportunities(
    department: Optional[str] = None,
    opportunity_type: Optional[OpportunityType] = Query(None, alias="type"),
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    """Active postings, newest first. Anonymous callers can browse; has_applied is then false."""
    stmt = apply_filters(
        sa.select(Opportunity).where(Opportunity.is_active.is_(True)),
        equals={Opportunity.department: department, Opportunity.opportunity_type: opportunity_type},
    )
    rows = (await db.execute(stmt.order_by(Opportunity.created_at.desc()))).scalars().all()

    applied: set[UUID] = set()
    if user is not None and rows:
        applied = set(
            (
                await db.execute(
                    sa.select(Application.opportunity_id).where(
                        Application.student_id == user.id,
                        Application.opportunity_id.in_([r.id for r in rows]),
                    )
                )
            ).scalars()
        )
    posters = await _users_by_id(db, [r.posted_by for r in rows])
    return ok([_opportunity_out(r, posters.get(r.posted_by), r.id in applied) for r in rows])


@router.post("/{opportunity_id}/apply")
async def apply(
    opportunity_id: UUID,
    payload: Optional[ApplyRequest] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    active = (
        await db.execute(
            sa.select(Opportunity.id).where(Opportunity.id == opportunity_id, Opportunity.is_active.is_(True))
        )
    ).scalar_one_or_none()
    if active is None:
        raise NotFound("Opportunity not found or closed")

    payload = payload or ApplyRequest()
    now = utcnow()
    table = Application.__table__
    stmt = (
        dialect_insert(db, table)
        .values(
            id=uuid.uuid4(),
            opportunity_id=opportunity_id,
            student_id=user.id,
            resume_url=payload.resume_url,
            cover_letter=payload.cover_letter,
            portfolio_url=payload.portfolio_url,
            status=ApplicationStatus.PENDING,
            applied_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["opportunity_id", "student_id"])
        .returning(table.c.id)
    )
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise BadRequest("You have already applied")
    await db.commit()
    return ok("Application submitted successfully")


@router.get("/{opportunity_id}/applications")
async def opportunity_applications(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.is_faculty_or_admin(user):
        raise Forbidden()
    op = await _get_opportunity_or_404(db, opportunity_id)
    if not policies.can_manage_opportunity(user, op):
        raise Forbidden()

    rows = (
        await db.execute(
            sa.select(Application)
            .where(Application.opportunity_id == opportunity_id)
            .order_by(Application.applied_at.asc())
        )
    ).scalars().all()
    students = await _users_by_id(db, [r.student_id for r in rows])
    return ok([_application_out(r, student=students.get(r.student_id)) for r in rows])


# ---- Applications ----
@applications_router.get("/my-applications")
async def my_applications(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = (
        await db.execute(
            sa.select(Application, Opportunity)
            .join(Opportunity, Opportunity.id == Application.opportunity_id)
            .where(Application.student_id == user.id)
            .order_by(Application.applied_at.desc())
        )
    ).all()
    posters = await _users_by_id(db, [op.posted_by for _, op in rows])
    return ok([
        _application_out(app, _opportunity_out(op, posters.get(op.posted_by), True), user)
        for app, op in rows
    ])


@applications_router.put("/{application_id}/status")
async def update_application_status(
    application_id: UUID,
    payload: ApplicationStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.is_faculty_or_admin(user):
        raise Forbidden()

    app = (await db.execute(sa.select(Application).where(Application.id == application_id))).scalar_one_or_none()
    if app is None:
        raise NotFound("Application not found")
    op = await _get_opportunity_or_404(db, app.opportunity_id)
    if not policies.can_manage_opportunity(user, op):
        raise Forbidden()

    app.status = payload.status
    app.faculty_remarks = payload.faculty_remarks
    app.updated_at = utcnow()
    await db.commit()
    return ok(f"Application marked as {payload.status.value}")
