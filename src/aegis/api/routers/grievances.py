# src/aegis/api/routers/grievances.py
from __future__ import annotations

import base64
import uuid
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

import sqlalchemy as sa
from fastapi import APIRouter, Depends, File, Query, UploadFile
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.app_logger import get_logger
from aegis.auth import policies
from aegis.auth.deps import get_current_user
from aegis.db.base import utcnow
from aegis.db.models import (
    Department,
    Grievance,
    GrievanceCategory,
    GrievanceComment,
    GrievanceStatus,
    GrievanceStatusHistory,
    GrievanceUpvote,
    Priority,
    User,
    UserRole,
)
from aegis.db.queries import apply_filters, clamp_page, dialect_insert
from aegis.db.session import get_db
from aegis.errors import BadRequest, Forbidden, NotFound
from aegis.schemas.common import ok
from aegis.schemas.users import UserSummary, summarize
from aegis.services.audit import record_audit
from aegis.services.cloudinary import CloudinaryClient, get_cloudinary

router = APIRouter(prefix="/api/grievances", tags=["grievances"])
departments_router = APIRouter(prefix="/api/departments", tags=["grievances"])
log = get_logger("routers.grievances")

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


# ---- Schemas ----
class GrievanceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: GrievanceCategory
    priority: Priority = Priority.MEDIUM
    location_type: Optional[str] = None
    location_details: Optional[str] = None
    is_anonymous: bool = False


class StatusUpdate(BaseModel):
    status: GrievanceStatus
    remarks: Optional[str] = None


class AssignRequest(BaseModel):
    assigned_to: Optional[UUID] = None
    assigned_department: Optional[str] = None


class ResolveRequest(BaseModel):
    resolution_notes: str = Field(..., min_length=1)


class CommentCreate(BaseModel):
    comment: str = Field(..., min_length=1)
    is_internal: bool = False


class GrievanceOut(BaseModel):
    id: UUID
    submitter: Optional[UserSummary] = None
    is_anonymous: bool
    anonymous_identifier: Optional[str] = None
    title: str
    description: str
    category: GrievanceCategory
    priority: Priority
    status: GrievanceStatus
    location_type: Optional[str] = None
    location_details: Optional[str] = None
    photo_urls: list[str] = []
    assigned_to: Optional[UserSummary] = None
    assigned_department: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    view_count: int
    upvote_count: int
    user_has_upvoted: bool = False
    created_at: datetime
    updated_at: datetime


class HistoryOut(BaseModel):
    id: UUID
    old_status: Optional[GrievanceStatus] = None
    new_status: GrievanceStatus
    remarks: Optional[str] = None
    updated_by: Optional[UserSummary] = None
    updated_by_role: Optional[UserRole] = None
    created_at: datetime


class CommentOut(BaseModel):
    id: UUID
    user: Optional[UserSummary] = None
    comment: str
    is_internal: bool
    created_at: datetime


class DepartmentOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    head_user_id: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)


# ---- Helpers ----
def anonymous_identifier() -> str:
    return f"ANON-{uuid.uuid4().hex[:8].upper()}"


async def _get_grievance_or_404(db: AsyncSession, grievance_id: UUID) -> Grievance:
    g = (await db.execute(sa.select(Grievance).where(Grievance.id == grievance_id))).scalar_one_or_none()
    if g is None:
        raise NotFound("Grievance not found")
    return g


async def _viewable_grievance(db: AsyncSession, grievance_id: UUID, user: User) -> Grievance:
    g = await _get_grievance_or_404(db, grievance_id)
    if not policies.can_view_grievance(user, g):
        raise Forbidden()
    return g


async def _users_by_id(db: AsyncSession, ids: Iterable[Optional[UUID]]) -> dict[UUID, User]:
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    rows = (await db.execute(sa.select(User).where(User.id.in_(wanted)))).scalars().all()
    return {u.id: u for u in rows}


async def _upvoted_ids(db: AsyncSession, user_id: UUID, grievance_ids: list[UUID]) -> set[UUID]:
    if not grievance_ids:
        return set()
    stmt = sa.select(GrievanceUpvote.grievance_id).where(
        GrievanceUpvote.user_id == user_id,
        GrievanceUpvote.grievance_id.in_(grievance_ids),
    )
    return set((await db.execute(stmt)).scalars().all())


def _to_out(g: Grievance, users: dict[UUID, User], upvoted: bool) -> GrievanceOut:
    return GrievanceOut(
        id=g.id,
        # anonymous grievances have no submitted_by, so nothing can leak here
        submitter=summarize(users.get(g.submitted_by)) if g.submitted_by else None,
        is_anonymous=g.is_anonymous,
        anonymous_identifier=g.anonymous_identifier,
        title=g.title,
        description=g.description,
        category=g.category,
        priority=g.priority,
        status=g.status,
        location_type=g.location_type,
        location_details=g.location_details,
        photo_urls=list(g.photo_urls or []),
        assigned_to=summarize(users.get(g.assigned_to)) if g.assigned_to else None,
        assigned_department=g.assigned_department,
        resolution_notes=g.resolution_notes,
        resolved_at=g.resolved_at,
        view_count=g.view_count,
        upvote_count=g.upvote_count,
        user_has_upvoted=upvoted,
        created_at=g.created_at,
        updated_at=g.updated_at,
    )


async def _render(db: AsyncSession, g: Grievance, viewer: User) -> GrievanceOut:
    users = await _users_by_id(db, (g.submitted_by, g.assigned_to))
    upvoted = g.id in await _upvoted_ids(db, viewer.id, [g.id])
    return _to_out(g, users, upvoted)


def _bump(column, delta: int):
    """UPDATE values for an atomic counter change that leaves updated_at alone."""
    return {column.key: column + delta, "updated_at": Grievance.updated_at}


# ---- Routes ----
@router.post("")
async def create_grievance(
    payload: GrievanceCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.can_submit_grievance(user):
        raise Forbidden()

    g = Grievance(
        submitted_by=None if payload.is_anonymous else user.id,
        is_anonymous=payload.is_anonymous,
        anonymous_identifier=anonymous_identifier() if payload.is_anonymous else None,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        priority=payload.priority,
        location_type=payload.location_type,
        location_details=payload.location_details,
    )
    db.add(g)
    await db.flush()

    await record_audit(
        db,
        user.id,
        "CREATE_GRIEVANCE",
        {"grievance_id": g.id, "category": g.category, "priority": g.priority},
    )
    await db.commit()
    await db.refresh(g)

    out = await _render(db, g, user)
    return ok(out, "Grievance created successfully")


@router.get("")
async def list_grievances(
    status: Optional[GrievanceStatus] = None,
    category: Optional[GrievanceCategory] = None,
    priority: Optional[Priority] = None,
    assigned_to: Optional[UUID] = None,
    assigned_department: Optional[str] = None,
    search: Optional[str] = None,
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Public feed: every signed-in user sees every grievance; actions are what's gated."""
    limit, offset = clamp_page(page, limit, default_limit=DEFAULT_LIMIT, max_limit=MAX_LIMIT)

    stmt = apply_filters(
        sa.select(Grievance),
        equals={
            Grievance.status: status,
            Grievance.category: category,
            Grievance.priority: priority,
            Grievance.assigned_to: assigned_to,
            Grievance.assigned_department: assigned_department,
        },
        search=(search, (Grievance.title, Grievance.description)),
    )
    stmt = stmt.order_by(Grievance.created_at.desc()).limit(limit).offset(offset)
    rows = (await db.execute(stmt)).scalars().all()

    users = await _users_by_id(db, [r.submitted_by for r in rows] + [r.assigned_to for r in rows])
    upvoted = await _upvoted_ids(db, user.id, [r.id for r in rows])
    return ok([_to_out(r, users, r.id in upvoted) for r in rows])


@router.get("/{grievance_id}")
async def get_grievance(
    grievance_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    g = await _viewable_grievance(db, grievance_id, user)

    await db.execute(
        sa.update(Grievance)
        .where(Grievance.id == grievance_id)
        .values(**_bump(Grievance.view_count, 1))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(g)
    return ok(await _render(db, g, user))


@router.delete("/{grievance_id}")
async def delete_grievance(
    grievance_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    g = await _get_grievance_or_404(db, grievance_id)
    if not policies.can_delete_grievance(user, g):
        raise Forbidden()

    await db.execute(sa.delete(Grievance).where(Grievance.id == grievance_id))
    await db.commit()
    log.info("Grievance %s deleted by %s", grievance_id, user.id)
    return ok(message="Grievance deleted successfully")


@router.put("/{grievance_id}/status")
async def update_status(
    grievance_id: UUID,
    payload: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.can_change_grievance_status(user):
        raise Forbidden()
    g = await _get_grievance_or_404(db, grievance_id)

    db.add(
        GrievanceStatusHistory(
            grievance_id=g.id,
            old_status=g.status,
            new_status=payload.status,
            remarks=payload.remarks,
            updated_by=user.id,
            updated_by_role=user.role,
        )
    )
    g.status = payload.status
    await db.commit()
    await db.refresh(g)
    return ok(await _render(db, g, user), "Status updated successfully")


@router.put("/{grievance_id}/assign")
async def assign_grievance(
    grievance_id: UUID,
    payload: AssignRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.can_change_grievance_status(user):
        raise Forbidden()
    g = await _get_grievance_or_404(db, grievance_id)

    if payload.assigned_to is not None:
        assignee = (
            await db.execute(sa.select(User).where(User.id == payload.assigned_to))
        ).scalar_one_or_none()
        if assignee is None:
            raise NotFound("Assignee not found")
        if not policies.is_valid_assignee(assignee):
            raise BadRequest("Can only assign to Authority, Admin, or Faculty")

    g.assigned_to = payload.assigned_to
    g.assigned_department = payload.assigned_department
    await record_audit(
        db,
        user.id,
        "ASSIGN_GRIEVANCE",
        {
            "grievance_id": g.id,
            "assigned_to": payload.assigned_to,
            "assigned_department": payload.assigned_department,
        },
    )
    await db.commit()
    await db.refresh(g)
    return ok(await _render(db, g, user), "Grievance assigned successfully")


@router.put("/{grievance_id}/resolve")
async def resolve_grievance(
    grievance_id: UUID,
    payload: ResolveRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.can_change_grievance_status(user):
        raise Forbidden()
    g = await _get_grievance_or_404(db, grievance_id)

    db.add(
        GrievanceStatusHistory(
            grievance_id=g.id,
            old_status=g.status,
            new_status=GrievanceStatus.RESOLVED,
            remarks=payload.resolution_notes,
            updated_by=user.id,
            updated_by_role=user.role,
        )
    )
    g.status = GrievanceStatus.RESOLVED
    g.resolution_notes = payload.resolution_notes
    g.resolved_at = utcnow()
    g.resolved_by = user.id
    await record_audit(db, user.id, "RESOLVE_GRIEVANCE", {"grievance_id": g.id})
    await db.commit()
    await db.refresh(g)
    return ok(await _render(db, g, user), "Grievance resolved successfully")


@router.post("/{grievance_id}/upvote")
async def toggle_upvote(
    grievance_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _get_grievance_or_404(db, grievance_id)

    removed = await db.execute(
        sa.delete(GrievanceUpvote).where(
            GrievanceUpvote.grievance_id == grievance_id,
            GrievanceUpvote.user_id == user.id,
        )
    )
    if removed.rowcount:
        upvoted = False
        await db.execute(
            sa.update(Grievance)
            .where(Grievance.id == grievance_id, Grievance.upvote_count > 0)
            .values(**_bump(Grievance.upvote_count, -1))
            .execution_options(synchronize_session=False)
        )
    else:
        table = GrievanceUpvote.__table__
        stmt = (
            dialect_insert(db, table)
            .values(id=uuid.uuid4(), grievance_id=grievance_id, user_id=user.id, created_at=utcnow())
            .on_conflict_do_nothing(index_elements=["grievance_id", "user_id"])
            .returning(table.c.id)
        )
        inserted = (await db.execute(stmt)).scalar_one_or_none()
        upvoted = True
        if inserted is not None:
            await db.execute(
                sa.update(Grievance)
                .where(Grievance.id == grievance_id)
                .values(**_bump(Grievance.upvote_count, 1))
                .execution_options(synchronize_session=False)
            )

    count = (
        await db.execute(sa.select(Grievance.upvote_count).where(Grievance.id == grievance_id))
    ).scalar_one()
    await db.commit()
    return ok(
        {"upvoted": upvoted, "upvote_count": count},
        "Upvoted successfully" if upvoted else "Upvote removed",
    )


@router.post("/{grievance_id}/photos")
async def upload_photos(
    grievance_id: UUID,
    photos: Optional[list[UploadFile]] = File(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    cloudinary: CloudinaryClient = Depends(get_cloudinary),
):
    g = await _get_grievance_or_404(db, grievance_id)
    if not policies.can_modify_grievance(user, g):
        raise Forbidden()
    if not photos:
        raise BadRequest("No photos provided for upload")

    urls: list[str] = []
    for photo in photos:
        data = base64.b64encode(await photo.read()).decode("ascii")
        public_id = f"grievances/{grievance_id}/{uuid.uuid4()}"
        urls.append(await cloudinary.upload_image(data, public_id=public_id))

    # lock the row so concurrent uploads append instead of overwriting each other
    locked = (
        await db.execute(
            sa.select(Grievance)
            .where(Grievance.id == grievance_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    locked.photo_urls = list(locked.photo_urls or []) + urls
    await db.commit()
    log.info("Attached %d photo(s) to grievance %s", len(urls), grievance_id)
    return ok(urls, "Photos uploaded successfully")


@router.get("/{grievance_id}/history")
async def grievance_history(
    grievance_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _viewable_grievance(db, grievance_id, user)
    rows = (
        await db.execute(
            sa.select(GrievanceStatusHistory)
            .where(GrievanceStatusHistory.grievance_id == grievance_id)
            .order_by(GrievanceStatusHistory.created_at.desc())
        )
    ).scalars().all()
    users = await _users_by_id(db, [r.updated_by for r in rows])
    return ok([
        HistoryOut(
            id=r.id,
            old_status=r.old_status,
            new_status=r.new_status,
            remarks=r.remarks,
            updated_by=summarize(users.get(r.updated_by)) if r.updated_by else None,
            updated_by_role=r.updated_by_role,
            created_at=r.created_at,
        )
        for r in rows
    ])


@router.post("/{grievance_id}/comments")
async def add_comment(
    grievance_id: UUID,
    payload: CommentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _viewable_grievance(db, grievance_id, user)

    c = GrievanceComment(
        grievance_id=grievance_id,
        user_id=user.id,
        comment=payload.comment,
        # silently downgraded for roles that can't write internal notes
        is_internal=payload.is_internal and policies.can_post_internal_comment(user),
    )
    db.add(c)
    await db.commit()
    await db.refresh(c)
    out = CommentOut(
        id=c.id, user=summarize(user), comment=c.comment, is_internal=c.is_internal, created_at=c.created_at
    )
    return ok(out, "Comment added successfully")


@router.get("/{grievance_id}/comments")
async def list_comments(
    grievance_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _viewable_grievance(db, grievance_id, user)

    stmt = sa.select(GrievanceComment).where(GrievanceComment.grievance_id == grievance_id)
    if not policies.can_see_internal_comments(user):
        stmt = stmt.where(GrievanceComment.is_internal.is_(False))
    rows = (await db.execute(stmt.order_by(GrievanceComment.created_at.asc()))).scalars().all()

    users = await _users_by_id(db, [r.user_id for r in rows])
    return ok([
        CommentOut(
            id=r.id,
            user=summarize(users.get(r.user_id)),
            comment=r.comment,
            is_internal=r.is_internal,
            created_at=r.created_at,
        )
        for r in rows
    ])


@departments_router.get("")
async def list_departments(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = (await db.execute(sa.select(Department).order_by(Department.name))).scalars().all()
    return ok([DepartmentOut.model_validate(d) for d in rows])
