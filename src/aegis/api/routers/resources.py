# src/aegis/api/routers/resources.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

import sqlalchemy as sa
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.api.routers.courses import get_course_or_404
from aegis.auth import policies
from aegis.auth.deps import get_current_user
from aegis.db.models import AcademicResource, ResourceType, User
from aegis.db.queries import apply_filters
from aegis.db.session import get_db
from aegis.errors import Forbidden
from aegis.schemas.common import ok
from aegis.schemas.users import UserSummary, summarize

router = APIRouter(prefix="/api/courses", tags=["academics"])


# ---- Schemas ----
class ResourceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    resource_type: ResourceType
    file_url: str = Field(..., min_length=1)
    year: Optional[int] = None
    tags: list[str] = []


class ResourceOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    description: Optional[str] = None
    resource_type: ResourceType
    file_url: str
    uploaded_by: Optional[UserSummary] = None
    year: Optional[int] = None
    tags: list[str] = []
    created_at: datetime


def _resource_out(r: AcademicResource, uploader: Optional[User]) -> ResourceOut:
    return ResourceOut(
        id=r.id,
        course_id=r.course_id,
        title=r.title,
        description=r.description,
        resource_type=r.resource_type,
        file_url=r.file_url,
        uploaded_by=summarize(uploader),
        year=r.year,
        tags=list(r.tags or []),
        created_at=r.created_at,
    )


# ---- Routes ----
@router.post("/{course_id}/resources")
async def add_resource(
    course_id: UUID,
    payload: ResourceCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not policies.is_faculty_or_admin(user):
        raise Forbidden()
    await get_course_or_404(db, course_id)

    resource = AcademicResource(
        course_id=course_id,
        uploaded_by=user.id,
        title=payload.title,
        description=payload.description,
        resource_type=payload.resource_type,
        file_url=payload.file_url,
        year=payload.year,
        tags=payload.tags,
    )
    db.add(resource)
    await db.commit()
    await db.refresh(resource)
    return ok(_resource_out(resource, user), "Resource added successfully")


@router.get("/{course_id}/resources")
async def list_resources(
    course_id: UUID,
    resource_type: Optional[ResourceType] = None,
    year: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await get_course_or_404(db, course_id)
    stmt = apply_filters(
        sa.select(AcademicResource).where(AcademicResource.course_id == course_id),
        equals={AcademicResource.resource_type: resource_type, AcademicResource.year: year},
    )
    rows = (await db.execute(stmt.order_by(AcademicResource.created_at.desc()))).scalars().all()

    ids = {r.uploaded_by for r in rows if r.uploaded_by is not None}
    uploaders = {}
    if ids:
        uploaders = {u.id: u for u in (await db.execute(sa.select(User).where(User.id.in_(ids)))).scalars()}
    return ok([_resource_out(r, uploaders.get(r.uploaded_by)) for r in rows])
