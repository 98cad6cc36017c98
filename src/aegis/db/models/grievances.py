from __future__ import annotations

import uuid
from datetime import datetime
from typing import ClassVar, List, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from aegis.db.base import Base, UUIDMixin, TimestampMixin, CreatedAtMixin, GUID, StringList, enum_column
from aegis.db.models.enums import GrievanceCategory, GrievanceStatus, Priority, UserRole


class Grievance(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "grievances"
    __allow_unmapped__ = True

    NOTE: ClassVar[str] = (
        "description=User-submitted complaints tracked through a status lifecycle. "
        "submitted_by/is_anonymous are fixed at creation; counters are only "
        "changed with atomic UPDATE statements."
    )

    __table_args__ = {"comment": NOTE}

    submitted_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    is_anonymous: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    anonymous_identifier: Mapped[Optional[str]] = mapped_column(sa.String(32))

    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    category: Mapped[GrievanceCategory] = mapped_column(
        enum_column(GrievanceCategory, "grievance_category"), nullable=False, index=True
    )
    priority: Mapped[Priority] = mapped_column(
        enum_column(Priority, "grievance_priority"), nullable=False, default=Priority.MEDIUM
    )
    status: Mapped[GrievanceStatus] = mapped_column(
        enum_column(GrievanceStatus, "grievance_status"),
        nullable=False,
        default=GrievanceStatus.SUBMITTED,
        index=True,
    )

    location_type: Mapped[Optional[str]] = mapped_column(sa.String(64))
    location_details: Mapped[Optional[str]] = mapped_column(sa.Text)
    photo_urls: Mapped[Optional[List[str]]] = mapped_column(StringList())

    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    assigned_department: Mapped[Optional[str]] = mapped_column(sa.String(255))

    resolution_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    resolved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL")
    )

    view_count: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default="0")
    upvote_count: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default="0")


class GrievanceStatusHistory(UUIDMixin, CreatedAtMixin, Base):
    """Append-only; rows are never updated or deleted by the API."""
    __tablename__ = "grievance_status_history"

    grievance_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("grievances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    old_status: Mapped[Optional[GrievanceStatus]] = mapped_column(
        enum_column(GrievanceStatus, "history_old_status")
    )
    new_status: Mapped[GrievanceStatus] = mapped_column(
        enum_column(GrievanceStatus, "history_new_status"), nullable=False
    )
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL")
    )
    updated_by_role: Mapped[Optional[UserRole]] = mapped_column(
        enum_column(UserRole, "history_actor_role")
    )


class GrievanceComment(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "grievance_comments"

    grievance_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("grievances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    comment: Mapped[str] = mapped_column(sa.Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)


class GrievanceUpvote(UUIDMixin, CreatedAtMixin, Base):
    __tablename__ = "grievance_upvotes"

    __table_args__ = (
        UniqueConstraint("grievance_id", "user_id", name="uq_grievance_upvotes_grievance_user"),
    )

    grievance_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("grievances.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
