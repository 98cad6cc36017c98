from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from aegis.db.base import Base, UUIDMixin, TimestampMixin, GUID, StringList, enum_column, utcnow
from aegis.db.models.enums import ApplicationStatus, OpportunityType, Priority, TaskStatus


class Opportunity(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "opportunities"

    posted_by: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    opportunity_type: Mapped[OpportunityType] = mapped_column(
        enum_column(OpportunityType, "opportunity_type"), nullable=False
    )
    department: Mapped[Optional[str]] = mapped_column(sa.String(255), index=True)
    required_skills: Mapped[Optional[List[str]]] = mapped_column(StringList())
    duration: Mapped[Optional[str]] = mapped_column(sa.String(128))
    stipend: Mapped[Optional[str]] = mapped_column(sa.String(128))
    location: Mapped[Optional[str]] = mapped_column(sa.String(255))
    application_deadline: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, server_default=sa.true())


class Application(UUIDMixin, Base):
    __tablename__ = "applications"

    __table_args__ = (
        UniqueConstraint("opportunity_id", "student_id", name="uq_applications_opportunity_student"),
    )

    opportunity_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    resume_url: Mapped[Optional[str]] = mapped_column(sa.Text)
    cover_letter: Mapped[Optional[str]] = mapped_column(sa.Text)
    portfolio_url: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[ApplicationStatus] = mapped_column(
        enum_column(ApplicationStatus, "application_status"),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    faculty_remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    applied_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utcnow, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utcnow, server_default=sa.func.now()
    )


class PersonalTask(UUIDMixin, TimestampMixin, Base):
    """Private to-do item; only its owner can read or change it."""
    __tablename__ = "personal_tasks"

    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    priority: Mapped[Priority] = mapped_column(
        enum_column(Priority, "task_priority"), nullable=False, default=Priority.MEDIUM
    )
    due_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    tags: Mapped[Optional[List[str]]] = mapped_column(StringList())
    status: Mapped[TaskStatus] = mapped_column(
        enum_column(TaskStatus, "task_status"), nullable=False, default=TaskStatus.PENDING
    )
    progress_percentage: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
