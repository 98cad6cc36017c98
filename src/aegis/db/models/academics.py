from __future__ import annotations

import datetime as dt
import uuid
from datetime import datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from aegis.db.base import Base, UUIDMixin, TimestampMixin, CreatedAtMixin, GUID, StringList, enum_column, utcnow
from aegis.db.models.enums import AttendanceStatus, CourseType, EventType, ResourceType


class Course(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "courses"

    code: Mapped[str] = mapped_column(sa.String(32), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    credits: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    department: Mapped[str] = mapped_column(sa.String(255), nullable=False, index=True)
    course_type: Mapped[CourseType] = mapped_column(enum_column(CourseType, "course_type"), nullable=False)
    instructor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    semester: Mapped[str] = mapped_column(sa.String(32), nullable=False, index=True)


class CourseEnrollment(UUIDMixin, Base):
    __tablename__ = "course_enrollments"

    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_course_enrollments_student_course"),
    )

    student_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    enrolled_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utcnow, server_default=sa.func.now()
    )


class AttendanceLog(UUIDMixin, CreatedAtMixin, Base):
    __tablename__ = "attendance_logs"

    # one log per enrollment per calendar date; the mark endpoint upserts on this key
    __table_args__ = (
        UniqueConstraint("enrollment_id", "date", name="uq_attendance_logs_enrollment_date"),
    )

    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("course_enrollments.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[AttendanceStatus] = mapped_column(
        enum_column(AttendanceStatus, "attendance_status"), nullable=False
    )
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)


class AcademicResource(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "academic_resources"

    course_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL")
    )
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    resource_type: Mapped[ResourceType] = mapped_column(
        enum_column(ResourceType, "resource_type"), nullable=False
    )
    file_url: Mapped[str] = mapped_column(sa.Text, nullable=False)
    year: Mapped[Optional[int]] = mapped_column(sa.Integer)
    tags: Mapped[Optional[List[str]]] = mapped_column(StringList())
    is_verified: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)


class AcademicEvent(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "academic_events"

    # NULL course_id marks a campus-wide event
    course_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("courses.id", ondelete="CASCADE"), index=True
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL")
    )
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    event_type: Mapped[EventType] = mapped_column(enum_column(EventType, "event_type"), nullable=False)
    start_time: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
