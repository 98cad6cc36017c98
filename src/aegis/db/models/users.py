from __future__ import annotations

import uuid
from datetime import datetime
from typing import ClassVar, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from aegis.db.base import Base, UUIDMixin, TimestampMixin, GUID, enum_column
from aegis.db.models.enums import UserRole, UserStatus


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "users"
    __allow_unmapped__ = True  # keep NOTE out of the SQLAlchemy mapper

    NOTE: ClassVar[str] = (
        "description=Campus members who signed in through Google. "
        "Created on first login; role defaults by email sub-domain. "
        "Role/status are changed by admins; rows are never hard-deleted."
    )

    __table_args__ = {"comment": NOTE}

    email: Mapped[str] = mapped_column(sa.String(255), nullable=False, unique=True, index=True)
    google_id: Mapped[str] = mapped_column(sa.String(255), nullable=False, unique=True)
    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole, "user_role"), nullable=False, default=UserRole.STUDENT
    )
    status: Mapped[UserStatus] = mapped_column(
        enum_column(UserStatus, "user_status"), nullable=False, default=UserStatus.ACTIVE
    )
    first_name: Mapped[str] = mapped_column(sa.String(255), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(sa.String(255), nullable=False, default="")
    profile_picture: Mapped[Optional[str]] = mapped_column(sa.Text)

    # student profile
    roll_number: Mapped[Optional[str]] = mapped_column(sa.String(64))
    batch_year: Mapped[Optional[int]] = mapped_column(sa.Integer)
    program: Mapped[Optional[str]] = mapped_column(sa.String(128))
    department: Mapped[Optional[str]] = mapped_column(sa.String(255))

    # staff profile
    employee_id: Mapped[Optional[str]] = mapped_column(sa.String(64))
    designation: Mapped[Optional[str]] = mapped_column(sa.String(255))

    last_login_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))


class Department(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "departments"

    name: Mapped[str] = mapped_column(sa.String(255), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    head_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL")
    )
