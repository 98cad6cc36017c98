# src/aegis/schemas/users.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from aegis.db.models.enums import UserRole, UserStatus


class UserSummary(BaseModel):
    """Embedded wherever another row references a user (submitter, assignee, uploader)."""
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    profile_picture: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserResponse(UserSummary):
    status: UserStatus
    roll_number: Optional[str] = None
    batch_year: Optional[int] = None
    program: Optional[str] = None
    department: Optional[str] = None
    employee_id: Optional[str] = None
    designation: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserListItem(UserSummary):
    """Row of the admin user table."""
    status: UserStatus
    department: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime


def summarize(user) -> Optional[UserSummary]:
    return UserSummary.model_validate(user) if user is not None else None
