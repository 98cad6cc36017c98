from __future__ import annotations

import uuid
from typing import Any, ClassVar, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from aegis.db.base import Base, UUIDMixin, CreatedAtMixin, GUID, JSONB


class AuditLog(UUIDMixin, CreatedAtMixin, Base):
    __tablename__ = "audit_logs"
    __allow_unmapped__ = True

    NOTE: ClassVar[str] = (
        "description=Append-only record of sensitive actions (logins, role and "
        "status changes, grievance assignment). Written in the same transaction "
        "as the action it describes."
    )

    __table_args__ = {"comment": NOTE}

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    action: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
    # "metadata" is reserved on declarative classes
    meta: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSONB())
