"""seed departments

Revision ID: 0002_seed_departments
Revises: 0001_initial_schema
Create Date: 2026-01-12 00:10:00
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from alembic import op
import sqlalchemy as sa

from aegis.db.base import GUID

# revision identifiers
revision = "0002_seed_departments"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


DEPARTMENTS: list[tuple[str, str]] = [
    ("Academic Affairs", "Courses, examinations and academic records"),
    ("Hostel Administration", "Hostel allotment, rooms and mess"),
    ("Infrastructure", "Buildings, electrical, plumbing and campus maintenance"),
    ("IT Services", "Network, email and campus computing"),
    ("Library", "Library services and resources"),
    ("Student Welfare", "Student affairs, counselling and wellbeing"),
    ("Finance", "Fees, scholarships and reimbursements"),
    ("Security", "Campus security and safety"),
]


def _table_departments(metadata: sa.MetaData) -> sa.Table:
    # local table metadata so later model changes don't break this revision
    return sa.Table(
        "departments",
        metadata,
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def upgrade() -> None:
    bind = op.get_bind()
    departments = _table_departments(sa.MetaData())

    existing = set(bind.execute(sa.select(departments.c.name)).scalars())
    now = datetime.now(timezone.utc)
    rows = [
        {"id": uuid.uuid4(), "name": name, "description": desc, "created_at": now, "updated_at": now}
        for name, desc in DEPARTMENTS
        if name not in existing
    ]
    if rows:
        op.bulk_insert(departments, rows)


def downgrade() -> None:
    departments = _table_departments(sa.MetaData())
    op.execute(departments.delete().where(departments.c.name.in_([n for n, _ in DEPARTMENTS])))
