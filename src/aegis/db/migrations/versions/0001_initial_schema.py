"""Create tables for all ORM models

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-01-12 00:00:00
"""
from __future__ import annotations

from alembic import op

from aegis.db.models import Base

# revision identifiers
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
