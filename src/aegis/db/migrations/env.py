# src/aegis/db/migrations/env.py
from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from aegis.core.config import settings
from aegis.db.models import Base

# ----- config / logging ------------------------------------------------------

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _xargs() -> dict[str, str]:
    return context.get_x_argument(as_dictionary=True) or {}


def _choose_url() -> str:
    """-x sqlalchemy_url=... wins, then ALEMBIC_DATABASE_URL, then the app's DATABASE_URL."""
    return (
        _xargs().get("sqlalchemy_url")
        or os.getenv("ALEMBIC_DATABASE_URL")
        or settings.DATABASE_URL
    )


# ----- runners ---------------------------------------------------------------

def run_migrations_offline() -> None:
    context.configure(
        url=_choose_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def _do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def _run_async_migrations() -> None:
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = _choose_url()

    connectable = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(_do_run_migrations)
    finally:
        await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(_run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
