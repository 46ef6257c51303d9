"""Alembic environment for the rank tracking schema.

The database URL always comes from ``Settings`` (``DATABASE_URL``); the
``sqlalchemy.url`` in alembic.ini is ignored. Online migrations run
through asyncpg.
"""

import asyncio
from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

import rankwatch.models  # noqa: F401  (registers every table on Base.metadata)
from rankwatch.core.config import get_settings
from rankwatch.core.database import Base, to_async_url
from rankwatch.core.logging import db_logger

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure(**kwargs: Any) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting (``alembic upgrade --sql``)."""
    _configure(
        url=to_async_url(str(get_settings().database_url)),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )


async def run_async_migrations() -> None:
    settings = get_settings()
    head = context.get_head_revision()
    version = str(head) if head else "base"
    db_logger.migration_start(version=version, description=f"Upgrading rank tracking schema to {version}")

    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = to_async_url(str(settings.database_url))

    connect_args: dict[str, Any] = {
        "timeout": settings.db_connect_timeout,
        "command_timeout": settings.db_command_timeout,
    }
    if settings.environment == "production":
        connect_args["ssl"] = "require"

    engine = async_engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        connect_args=connect_args,
    )

    succeeded = False
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_with_connection)
        succeeded = True
    finally:
        db_logger.migration_end(version=version, success=succeeded)
        await engine.dispose()


def _run_with_connection(connection: Connection) -> None:
    _configure(connection=connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
