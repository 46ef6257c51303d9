"""Async engine and session handling.

Request handlers get a session through ``get_session``. Work that runs
outside a request (the weekly job, health probes) uses
``db_manager.session_scope()``.
"""

import re
import time
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from rankwatch.core.config import Settings, get_settings
from rankwatch.core.logging import db_logger, get_logger

logger = get_logger(__name__)

_STATEMENT_TABLE = re.compile(
    r'^\s*(?:INSERT\s+INTO|UPDATE|DELETE\s+FROM|SELECT\b.*?\bFROM)\s+"?([A-Za-z_][\w]*)',
    re.IGNORECASE | re.DOTALL,
)


class Base(DeclarativeBase):
    pass


def to_async_url(database_url: str) -> str:
    """Point postgres:// and postgresql:// URLs at the asyncpg driver."""
    for scheme in ("postgres://", "postgresql://"):
        if database_url.startswith(scheme):
            return "postgresql+asyncpg://" + database_url[len(scheme) :]
    return database_url


class DatabaseManager:
    """Owns the engine and the session factory for the process."""

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._database_url = ""

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call init_db() first.")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call init_db() first.")
        return self._session_factory

    def init_db(self, settings: Settings) -> None:
        self._database_url = to_async_url(str(settings.database_url))

        connect_args: dict[str, object] = {
            "timeout": settings.db_connect_timeout,
            "command_timeout": settings.db_command_timeout,
        }
        if settings.environment == "production":
            # asyncpg takes 'ssl', not libpq's 'sslmode'
            connect_args["ssl"] = "require"

        try:
            self._engine = create_async_engine(
                self._database_url,
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_timeout=settings.db_pool_timeout,
                pool_pre_ping=True,
                echo=settings.debug,
                connect_args=connect_args,
            )
        except SQLAlchemyError as e:
            db_logger.connection_error(e, self._database_url)
            raise

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database engine initialized")

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database connections closed")

    async def check_connection(self) -> bool:
        """Run ``SELECT 1``; connection failures are logged, not raised."""
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            db_logger.connection_error(e, self._database_url)
            return False
        return True

    @asynccontextmanager
    async def session_scope(self) -> AsyncIterator[AsyncSession]:
        """Session for work outside a request.

        The caller owns commits. Anything left uncommitted when the block
        exits through an exception is rolled back.
        """
        async with self.session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                db_logger.transaction_failure(
                    e,
                    table=failed_table(e),
                    context="Background session rolled back",
                )
                raise


db_manager = DatabaseManager()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed on success."""
    threshold_ms = get_settings().db_slow_query_threshold_ms

    async with db_manager.session_factory() as session:
        start_time = time.monotonic()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            db_logger.transaction_failure(
                e,
                table=failed_table(e),
                context="Request session rolled back",
            )
            raise
        finally:
            duration_ms = (time.monotonic() - start_time) * 1000
            if duration_ms > threshold_ms:
                db_logger.slow_query(query="request_session", duration_ms=duration_ms)


def failed_table(error: SQLAlchemyError) -> str | None:
    """Name of the table the failing statement touched, when it can be read."""
    statement = error.statement if isinstance(error, DBAPIError) else None
    if not statement:
        return None
    match = _STATEMENT_TABLE.match(statement)
    return match.group(1) if match else None
