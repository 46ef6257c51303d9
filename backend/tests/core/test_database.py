"""Tests for engine URL handling and background sessions."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from rankwatch.core.database import DatabaseManager, failed_table, to_async_url
from rankwatch.models import TrackedUrl


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("postgres://u:p@db/rank", "postgresql+asyncpg://u:p@db/rank"),
        ("postgresql://u:p@db/rank", "postgresql+asyncpg://u:p@db/rank"),
        ("postgresql+asyncpg://u:p@db/rank", "postgresql+asyncpg://u:p@db/rank"),
        ("sqlite+aiosqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
    ],
)
def test_to_async_url(url: str, expected: str) -> None:
    assert to_async_url(url) == expected


class TestFailedTable:
    def test_reads_insert_target(self) -> None:
        error = DBAPIError(
            'INSERT INTO weekly_snapshots (id, keyword_id) VALUES ($1, $2)',
            {},
            Exception("duplicate key"),
        )
        assert failed_table(error) == "weekly_snapshots"

    def test_reads_select_source(self) -> None:
        error = DBAPIError(
            "SELECT keywords.id FROM keywords WHERE keywords.url_id = $1",
            {},
            Exception("timeout"),
        )
        assert failed_table(error) == "keywords"

    def test_error_without_statement(self) -> None:
        assert failed_table(SQLAlchemyError("boom")) is None


class TestSessionScope:
    async def test_rolls_back_on_error(self, mock_db_manager: DatabaseManager) -> None:
        with pytest.raises(SQLAlchemyError):
            async with mock_db_manager.session_scope() as session:
                session.add(TrackedUrl(url="https://example.com/a", title="A"))
                await session.flush()
                raise SQLAlchemyError("write failed")

        async with mock_db_manager.session_scope() as session:
            count = await session.scalar(select(func.count()).select_from(TrackedUrl))
        assert count == 0

    async def test_check_connection(self, mock_db_manager: DatabaseManager) -> None:
        assert await mock_db_manager.check_connection() is True

    def test_uninitialized_manager_raises(self) -> None:
        with pytest.raises(RuntimeError, match="Database not initialized"):
            DatabaseManager().session_factory
