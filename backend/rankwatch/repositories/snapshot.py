"""SnapshotRepository: weekly snapshot reads and idempotent writes.

Writes go through INSERT ... ON CONFLICT on (keyword_id, week_starting):
- ``upsert`` overwrites every metric of an existing row (live collection)
- ``insert_if_absent`` leaves an existing row untouched (backfill)

The insert construct is picked per dialect (PostgreSQL in production,
SQLite in tests); both support the same ON CONFLICT clause.
"""

import time
from datetime import UTC, date, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import and_, delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.logging import db_logger, get_logger
from rankwatch.models.weekly_snapshot import WeeklySnapshot

logger = get_logger(__name__)

CONFLICT_COLUMNS = ["keyword_id", "week_starting"]

# Columns a live run overwrites on conflict
UPSERT_COLUMNS = (
    "gsc_position",
    "gsc_clicks",
    "gsc_impressions",
    "gsc_ctr",
    "serp_position",
    "serp_features",
    "prev_position",
    "position_change",
)


class SnapshotRepository:
    """Repository for WeeklySnapshot rows."""

    TABLE_NAME = "weekly_snapshots"
    SLOW_OPERATION_THRESHOLD_MS = 1000

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _insert(self) -> Any:
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(WeeklySnapshot)
        if dialect == "sqlite":
            return sqlite_insert(WeeklySnapshot)
        raise NotImplementedError(f"Snapshot upsert not supported on {dialect}")

    async def exists(self, keyword_id: str, week_starting: date) -> bool:
        """Check whether a snapshot already exists for the pair."""
        result = await self.session.execute(
            select(WeeklySnapshot.id).where(
                WeeklySnapshot.keyword_id == keyword_id,
                WeeklySnapshot.week_starting == week_starting,
            )
        )
        return result.first() is not None

    async def upsert(self, values: dict[str, Any]) -> None:
        """Create the snapshot or overwrite all metrics of the existing one."""
        stmt = self._insert().values(id=str(uuid4()), **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=CONFLICT_COLUMNS,
            set_={
                **{column: values.get(column) for column in UPSERT_COLUMNS},
                "updated_at": datetime.now(UTC),
            },
        )
        await self._execute_write(stmt, "upsert", values)

    async def insert_if_absent(self, values: dict[str, Any]) -> bool:
        """Insert the snapshot unless one exists. Returns True if inserted."""
        stmt = self._insert().values(id=str(uuid4()), **values)
        stmt = stmt.on_conflict_do_nothing(index_elements=CONFLICT_COLUMNS)
        rowcount = await self._execute_write(stmt, "insert_if_absent", values)
        return rowcount > 0

    async def _execute_write(self, stmt: Any, operation: str, values: dict[str, Any]) -> int:
        start_time = time.monotonic()
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e,
                table=self.TABLE_NAME,
                context=(
                    f"Snapshot {operation} for keyword_id={values.get('keyword_id')} "
                    f"week_starting={values.get('week_starting')}"
                ),
            )
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(
                query=f"{operation} weekly_snapshots",
                duration_ms=duration_ms,
                table=self.TABLE_NAME,
            )
        return int(result.rowcount or 0)

    async def get_previous_positions(
        self, keyword_ids: list[str], before: date
    ) -> dict[str, int | None]:
        """SERP position of each keyword's latest snapshot dated before ``before``.

        Keywords with no earlier snapshot are absent from the result.
        """
        if not keyword_ids:
            return {}

        latest = (
            select(
                WeeklySnapshot.keyword_id,
                func.max(WeeklySnapshot.week_starting).label("week_starting"),
            )
            .where(
                WeeklySnapshot.keyword_id.in_(keyword_ids),
                WeeklySnapshot.week_starting < before,
            )
            .group_by(WeeklySnapshot.keyword_id)
            .subquery()
        )
        result = await self.session.execute(
            select(WeeklySnapshot.keyword_id, WeeklySnapshot.serp_position).join(
                latest,
                and_(
                    WeeklySnapshot.keyword_id == latest.c.keyword_id,
                    WeeklySnapshot.week_starting == latest.c.week_starting,
                ),
            )
        )
        return {row.keyword_id: row.serp_position for row in result}

    async def get_latest_by_keyword(
        self, keyword_ids: list[str]
    ) -> dict[str, WeeklySnapshot]:
        """Most recent snapshot of each keyword."""
        if not keyword_ids:
            return {}

        latest = (
            select(
                WeeklySnapshot.keyword_id,
                func.max(WeeklySnapshot.week_starting).label("week_starting"),
            )
            .where(WeeklySnapshot.keyword_id.in_(keyword_ids))
            .group_by(WeeklySnapshot.keyword_id)
            .subquery()
        )
        result = await self.session.execute(
            select(WeeklySnapshot).join(
                latest,
                and_(
                    WeeklySnapshot.keyword_id == latest.c.keyword_id,
                    WeeklySnapshot.week_starting == latest.c.week_starting,
                ),
            )
        )
        return {snapshot.keyword_id: snapshot for snapshot in result.scalars()}

    async def count(self) -> int:
        """Total number of snapshots."""
        result = await self.session.execute(select(func.count()).select_from(WeeklySnapshot))
        return int(result.scalar_one())

    async def delete_older_than(self, cutoff: date) -> int:
        """Delete snapshots whose week starts before ``cutoff``."""
        result = await self.session.execute(
            delete(WeeklySnapshot).where(WeeklySnapshot.week_starting < cutoff)
        )
        deleted = int(result.rowcount or 0)
        logger.info(
            "Deleted old snapshots",
            extra={"cutoff": cutoff.isoformat(), "deleted": deleted},
        )
        return deleted

    async def delete_all(self) -> int:
        """Delete every snapshot."""
        result = await self.session.execute(delete(WeeklySnapshot))
        return int(result.rowcount or 0)
