"""TrackedUrlRepository with CRUD operations for tracked URLs and notes."""

import time
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.logging import db_logger, get_logger
from rankwatch.models.tracked_url import Note, TrackedUrl, UrlStatus

logger = get_logger(__name__)


class TrackedUrlRepository:
    """Repository for TrackedUrl and Note rows."""

    TABLE_NAME = "tracked_urls"
    SLOW_OPERATION_THRESHOLD_MS = 1000

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_all(self) -> list[TrackedUrl]:
        """All tracked URLs, oldest first."""
        start_time = time.monotonic()
        result = await self.session.execute(
            select(TrackedUrl).order_by(TrackedUrl.created_at, TrackedUrl.title)
        )
        urls = list(result.scalars())

        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(
                query="SELECT tracked_urls", duration_ms=duration_ms, table=self.TABLE_NAME
            )
        return urls

    async def get_by_id(self, url_id: str) -> TrackedUrl | None:
        """Fetch one tracked URL."""
        result = await self.session.execute(select(TrackedUrl).where(TrackedUrl.id == url_id))
        return result.scalar_one_or_none()

    async def get_by_url(self, url: str) -> TrackedUrl | None:
        """Fetch a tracked URL by its page URL."""
        result = await self.session.execute(select(TrackedUrl).where(TrackedUrl.url == url))
        return result.scalar_one_or_none()

    async def create(
        self,
        url: str,
        title: str,
        category: str | None = None,
        priority: str | None = None,
    ) -> TrackedUrl:
        """Create a tracked URL with status 'active'."""
        tracked_url = TrackedUrl(
            url=url,
            title=title,
            category=category,
            status=UrlStatus.ACTIVE.value,
        )
        if priority is not None:
            tracked_url.priority = priority
        self.session.add(tracked_url)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Creating tracked URL url={url}"
            )
            raise

        logger.info(
            "Tracked URL created",
            extra={"url_id": tracked_url.id, "url": url},
        )
        return tracked_url

    async def update_fields(self, url_id: str, fields: dict[str, Any]) -> None:
        """Update plain columns of one tracked URL."""
        if not fields:
            return
        await self.session.execute(
            update(TrackedUrl).where(TrackedUrl.id == url_id).values(**fields)
        )

    async def set_status(self, url_id: str, status: UrlStatus) -> None:
        """Set the trend status of one tracked URL."""
        await self.session.execute(
            update(TrackedUrl).where(TrackedUrl.id == url_id).values(status=status.value)
        )
        logger.info(
            "Tracked URL status changed",
            extra={"url_id": url_id, "status": status.value},
        )

    async def delete(self, url_id: str) -> bool:
        """Delete a tracked URL. Keywords, snapshots, alerts and notes cascade."""
        result = await self.session.execute(delete(TrackedUrl).where(TrackedUrl.id == url_id))
        deleted = bool(result.rowcount)
        if deleted:
            logger.info("Tracked URL deleted", extra={"url_id": url_id})
        return deleted

    async def count(self) -> int:
        """Number of tracked URLs."""
        result = await self.session.execute(select(func.count()).select_from(TrackedUrl))
        return int(result.scalar_one())

    async def add_note(self, url_id: str, content: str) -> Note:
        """Append a changelog note to a tracked URL."""
        note = Note(url_id=url_id, content=content)
        self.session.add(note)
        await self.session.flush()
        return note

    async def list_notes(self, url_id: str) -> list[Note]:
        """Notes of one tracked URL, newest first."""
        result = await self.session.execute(
            select(Note).where(Note.url_id == url_id).order_by(Note.created_at.desc())
        )
        return list(result.scalars())
