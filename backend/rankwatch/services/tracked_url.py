"""TrackedUrlService: tracked URL, keyword set and note management.

Keyword texts are trimmed, lowercased and de-duplicated before they are
stored. Replacing a URL's keyword set deletes the keywords that are no
longer listed, and with them their snapshots and alerts.
"""

import time
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.logging import get_logger
from rankwatch.models.keyword import Keyword, KeywordSource
from rankwatch.models.tracked_url import Note, TrackedUrl
from rankwatch.models.weekly_snapshot import WeeklySnapshot
from rankwatch.repositories.keyword import KeywordRepository
from rankwatch.repositories.snapshot import SnapshotRepository
from rankwatch.repositories.tracked_url import TrackedUrlRepository
from rankwatch.schemas.tracked_url import (
    KeywordResponse,
    NoteResponse,
    TrackedUrlCreate,
    TrackedUrlDetailResponse,
    TrackedUrlUpdate,
)

logger = get_logger(__name__)

SLOW_OPERATION_THRESHOLD_MS = 1000

INITIAL_NOTE = "Article added to tracker"


class TrackedUrlServiceError(Exception):
    """Base exception for TrackedUrlService errors."""

    pass


class TrackedUrlNotFoundError(TrackedUrlServiceError):
    """Raised when a tracked URL is not found."""

    def __init__(self, url_id: str):
        self.url_id = url_id
        super().__init__(f"Tracked URL not found: {url_id}")


class TrackedUrlValidationError(TrackedUrlServiceError):
    """Raised when tracked URL validation fails."""

    def __init__(self, field: str, value: object, message: str):
        self.field = field
        self.value = value
        self.message = message
        super().__init__(f"Validation failed for '{field}': {message}")


def normalize_keywords(keywords: Iterable[str]) -> list[str]:
    """Trim, lowercase and de-duplicate keyword texts, keeping first-seen order."""
    seen: set[str] = set()
    normalized: list[str] = []
    for keyword in keywords:
        text = keyword.strip().lower()
        if text and text not in seen:
            seen.add(text)
            normalized.append(text)
    return normalized


def keyword_response(keyword: Keyword, snapshot: WeeklySnapshot | None) -> KeywordResponse:
    """Combine a keyword with its latest snapshot."""
    if snapshot is None:
        return KeywordResponse(
            id=keyword.id,
            keyword=keyword.keyword,
            source=keyword.source,
            intent=keyword.intent,
            tracked=keyword.tracked,
            created_at=keyword.created_at,
        )
    return KeywordResponse(
        id=keyword.id,
        keyword=keyword.keyword,
        source=keyword.source,
        intent=keyword.intent,
        tracked=keyword.tracked,
        created_at=keyword.created_at,
        week_starting=snapshot.week_starting,
        gsc_position=snapshot.gsc_position,
        gsc_clicks=snapshot.gsc_clicks,
        gsc_impressions=snapshot.gsc_impressions,
        gsc_ctr=snapshot.gsc_ctr,
        serp_position=snapshot.serp_position,
        serp_features=snapshot.serp_features.split(",") if snapshot.serp_features else [],
        prev_position=snapshot.prev_position,
        position_change=snapshot.position_change,
        has_positions=snapshot.prev_position is not None and snapshot.serp_position is not None,
    )


class TrackedUrlService:
    """Business logic for tracked URLs."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repository = TrackedUrlRepository(session)
        self.keyword_repository = KeywordRepository(session)
        self.snapshot_repository = SnapshotRepository(session)

    async def list_urls(self) -> list[TrackedUrl]:
        """All tracked URLs."""
        return await self.repository.list_all()

    async def get_url(self, url_id: str) -> TrackedUrl:
        """Get a tracked URL.

        Raises:
            TrackedUrlNotFoundError: If the URL does not exist
        """
        tracked_url = await self.repository.get_by_id(url_id)
        if tracked_url is None:
            logger.debug("Tracked URL not found", extra={"url_id": url_id})
            raise TrackedUrlNotFoundError(url_id)
        return tracked_url

    async def create_url(self, data: TrackedUrlCreate) -> TrackedUrl:
        """Start tracking a URL with its initial keywords.

        Raises:
            TrackedUrlValidationError: If the URL is already tracked
        """
        start_time = time.monotonic()
        if await self.repository.get_by_url(data.url) is not None:
            logger.warning("Duplicate tracked URL rejected", extra={"url": data.url})
            raise TrackedUrlValidationError("url", data.url, "URL is already tracked")

        tracked_url = await self.repository.create(
            url=data.url,
            title=data.title,
            category=data.category,
            priority=data.priority,
        )
        keywords = normalize_keywords(data.keywords)
        if keywords:
            await self.keyword_repository.create_many(
                tracked_url.id, keywords, source=KeywordSource.MANUAL
            )
        await self.repository.add_note(tracked_url.id, INITIAL_NOTE)

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Tracked URL added",
            extra={
                "url_id": tracked_url.id,
                "keyword_count": len(keywords),
                "duration_ms": round(duration_ms, 2),
            },
        )
        if duration_ms > SLOW_OPERATION_THRESHOLD_MS:
            logger.warning(
                "Slow tracked URL creation",
                extra={"url_id": tracked_url.id, "duration_ms": round(duration_ms, 2)},
            )
        return tracked_url

    async def update_url(self, url_id: str, data: TrackedUrlUpdate) -> TrackedUrl:
        """Update metadata and optionally replace the keyword set.

        Raises:
            TrackedUrlNotFoundError: If the URL does not exist
        """
        await self.get_url(url_id)

        fields = data.model_dump(exclude_unset=True, exclude={"keywords"})
        fields = {key: value for key, value in fields.items() if value is not None}
        await self.repository.update_fields(url_id, fields)

        if data.keywords is not None:
            await self.replace_keywords(url_id, data.keywords)

        await self.session.flush()
        tracked_url = await self.get_url(url_id)
        await self.session.refresh(tracked_url)
        return tracked_url

    async def replace_keywords(self, url_id: str, keywords: list[str]) -> tuple[int, int]:
        """Sync the URL's keywords to ``keywords``. Returns (added, removed)."""
        wanted = normalize_keywords(keywords)
        removed = await self.keyword_repository.delete_for_url_except(url_id, set(wanted))
        existing = {k.keyword for k in await self.keyword_repository.list_for_url(url_id)}
        to_add = [text for text in wanted if text not in existing]
        if to_add:
            await self.keyword_repository.create_many(url_id, to_add, source=KeywordSource.MANUAL)

        if to_add or removed:
            logger.info(
                "Keyword set replaced",
                extra={"url_id": url_id, "added": len(to_add), "removed": removed},
            )
        return len(to_add), removed

    async def delete_url(self, url_id: str) -> None:
        """Stop tracking a URL and delete everything attached to it.

        Raises:
            TrackedUrlNotFoundError: If the URL does not exist
        """
        if not await self.repository.delete(url_id):
            raise TrackedUrlNotFoundError(url_id)

    async def add_note(self, url_id: str, content: str) -> Note:
        """Append a changelog note.

        Raises:
            TrackedUrlNotFoundError: If the URL does not exist
        """
        await self.get_url(url_id)
        return await self.repository.add_note(url_id, content)

    async def get_detail(self, url_id: str) -> TrackedUrlDetailResponse:
        """A tracked URL with its keywords, their latest figures and its notes.

        Raises:
            TrackedUrlNotFoundError: If the URL does not exist
        """
        tracked_url = await self.get_url(url_id)
        notes = await self.repository.list_notes(url_id)
        keywords = await self.keyword_repository.list_for_url(url_id)
        latest = await self.snapshot_repository.get_latest_by_keyword([k.id for k in keywords])

        return TrackedUrlDetailResponse(
            id=tracked_url.id,
            url=tracked_url.url,
            title=tracked_url.title,
            category=tracked_url.category,
            status=tracked_url.status,
            priority=tracked_url.priority,
            created_at=tracked_url.created_at,
            updated_at=tracked_url.updated_at,
            keywords=[keyword_response(k, latest.get(k.id)) for k in keywords],
            notes=[NoteResponse.model_validate(note) for note in notes],
        )
