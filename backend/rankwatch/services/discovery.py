"""Promotes high-impression Search Console queries to tracked keywords."""

from collections.abc import Iterable

from rankwatch.core.logging import get_logger
from rankwatch.integrations.search_console import SearchAnalyticsRow
from rankwatch.models.keyword import KeywordIntent, KeywordSource
from rankwatch.repositories.keyword import KeywordRepository

logger = get_logger(__name__)


def select_new_keywords(
    candidates: Iterable[SearchAnalyticsRow],
    existing: set[str],
    tracked_count: int,
    max_keywords: int,
) -> list[str]:
    """Pick queries to start tracking.

    ``candidates`` must already be sorted by impressions, highest first.
    Queries the URL already has (tracked or not) are skipped, and no more
    than ``max_keywords - tracked_count`` are returned.
    """
    room = max_keywords - tracked_count
    if room <= 0:
        return []

    seen = {keyword.lower() for keyword in existing}
    selected: list[str] = []
    for row in candidates:
        text = row.keyword.strip().lower()
        if not text or text in seen:
            continue
        seen.add(text)
        selected.append(text)
        if len(selected) >= room:
            break
    return selected


class KeywordDiscovery:
    """Creates discovered keywords for one URL."""

    def __init__(self, repository: KeywordRepository) -> None:
        self.repository = repository

    async def discover(
        self,
        url_id: str,
        candidates: list[SearchAnalyticsRow],
        tracked_count: int,
        max_keywords: int,
    ) -> list[str]:
        """Create up to the cap of new keywords. Returns the added texts."""
        existing = {keyword.keyword for keyword in await self.repository.list_for_url(url_id)}
        new_keywords = select_new_keywords(candidates, existing, tracked_count, max_keywords)
        if not new_keywords:
            return []

        await self.repository.create_many(
            url_id,
            new_keywords,
            source=KeywordSource.GSC_DISCOVERED,
            intent=KeywordIntent.INFORMATIONAL,
        )
        logger.info(
            "Discovered keywords added",
            extra={"url_id": url_id, "keywords": new_keywords},
        )
        return new_keywords
