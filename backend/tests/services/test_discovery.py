"""Tests for keyword auto-discovery."""

from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.integrations.search_console import SearchAnalyticsRow
from rankwatch.models.keyword import KeywordSource
from rankwatch.repositories.keyword import KeywordRepository
from rankwatch.services.discovery import KeywordDiscovery, select_new_keywords


def _rows(*queries: str) -> list[SearchAnalyticsRow]:
    return [
        SearchAnalyticsRow(query, impressions=1000 - i * 10) for i, query in enumerate(queries)
    ]


class TestSelectNewKeywords:
    def test_fills_remaining_room_in_order(self) -> None:
        selected = select_new_keywords(
            _rows("a", "b", "c", "d"), existing=set(), tracked_count=8, max_keywords=10
        )

        assert selected == ["a", "b"]

    def test_skips_existing_case_insensitively(self) -> None:
        selected = select_new_keywords(
            _rows("Dog Food", "cat food"), existing={"dog food"}, tracked_count=0, max_keywords=10
        )

        assert selected == ["cat food"]

    def test_no_room(self) -> None:
        assert select_new_keywords(_rows("a"), set(), tracked_count=10, max_keywords=10) == []

    def test_duplicate_candidates_added_once(self) -> None:
        selected = select_new_keywords(_rows("a", "A ", "b"), set(), 0, 10)

        assert selected == ["a", "b"]


class TestKeywordDiscovery:
    async def test_creates_discovered_keywords_up_to_cap(
        self, db_session: AsyncSession, seed_url
    ) -> None:
        existing = [f"kw {i}" for i in range(8)]
        tracked_url, _ = await seed_url(keywords=existing)
        candidates = _rows("kw 0", "new one", "new two", "new three")

        added = await KeywordDiscovery(KeywordRepository(db_session)).discover(
            tracked_url.id, candidates, tracked_count=8, max_keywords=10
        )
        await db_session.commit()

        assert added == ["new one", "new two"]
        keywords = await KeywordRepository(db_session).list_for_url(tracked_url.id)
        assert len(keywords) == 10
        discovered = [k for k in keywords if k.source == KeywordSource.GSC_DISCOVERED.value]
        assert sorted(k.keyword for k in discovered) == ["new one", "new two"]
        assert all(k.tracked for k in discovered)
