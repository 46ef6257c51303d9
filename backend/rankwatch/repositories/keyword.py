"""KeywordRepository: keyword reads and bulk writes."""

from collections import defaultdict

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.logging import get_logger
from rankwatch.models.keyword import Keyword, KeywordIntent, KeywordSource

logger = get_logger(__name__)


class KeywordRepository:
    """Repository for Keyword rows."""

    TABLE_NAME = "keywords"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_tracked_for_urls(self, url_ids: list[str]) -> dict[str, list[Keyword]]:
        """Tracked keywords grouped by URL id, in creation order."""
        if not url_ids:
            return {}

        result = await self.session.execute(
            select(Keyword)
            .where(Keyword.url_id.in_(url_ids), Keyword.tracked.is_(True))
            .order_by(Keyword.created_at, Keyword.keyword)
        )
        grouped: dict[str, list[Keyword]] = defaultdict(list)
        for keyword in result.scalars():
            grouped[keyword.url_id].append(keyword)
        return dict(grouped)

    async def list_for_url(self, url_id: str) -> list[Keyword]:
        """All keywords of one URL, tracked or not."""
        result = await self.session.execute(
            select(Keyword).where(Keyword.url_id == url_id).order_by(Keyword.keyword)
        )
        return list(result.scalars())

    async def create_many(
        self,
        url_id: str,
        keywords: list[str],
        source: KeywordSource = KeywordSource.MANUAL,
        intent: KeywordIntent = KeywordIntent.INFORMATIONAL,
    ) -> list[Keyword]:
        """Create tracked keywords for one URL. Texts must already be normalized."""
        created = [
            Keyword(
                url_id=url_id,
                keyword=text,
                source=source.value,
                intent=intent.value,
                tracked=True,
            )
            for text in keywords
        ]
        self.session.add_all(created)
        await self.session.flush()

        logger.debug(
            "Keywords created",
            extra={"url_id": url_id, "count": len(created), "source": source.value},
        )
        return created

    async def delete_for_url_except(self, url_id: str, keep: set[str]) -> int:
        """Delete the URL's keywords whose text is not in ``keep``."""
        stmt = delete(Keyword).where(Keyword.url_id == url_id)
        if keep:
            stmt = stmt.where(Keyword.keyword.not_in(keep))
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)

    async def count_tracked(self) -> int:
        """Number of tracked keywords across all URLs."""
        result = await self.session.execute(
            select(func.count()).select_from(Keyword).where(Keyword.tracked.is_(True))
        )
        return int(result.scalar_one())
