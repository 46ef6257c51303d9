"""Recomputes a tracked URL's trend status after a live run.

Only the regression path is automatic: when at least half of a URL's
active keywords lost three or more positions, the URL becomes
``declining``. Nothing here moves a URL out of ``declining``.
"""

from collections.abc import Iterable

from rankwatch.core.logging import get_logger
from rankwatch.models.tracked_url import UrlStatus
from rankwatch.repositories.tracked_url import TrackedUrlRepository
from rankwatch.services.reconciler import PositionTransition

logger = get_logger(__name__)

REGRESSION_MIN_DROP = 3
DECLINING_SHARE = 0.5


def count_regressions(transitions: Iterable[PositionTransition]) -> int:
    """Keywords whose position worsened by at least REGRESSION_MIN_DROP."""
    return sum(
        1
        for t in transitions
        if t.prev_position is not None
        and t.current_position is not None
        and t.current_position - t.prev_position >= REGRESSION_MIN_DROP
    )


def is_declining(regressions: int, active_keywords: int) -> bool:
    """True when the regressing share reaches DECLINING_SHARE."""
    return active_keywords > 0 and regressions >= DECLINING_SHARE * active_keywords


class StatusUpdater:
    """Applies the declining rule to one tracked URL."""

    def __init__(self, repository: TrackedUrlRepository) -> None:
        self.repository = repository

    async def update(
        self,
        url_id: str,
        transitions: list[PositionTransition],
        active_keywords: int,
    ) -> UrlStatus | None:
        """Mark the URL declining if warranted. Returns the new status or None."""
        regressions = count_regressions(transitions)
        if not is_declining(regressions, active_keywords):
            return None

        await self.repository.set_status(url_id, UrlStatus.DECLINING)
        logger.info(
            "Tracked URL marked declining",
            extra={
                "url_id": url_id,
                "regressions": regressions,
                "active_keywords": active_keywords,
            },
        )
        return UrlStatus.DECLINING
