"""Merges source results into one weekly snapshot per keyword.

For each keyword the reconciler combines:
- Search Console metrics, matched case-insensitively, defaulting to
  zero clicks/impressions and unknown position/CTR
- the SERP check, where an absent result means position unknown
- the prior snapshot's SERP position

and writes the snapshot in one of two modes. ``UPSERT`` overwrites an
existing row for the same week; ``CREATE_ONLY`` leaves it untouched and
reports it as skipped.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

from rankwatch.integrations.dataforseo import SerpPosition
from rankwatch.integrations.search_console import SearchAnalyticsRow
from rankwatch.repositories.snapshot import SnapshotRepository


class SnapshotWriteMode(str, Enum):
    """How an existing snapshot for the same week is treated."""

    UPSERT = "upsert"
    CREATE_ONLY = "create_only"


class WriteOutcome(str, Enum):
    """What happened to the snapshot row."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class KeywordTarget:
    """Plain copy of a tracked keyword, detached from the ORM session."""

    id: str
    keyword: str


@dataclass(frozen=True)
class PositionTransition:
    """A keyword's SERP movement for one period."""

    keyword_id: str
    keyword: str
    prev_position: int | None
    current_position: int | None
    position_change: int
    outcome: WriteOutcome


def compute_position_change(prev_position: int | None, current_position: int | None) -> int:
    """prev - current (positive is an improvement), 0 unless both are known."""
    if prev_position is None or current_position is None:
        return 0
    return prev_position - current_position


def build_snapshot_values(
    keyword: KeywordTarget,
    week_starting: date,
    analytics: SearchAnalyticsRow | None,
    serp: SerpPosition | None,
    prev_position: int | None,
) -> dict[str, Any]:
    """Column values for one keyword's snapshot."""
    current_position = serp.position if serp else None
    return {
        "keyword_id": keyword.id,
        "week_starting": week_starting,
        "gsc_position": analytics.position if analytics else None,
        "gsc_clicks": analytics.clicks if analytics else 0,
        "gsc_impressions": analytics.impressions if analytics else 0,
        "gsc_ctr": analytics.ctr if analytics else None,
        "serp_position": current_position,
        "serp_features": ",".join(serp.serp_features) if serp and serp.serp_features else None,
        "prev_position": prev_position,
        "position_change": compute_position_change(prev_position, current_position),
    }


class SnapshotReconciler:
    """Writes reconciled snapshots through the snapshot repository."""

    def __init__(self, repository: SnapshotRepository) -> None:
        self.repository = repository

    async def reconcile(
        self,
        keyword: KeywordTarget,
        week_starting: date,
        analytics: dict[str, SearchAnalyticsRow],
        serp: dict[str, SerpPosition],
        prev_position: int | None,
        mode: SnapshotWriteMode,
    ) -> PositionTransition:
        """Write the snapshot for one keyword and report its movement."""
        key = keyword.keyword.lower()
        values = build_snapshot_values(
            keyword, week_starting, analytics.get(key), serp.get(key), prev_position
        )

        if mode is SnapshotWriteMode.UPSERT:
            existed = await self.repository.exists(keyword.id, week_starting)
            await self.repository.upsert(values)
            outcome = WriteOutcome.UPDATED if existed else WriteOutcome.CREATED
        else:
            inserted = await self.repository.insert_if_absent(values)
            outcome = WriteOutcome.CREATED if inserted else WriteOutcome.SKIPPED

        return PositionTransition(
            keyword_id=keyword.id,
            keyword=keyword.keyword,
            prev_position=prev_position,
            current_position=values["serp_position"],
            position_change=values["position_change"],
            outcome=outcome,
        )
