"""Tests for snapshot reconciliation and the snapshot repository writes."""

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.integrations.dataforseo import SerpPosition
from rankwatch.integrations.search_console import SearchAnalyticsRow
from rankwatch.models.weekly_snapshot import WeeklySnapshot
from rankwatch.repositories.snapshot import SnapshotRepository
from rankwatch.services.reconciler import (
    KeywordTarget,
    SnapshotReconciler,
    SnapshotWriteMode,
    WriteOutcome,
    build_snapshot_values,
    compute_position_change,
)

WEEK = date(2026, 10, 19)


async def _snapshots(session: AsyncSession) -> list[WeeklySnapshot]:
    result = await session.execute(
        select(WeeklySnapshot).execution_options(populate_existing=True)
    )
    return list(result.scalars())


class TestComputePositionChange:
    def test_improvement_is_positive(self) -> None:
        assert compute_position_change(12, 5) == 7

    def test_decline_is_negative(self) -> None:
        assert compute_position_change(5, 12) == -7

    def test_unknown_position_is_zero(self) -> None:
        assert compute_position_change(None, 5) == 0
        assert compute_position_change(5, None) == 0


class TestBuildSnapshotValues:
    def test_defaults_without_sources(self) -> None:
        values = build_snapshot_values(KeywordTarget("k1", "foo"), WEEK, None, None, 4)

        assert values["gsc_clicks"] == 0
        assert values["gsc_impressions"] == 0
        assert values["gsc_position"] is None
        assert values["gsc_ctr"] is None
        assert values["serp_position"] is None
        assert values["serp_features"] is None
        assert values["prev_position"] == 4
        assert values["position_change"] == 0

    def test_merges_both_sources(self) -> None:
        analytics = SearchAnalyticsRow("foo", clicks=12, impressions=340, ctr=0.035, position=6.4)
        serp = SerpPosition("foo", 5, ["featured_snippet", "paa"], "https://example.com/a")

        values = build_snapshot_values(KeywordTarget("k1", "foo"), WEEK, analytics, serp, 9)

        assert values["gsc_clicks"] == 12
        assert values["gsc_position"] == 6.4
        assert values["serp_position"] == 5
        assert values["serp_features"] == "featured_snippet,paa"
        assert values["position_change"] == 4


class TestSnapshotReconciler:
    async def test_upsert_creates_then_updates(self, db_session: AsyncSession, seed_url) -> None:
        _, keywords = await seed_url(keywords=["foo"])
        target = KeywordTarget(keywords[0].id, "foo")
        reconciler = SnapshotReconciler(SnapshotRepository(db_session))

        first = await reconciler.reconcile(
            target, WEEK, {}, {"foo": SerpPosition("foo", 8)}, 5, SnapshotWriteMode.UPSERT
        )
        second = await reconciler.reconcile(
            target, WEEK, {}, {"foo": SerpPosition("foo", 3)}, 5, SnapshotWriteMode.UPSERT
        )
        await db_session.commit()

        assert first.outcome is WriteOutcome.CREATED
        assert second.outcome is WriteOutcome.UPDATED
        snapshots = await _snapshots(db_session)
        assert len(snapshots) == 1
        assert snapshots[0].serp_position == 3
        assert snapshots[0].position_change == 2

    async def test_create_only_never_overwrites(self, db_session: AsyncSession, seed_url) -> None:
        _, keywords = await seed_url(keywords=["foo"])
        target = KeywordTarget(keywords[0].id, "foo")
        reconciler = SnapshotReconciler(SnapshotRepository(db_session))

        await reconciler.reconcile(
            target, WEEK, {}, {"foo": SerpPosition("foo", 8)}, None, SnapshotWriteMode.UPSERT
        )
        result = await reconciler.reconcile(
            target, WEEK, {}, {"foo": SerpPosition("foo", 40)}, None, SnapshotWriteMode.CREATE_ONLY
        )
        await db_session.commit()

        assert result.outcome is WriteOutcome.SKIPPED
        snapshots = await _snapshots(db_session)
        assert len(snapshots) == 1
        assert snapshots[0].serp_position == 8

    async def test_keyword_lookup_is_case_insensitive(
        self, db_session: AsyncSession, seed_url
    ) -> None:
        _, keywords = await seed_url(keywords=["foo bar"])
        target = KeywordTarget(keywords[0].id, "Foo Bar")
        reconciler = SnapshotReconciler(SnapshotRepository(db_session))

        transition = await reconciler.reconcile(
            target,
            WEEK,
            {"foo bar": SearchAnalyticsRow("foo bar", clicks=3, impressions=50)},
            {"foo bar": SerpPosition("foo bar", 11)},
            None,
            SnapshotWriteMode.CREATE_ONLY,
        )

        assert transition.current_position == 11
        assert transition.position_change == 0


class TestSnapshotRepository:
    async def test_previous_positions_use_latest_earlier_week(
        self, db_session: AsyncSession, seed_url, seed_snapshot
    ) -> None:
        _, keywords = await seed_url(keywords=["foo", "bar", "baz"])
        foo, bar, baz = keywords
        await seed_snapshot(foo.id, date(2026, 9, 28), 9)
        await seed_snapshot(foo.id, date(2026, 10, 12), 5)
        await seed_snapshot(foo.id, WEEK, 30)
        await seed_snapshot(bar.id, date(2026, 10, 5), None)

        previous = await SnapshotRepository(db_session).get_previous_positions(
            [foo.id, bar.id, baz.id], WEEK
        )

        assert previous == {foo.id: 5, bar.id: None}

    async def test_delete_older_than(self, db_session: AsyncSession, seed_url, seed_snapshot) -> None:
        _, keywords = await seed_url(keywords=["foo"])
        await seed_snapshot(keywords[0].id, date(2026, 7, 13), 4)
        await seed_snapshot(keywords[0].id, date(2026, 7, 20), 4)
        await seed_snapshot(keywords[0].id, date(2026, 7, 27), 4)

        deleted = await SnapshotRepository(db_session).delete_older_than(date(2026, 7, 22))
        await db_session.commit()

        assert deleted == 2
        count = await db_session.execute(select(func.count()).select_from(WeeklySnapshot))
        assert count.scalar_one() == 1
