"""Tests for the collection trigger endpoints.

Tests cover:
- Shared-secret protection on every trigger
- Run results returned with 200 on success and 500 on failure
- Single-URL trigger with 404 for unknown URLs
- Backfill request validation
- Clearing snapshots and alerts
"""

from datetime import date
from unittest.mock import MagicMock

from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.auth import CRON_SECRET_HEADER
from rankwatch.integrations.dataforseo import SerpPosition
from rankwatch.models.alert import Alert
from rankwatch.models.weekly_snapshot import WeeklySnapshot

AUTH = {CRON_SECRET_HEADER: "test-secret"}


async def _count(session: AsyncSession, model: type) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return int(result.scalar_one())


class TestCronSecret:
    async def test_missing_secret_is_rejected(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/api/v1/cron")

        assert response.status_code == 401

    async def test_wrong_secret_is_rejected(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/admin/backfill", json={}, headers={CRON_SECRET_HEADER: "nope"}
        )

        assert response.status_code == 401

    async def test_admin_routes_are_protected(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/api/v1/admin/clear-snapshots")

        assert response.status_code == 401


class TestCron:
    async def test_successful_run(
        self,
        async_client: AsyncClient,
        seed_url,
        mock_serp_client: MagicMock,
    ) -> None:
        await seed_url(keywords=["foo", "bar"])
        mock_serp_client.get_serp_positions.return_value = {
            "foo": SerpPosition("foo", 4),
            "bar": SerpPosition("bar", None),
        }

        response = await async_client.post("/api/v1/cron", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["error"] is None
        assert data["counts"]["urls_processed"] == 1
        assert data["counts"]["snapshots_created"] == 2
        assert data["log"][-1].startswith("Done in")
        assert "X-Request-ID" in response.headers

    async def test_failed_run_returns_500_with_result(
        self,
        async_client: AsyncClient,
        seed_url,
        mock_serp_client: MagicMock,
    ) -> None:
        await seed_url(keywords=["foo"])
        mock_serp_client.available = False

        response = await async_client.post("/api/v1/cron", headers=AUTH)

        assert response.status_code == 500
        data = response.json()
        assert data["ok"] is False
        assert "DataForSEO credentials" in data["error"]
        assert data["log"][-1].startswith("FATAL ERROR:")


class TestTriggerUrl:
    async def test_unknown_url_returns_404(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/admin/trigger-url",
            json={"url_id": "00000000-0000-0000-0000-000000000000"},
            headers=AUTH,
        )

        assert response.status_code == 404
        data = response.json()
        assert data["ok"] is False
        assert data["error_code"] == "NOT_FOUND"
        assert data["error"] == "Tracked URL not found: 00000000-0000-0000-0000-000000000000"
        assert data["counts"]["urls_processed"] == 0
        assert data["log"][-1].startswith("FATAL ERROR:")

    async def test_runs_only_the_given_url(
        self,
        async_client: AsyncClient,
        seed_url,
        mock_serp_client: MagicMock,
    ) -> None:
        target, _ = await seed_url(url="https://example.com/a", keywords=["alpha"])
        await seed_url(url="https://example.com/b", keywords=["beta"])

        response = await async_client.post(
            "/api/v1/admin/trigger-url", json={"url_id": target.id}, headers=AUTH
        )

        assert response.status_code == 200
        assert response.json()["counts"]["urls_processed"] == 1
        assert mock_serp_client.get_serp_positions.await_args.args[0] == ["alpha"]


class TestBackfill:
    async def test_backfill_defaults_to_four_weeks(
        self,
        async_client: AsyncClient,
        seed_url,
    ) -> None:
        await seed_url(keywords=["foo"])

        response = await async_client.post("/api/v1/admin/backfill", json={}, headers=AUTH)

        assert response.status_code == 200
        counts = response.json()["counts"]
        assert counts["periods_processed"] == 4
        assert counts["snapshots_created"] == 4
        assert counts["alerts_critical"] == 0

    async def test_weeks_back_out_of_range(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/admin/backfill", json={"weeks_back": 0}, headers=AUTH
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestClearSnapshots:
    async def test_deletes_snapshots_and_alerts(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        seed_url,
        seed_snapshot,
    ) -> None:
        _, keywords = await seed_url(keywords=["foo"])
        await seed_snapshot(keywords[0].id, date(2026, 10, 5), 5)
        await seed_snapshot(keywords[0].id, date(2026, 10, 12), 12)
        db_session.add(
            Alert(
                keyword_id=keywords[0].id,
                type="left_page1",
                severity="critical",
                details="#5 → #12. Lost page 1.",
            )
        )
        await db_session.commit()

        response = await async_client.post("/api/v1/admin/clear-snapshots", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"snapshots_deleted": 2, "alerts_deleted": 1}
        assert await _count(db_session, WeeklySnapshot) == 0
        assert await _count(db_session, Alert) == 0
