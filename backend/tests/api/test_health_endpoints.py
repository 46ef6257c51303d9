"""Tests for the health endpoints."""

from httpx import AsyncClient


class TestHealth:
    async def test_health(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_database_health_reports_counts(
        self, async_client: AsyncClient, seed_url
    ) -> None:
        await seed_url(keywords=["foo", "bar"])

        response = await async_client.get("/health/db")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["database"] is True
        assert data["counts"] == {
            "tracked_urls": 1,
            "tracked_keywords": 2,
            "snapshots": 0,
            "open_alerts": 0,
        }

    async def test_scheduler_health_when_not_started(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/health/scheduler")

        assert response.status_code == 200
        assert response.json()["running"] is False

    async def test_request_id_is_echoed(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/health", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"
