"""Tests for the run configuration endpoints."""

from httpx import AsyncClient


class TestConfig:
    async def test_defaults_are_reported(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/api/v1/config")

        assert response.status_code == 200
        values = response.json()["values"]
        assert values["alert_threshold"] == "3"
        assert values["archive_weeks"] == "13"
        assert values["serp_country"] == "us"

    async def test_update_merges_keys(self, async_client: AsyncClient) -> None:
        response = await async_client.put(
            "/api/v1/config",
            json={"values": {"alert_threshold": "5", "target_domain": "example.com"}},
        )

        assert response.status_code == 200
        values = response.json()["values"]
        assert values["alert_threshold"] == "5"
        assert values["target_domain"] == "example.com"
        assert values["serp_language"] == "en"

        again = await async_client.get("/api/v1/config")
        assert again.json()["values"]["alert_threshold"] == "5"

    async def test_invalid_value_is_rejected(self, async_client: AsyncClient) -> None:
        response = await async_client.put(
            "/api/v1/config", json={"values": {"alert_threshold": "0"}}
        )

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert "alert_threshold" in data["error"]
        current = await async_client.get("/api/v1/config")
        assert current.json()["values"]["alert_threshold"] == "3"

    async def test_empty_update_is_invalid(self, async_client: AsyncClient) -> None:
        response = await async_client.put("/api/v1/config", json={"values": {}})

        assert response.status_code == 422
