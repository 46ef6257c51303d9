"""Unit tests for the Search Console client.

The discovery service is replaced by a MagicMock, so no credentials or
network access are needed.
"""

import time
from datetime import date
from typing import Any
from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from rankwatch.integrations.search_console import (
    SearchConsoleClient,
    SearchConsoleError,
    SearchConsoleTimeoutError,
)

SITE = "sc-domain:example.com"
PAGE = "https://example.com/guide"
START = date(2026, 10, 9)
END = date(2026, 10, 16)


def make_service(rows: list[dict[str, Any]]) -> MagicMock:
    service = MagicMock()
    service.searchanalytics.return_value.query.return_value.execute.return_value = {
        "rows": rows
    }
    return service


def row(query: str, clicks: int, impressions: int, position: float = 8.0) -> dict[str, Any]:
    return {
        "keys": [query, PAGE],
        "clicks": clicks,
        "impressions": impressions,
        "ctr": clicks / impressions if impressions else 0.0,
        "position": position,
    }


class TestSearchConsoleClient:
    def test_available_without_credentials(self) -> None:
        assert SearchConsoleClient().available is False
        assert SearchConsoleClient(credentials_file="/etc/sa.json").available is True

    async def test_keyword_metrics_filtered_and_lowercased(self) -> None:
        service = make_service([row("Foo", 10, 500, 4.5), row("unrelated", 1, 50)])
        client = SearchConsoleClient(service=service)

        metrics = await client.get_keyword_metrics(SITE, PAGE, START, END, ["foo", "bar"])

        assert list(metrics) == ["foo"]
        assert metrics["foo"].clicks == 10
        assert metrics["foo"].impressions == 500
        assert metrics["foo"].position == 4.5

        query = service.searchanalytics.return_value.query
        kwargs = query.call_args.kwargs
        assert kwargs["siteUrl"] == SITE
        assert kwargs["body"]["startDate"] == "2026-10-09"
        assert kwargs["body"]["endDate"] == "2026-10-16"
        page_filter = kwargs["body"]["dimensionFilterGroups"][0]["filters"][0]
        assert page_filter["expression"] == PAGE

    async def test_top_queries_sorted_above_floor(self) -> None:
        service = make_service([row("a", 1, 150), row("b", 2, 90), row("c", 5, 800)])
        client = SearchConsoleClient(service=service)

        queries = await client.get_top_queries(SITE, PAGE, START, END, min_impressions=100)

        assert [q.keyword for q in queries] == ["c", "a"]

    async def test_http_error_is_wrapped(self) -> None:
        service = MagicMock()
        service.searchanalytics.return_value.query.return_value.execute.side_effect = HttpError(
            resp=MagicMock(status=403, reason="Forbidden"), content=b"forbidden"
        )
        client = SearchConsoleClient(service=service)

        with pytest.raises(SearchConsoleError):
            await client.get_keyword_metrics(SITE, PAGE, START, END, ["foo"])

    async def test_slow_query_times_out(self) -> None:
        def slow_execute() -> dict[str, Any]:
            time.sleep(0.2)
            return {"rows": []}

        service = MagicMock()
        service.searchanalytics.return_value.query.return_value.execute.side_effect = slow_execute
        client = SearchConsoleClient(service=service, timeout=0.01)

        with pytest.raises(SearchConsoleTimeoutError):
            await client.get_top_queries(SITE, PAGE, START, END)

    async def test_missing_credentials_raise(self) -> None:
        client = SearchConsoleClient()

        with pytest.raises(SearchConsoleError, match="not configured"):
            await client.get_top_queries(SITE, PAGE, START, END)
