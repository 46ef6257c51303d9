"""Google Search Console client for per-page query metrics.

Uses the official discovery client (``searchconsole`` v1) authenticated with
a service account. The discovery client is synchronous, so each query runs
in a worker thread and is bounded by an explicit timeout.

Search Console data lags by a few days; callers choose the date range.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from datetime import date
from typing import Any

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from rankwatch.core.config import Settings
from rankwatch.core.logging import get_logger, search_console_logger

logger = get_logger(__name__)

SEARCH_CONSOLE_SCOPES = ["https://www.googleapis.com/auth/webmasters.readonly"]


@dataclass
class SearchAnalyticsRow:
    """Metrics for one query on one page over a date range."""

    keyword: str
    clicks: int = 0
    impressions: int = 0
    ctr: float | None = None
    position: float | None = None


class SearchConsoleError(Exception):
    """Base exception for Search Console errors."""

    pass


class SearchConsoleTimeoutError(SearchConsoleError):
    """Raised when a query exceeds the configured timeout."""

    pass


class SearchConsoleClient:
    """Async facade over the Search Console searchanalytics API."""

    def __init__(
        self,
        credentials_info: dict[str, Any] | None = None,
        credentials_file: str | None = None,
        timeout: float = 60.0,
        row_limit: int = 500,
        service: Any | None = None,
    ) -> None:
        self._credentials_info = credentials_info
        self._credentials_file = credentials_file
        self._timeout = timeout
        self._row_limit = row_limit
        self._service = service
        self._available = bool(service or credentials_info or credentials_file)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SearchConsoleClient":
        """Build a client from application settings."""
        credentials_info = (
            json.loads(settings.gsc_credentials_json)
            if settings.gsc_credentials_json
            else None
        )
        return cls(
            credentials_info=credentials_info,
            credentials_file=settings.gsc_credentials_file,
            timeout=settings.gsc_timeout,
            row_limit=settings.gsc_row_limit,
        )

    @property
    def available(self) -> bool:
        """Check if Search Console credentials are configured."""
        return self._available

    def _get_service(self) -> Any:
        """Build the discovery resource on first use."""
        if self._service is None:
            if self._credentials_info is not None:
                credentials = service_account.Credentials.from_service_account_info(
                    self._credentials_info, scopes=SEARCH_CONSOLE_SCOPES
                )
            elif self._credentials_file:
                credentials = service_account.Credentials.from_service_account_file(
                    self._credentials_file, scopes=SEARCH_CONSOLE_SCOPES
                )
            else:
                raise SearchConsoleError(
                    "Search Console not configured (missing service account credentials)"
                )
            self._service = build(
                "searchconsole", "v1", credentials=credentials, cache_discovery=False
            )
            logger.info("Search Console service built")
        return self._service

    def _execute_query(self, site_url: str, body: dict[str, Any]) -> list[dict[str, Any]]:
        service = self._get_service()
        response = service.searchanalytics().query(siteUrl=site_url, body=body).execute()
        rows: list[dict[str, Any]] = response.get("rows", [])
        return rows

    async def _query_page(
        self, site_url: str, page_url: str, start_date: date, end_date: date
    ) -> list[SearchAnalyticsRow]:
        """Fetch query-level rows for a single page."""
        body = {
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "dimensions": ["query", "page"],
            "dimensionFilterGroups": [
                {
                    "filters": [
                        {"dimension": "page", "operator": "equals", "expression": page_url}
                    ]
                }
            ],
            "rowLimit": self._row_limit,
        }

        search_console_logger.query_start(
            site_url, page_url, body["startDate"], body["endDate"]
        )
        start_time = time.monotonic()
        try:
            raw_rows = await asyncio.wait_for(
                asyncio.to_thread(self._execute_query, site_url, body),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            search_console_logger.query_error(
                page_url, f"Timed out after {self._timeout}s", "TimeoutError", duration_ms
            )
            raise SearchConsoleTimeoutError(
                f"Search Console query timed out after {self._timeout}s"
            ) from e
        except HttpError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            search_console_logger.query_error(page_url, str(e), "HttpError", duration_ms)
            raise SearchConsoleError(f"Search Console API error: {e}") from e

        duration_ms = (time.monotonic() - start_time) * 1000
        search_console_logger.query_success(page_url, len(raw_rows), duration_ms)

        return [
            SearchAnalyticsRow(
                keyword=str(row["keys"][0]).lower(),
                clicks=int(row.get("clicks", 0)),
                impressions=int(row.get("impressions", 0)),
                ctr=float(row["ctr"]) if row.get("ctr") is not None else None,
                position=float(row["position"]) if row.get("position") is not None else None,
            )
            for row in raw_rows
            if row.get("keys")
        ]

    async def get_keyword_metrics(
        self,
        site_url: str,
        page_url: str,
        start_date: date,
        end_date: date,
        keywords: list[str],
    ) -> dict[str, SearchAnalyticsRow]:
        """Metrics for the given keywords on one page, keyed by lowercase keyword.

        Keywords without any Search Console row are absent from the mapping.
        """
        wanted = {keyword.lower() for keyword in keywords}
        rows = await self._query_page(site_url, page_url, start_date, end_date)
        return {row.keyword: row for row in rows if row.keyword in wanted}

    async def get_top_queries(
        self,
        site_url: str,
        page_url: str,
        start_date: date,
        end_date: date,
        min_impressions: int = 0,
    ) -> list[SearchAnalyticsRow]:
        """All queries for one page above an impressions floor, most impressions first."""
        rows = await self._query_page(site_url, page_url, start_date, end_date)
        qualifying = [row for row in rows if row.impressions >= min_impressions]
        return sorted(qualifying, key=lambda row: row.impressions, reverse=True)


# Global Search Console client instance
search_console_client: SearchConsoleClient | None = None


async def init_search_console(settings: Settings) -> SearchConsoleClient:
    """Initialize the global Search Console client."""
    global search_console_client
    if search_console_client is None:
        search_console_client = SearchConsoleClient.from_settings(settings)
        if search_console_client.available:
            logger.info("Search Console client initialized")
        else:
            logger.info("Search Console not configured (missing credentials)")
    return search_console_client


async def close_search_console() -> None:
    """Drop the global Search Console client."""
    global search_console_client
    search_console_client = None


def get_search_console() -> SearchConsoleClient:
    """Dependency for getting the Search Console client."""
    if search_console_client is None:
        raise RuntimeError("Search Console client not initialized")
    return search_console_client
