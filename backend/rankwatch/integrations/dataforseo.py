"""DataForSEO API client for SERP position checks.

Features:
- Async HTTP client using httpx with an explicit per-request timeout
- Retry logic with exponential backoff for timeouts, 429 and 5xx
- Fixed pause between successive batches to respect upstream rate limits
- Request/response logging, credentials never logged
- Cost usage logging for quota tracking

Two lookups are exposed:
- live organic SERP (``/v3/serp/google/organic/live/regular``), up to 100
  tasks per request
- historical SERP snapshots from DataForSEO Labs, up to 10 tasks per request

Both return a mapping of lowercase keyword to ``SerpPosition``. A keyword that
is missing from the mapping had its task fail; a keyword present with
``position=None`` was checked but the target domain was not found.
"""

import asyncio
import base64
import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import httpx

from rankwatch.core.config import Settings
from rankwatch.core.logging import dataforseo_logger, get_logger

logger = get_logger(__name__)

DATAFORSEO_API_URL = "https://api.dataforseo.com"

LIVE_SERP_ENDPOINT = "/v3/serp/google/organic/live/regular"
HISTORICAL_SERP_ENDPOINT = "/v3/dataforseo_labs/google/historical_serps/live"

# DataForSEO reports success per response and per task with this code
STATUS_OK = 20000

DEFAULT_LOCATION_CODE = 2840

LOCATION_CODES: dict[str, int] = {
    "us": 2840,
    "gb": 2826,
    "ng": 2566,
    "de": 2276,
    "ca": 2124,
    "au": 2036,
}

# SERP item type -> feature tag stored on snapshots
SERP_FEATURE_TAGS: dict[str, str] = {
    "featured_snippet": "featured_snippet",
    "people_also_ask": "paa",
    "local_pack": "local_pack",
    "knowledge_graph": "knowledge_graph",
    "video": "video",
}


def location_code_for(country: str | None) -> int:
    """Map a two-letter country code to a DataForSEO location code."""
    if not country:
        return DEFAULT_LOCATION_CODE
    return LOCATION_CODES.get(country.strip().lower(), DEFAULT_LOCATION_CODE)


@dataclass
class SerpPosition:
    """Where the target domain ranks for one keyword."""

    keyword: str
    position: int | None = None
    serp_features: list[str] = field(default_factory=list)
    found_url: str | None = None


class DataForSEOError(Exception):
    """Base exception for DataForSEO API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.request_id = request_id


class DataForSEOTimeoutError(DataForSEOError):
    """Raised when a request times out."""

    pass


class DataForSEORateLimitError(DataForSEOError):
    """Raised when rate limited (429)."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message, status_code=429, request_id=request_id)
        self.retry_after = retry_after


class DataForSEOAuthError(DataForSEOError):
    """Raised when authentication fails (401/403)."""

    pass


def find_domain_position(
    items: list[dict[str, Any]], target_domain: str
) -> tuple[int | None, str | None]:
    """Return (rank, url) of the first organic result on ``target_domain``.

    Matching is a substring test against each result's ``domain`` field, so
    ``example.com`` also matches ``blog.example.com``.
    """
    needle = target_domain.lower()
    for item in items:
        if item.get("type") != "organic":
            continue
        domain = (item.get("domain") or "").lower()
        if needle and needle in domain:
            rank = item.get("rank_absolute") or item.get("rank_group")
            return (int(rank) if rank is not None else None), item.get("url")
    return None, None


def extract_serp_features(items: list[dict[str, Any]]) -> list[str]:
    """Collect SERP feature tags present in the result items, in order."""
    features: list[str] = []
    for item in items:
        tag = SERP_FEATURE_TAGS.get(item.get("type") or "")
        if tag and tag not in features:
            features.append(tag)
    return features


def _result_items(task: dict[str, Any]) -> list[dict[str, Any]]:
    """Pull SERP items out of a task, unwrapping historical snapshots."""
    results = task.get("result") or []
    if not results:
        return []
    items: list[dict[str, Any]] = results[0].get("items") or []
    # Historical SERP results wrap each crawl in its own item list
    if items and "items" in items[0] and "type" not in items[0]:
        return items[0].get("items") or []
    return items


def parse_serp_tasks(
    response_data: dict[str, Any], target_domain: str
) -> dict[str, SerpPosition]:
    """Turn a DataForSEO SERP response into keyword -> SerpPosition.

    Tasks with a non-success status code are left out of the mapping.
    """
    positions: dict[str, SerpPosition] = {}
    for task in response_data.get("tasks") or []:
        keyword = ((task.get("data") or {}).get("keyword") or "").lower()
        if not keyword:
            continue
        if task.get("status_code") != STATUS_OK:
            logger.warning(
                "DataForSEO task failed",
                extra={
                    "keyword": keyword,
                    "status_code": task.get("status_code"),
                    "status_message": task.get("status_message"),
                },
            )
            continue

        items = _result_items(task)
        position, found_url = find_domain_position(items, target_domain)
        positions[keyword] = SerpPosition(
            keyword=keyword,
            position=position,
            serp_features=extract_serp_features(items),
            found_url=found_url,
        )
    return positions


class DataForSEOClient:
    """Async client for DataForSEO SERP endpoints.

    Authentication:
    DataForSEO uses HTTP Basic Auth with login (email) and password.
    """

    def __init__(
        self,
        api_login: str | None,
        api_password: str | None,
        timeout: float = 60.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        live_batch_size: int = 100,
        historical_batch_size: int = 10,
        live_batch_pause: float = 1.0,
        historical_batch_pause: float = 3.0,
        serp_depth: int = 100,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_login = api_login
        self._api_password = api_password
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay
        self._live_batch_size = live_batch_size
        self._historical_batch_size = historical_batch_size
        self._live_batch_pause = live_batch_pause
        self._historical_batch_pause = historical_batch_pause
        self._serp_depth = serp_depth
        self._transport = transport

        self._client: httpx.AsyncClient | None = None
        self._available = bool(self._api_login and self._api_password)

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "DataForSEOClient":
        """Build a client from application settings."""
        return cls(
            api_login=settings.dataforseo_api_login,
            api_password=settings.dataforseo_api_password,
            timeout=settings.dataforseo_timeout,
            max_retries=settings.dataforseo_max_retries,
            retry_delay=settings.dataforseo_retry_delay,
            live_batch_size=settings.dataforseo_live_batch_size,
            historical_batch_size=settings.dataforseo_historical_batch_size,
            live_batch_pause=settings.dataforseo_live_batch_pause,
            historical_batch_pause=settings.dataforseo_historical_batch_pause,
            serp_depth=settings.dataforseo_serp_depth,
            transport=transport,
        )

    @property
    def available(self) -> bool:
        """Check if DataForSEO credentials are configured."""
        return self._available

    def _get_auth_header(self) -> str:
        """Generate Basic Auth header value."""
        credentials = f"{self._api_login}:{self._api_password}"
        encoded = base64.b64encode(credentials.encode()).decode()
        return f"Basic {encoded}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=DATAFORSEO_API_URL,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "Authorization": self._get_auth_header(),
                },
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("DataForSEO client closed")

    async def _backoff(self, attempt: int, reason: str, request_id: str) -> bool:
        """Sleep before the next attempt. Returns False when out of attempts."""
        if attempt >= self._max_retries - 1:
            return False
        delay = self._retry_delay * (2**attempt)
        logger.warning(
            f"DataForSEO request attempt {attempt + 1} {reason}, retrying in {delay}s",
            extra={
                "attempt": attempt + 1,
                "max_retries": self._max_retries,
                "delay_seconds": delay,
                "request_id": request_id,
            },
        )
        await asyncio.sleep(delay)
        return True

    async def _make_request(
        self,
        endpoint: str,
        payload: list[dict[str, Any]],
    ) -> tuple[dict[str, Any], str]:
        """POST a task list to DataForSEO with retry logic.

        Returns:
            Tuple of (response_data, request_id)

        Raises:
            DataForSEOError: On API errors
            DataForSEOTimeoutError: On timeout
            DataForSEORateLimitError: On rate limit (429)
            DataForSEOAuthError: On auth failure (401/403)
        """
        request_id = str(uuid.uuid4())[:8]

        if not self._available:
            raise DataForSEOError(
                "DataForSEO not configured (missing API credentials)",
                request_id=request_id,
            )

        client = await self._get_client()
        last_error: DataForSEOError | None = None

        for attempt in range(self._max_retries):
            attempt_start = time.monotonic()
            dataforseo_logger.api_call_start(
                endpoint, retry_attempt=attempt, request_id=request_id
            )
            dataforseo_logger.request_body(endpoint, payload)

            try:
                response = await client.post(endpoint, json=payload)
            except httpx.TimeoutException:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                dataforseo_logger.timeout(endpoint, self._timeout)
                dataforseo_logger.api_call_error(
                    endpoint, duration_ms, None, "Request timed out", "TimeoutError",
                    retry_attempt=attempt, request_id=request_id,
                )
                last_error = DataForSEOTimeoutError(
                    f"Request timed out after {self._timeout}s",
                    request_id=request_id,
                )
                if await self._backoff(attempt, "timed out", request_id):
                    continue
                break
            except httpx.RequestError as e:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                dataforseo_logger.api_call_error(
                    endpoint, duration_ms, None, str(e), type(e).__name__,
                    retry_attempt=attempt, request_id=request_id,
                )
                last_error = DataForSEOError(f"Request failed: {e}", request_id=request_id)
                if await self._backoff(attempt, "failed", request_id):
                    continue
                break

            duration_ms = (time.monotonic() - attempt_start) * 1000

            if response.status_code == 429:
                retry_after_str = response.headers.get("retry-after")
                retry_after = float(retry_after_str) if retry_after_str else None
                dataforseo_logger.rate_limit(
                    endpoint, retry_after=retry_after, request_id=request_id
                )
                last_error = DataForSEORateLimitError(
                    "Rate limit exceeded", retry_after=retry_after, request_id=request_id
                )
                if attempt < self._max_retries - 1 and retry_after and retry_after <= 60:
                    await asyncio.sleep(retry_after)
                    continue
                if await self._backoff(attempt, "was rate limited", request_id):
                    continue
                break

            if response.status_code in (401, 403):
                dataforseo_logger.auth_failure(response.status_code)
                raise DataForSEOAuthError(
                    f"Authentication failed ({response.status_code})",
                    status_code=response.status_code,
                    request_id=request_id,
                )

            if response.status_code >= 500:
                error_msg = f"Server error ({response.status_code})"
                dataforseo_logger.api_call_error(
                    endpoint, duration_ms, response.status_code, error_msg, "ServerError",
                    retry_attempt=attempt, request_id=request_id,
                )
                last_error = DataForSEOError(
                    error_msg, status_code=response.status_code, request_id=request_id
                )
                if await self._backoff(attempt, "failed", request_id):
                    continue
                break

            if response.status_code >= 400:
                error_msg = response.text[:500] or "Client error"
                dataforseo_logger.api_call_error(
                    endpoint, duration_ms, response.status_code, error_msg, "ClientError",
                    retry_attempt=attempt, request_id=request_id,
                )
                raise DataForSEOError(
                    f"Client error ({response.status_code}): {error_msg}",
                    status_code=response.status_code,
                    request_id=request_id,
                )

            try:
                response_data: dict[str, Any] = response.json()
            except ValueError as e:
                raise DataForSEOError(
                    f"Invalid JSON response: {e}",
                    status_code=response.status_code,
                    request_id=request_id,
                ) from e
            if response_data.get("status_code") != STATUS_OK:
                message = response_data.get("status_message") or "Unknown API error"
                dataforseo_logger.api_call_error(
                    endpoint, duration_ms, response.status_code, message, "ApiError",
                    retry_attempt=attempt, request_id=request_id,
                )
                raise DataForSEOError(
                    f"API error {response_data.get('status_code')}: {message}",
                    status_code=response.status_code,
                    response_body=response_data,
                    request_id=request_id,
                )

            cost = response_data.get("cost")
            dataforseo_logger.api_call_success(
                endpoint,
                duration_ms,
                cost=cost,
                tasks_count=response_data.get("tasks_count"),
                request_id=request_id,
            )
            if cost is not None:
                dataforseo_logger.cost_usage(cost, endpoint=endpoint)

            return response_data, request_id

        raise last_error or DataForSEOError(
            "Request failed after all retries", request_id=request_id
        )

    async def _collect_positions(
        self,
        endpoint: str,
        tasks: list[dict[str, Any]],
        target_domain: str,
        batch_size: int,
        batch_pause: float,
    ) -> dict[str, SerpPosition]:
        """Send tasks in batches and merge the parsed positions.

        A failed batch only drops its own keywords. If every batch fails the
        last error is raised so the caller can record a source outage.
        """
        if not self._available:
            raise DataForSEOError("DataForSEO not configured (missing API credentials)")

        batches = [tasks[i : i + batch_size] for i in range(0, len(tasks), batch_size)]
        positions: dict[str, SerpPosition] = {}
        last_error: DataForSEOError | None = None
        failed = 0

        for index, batch in enumerate(batches):
            if index > 0:
                await asyncio.sleep(batch_pause)
            try:
                response_data, _ = await self._make_request(endpoint, batch)
            except DataForSEOError as e:
                failed += 1
                last_error = e
                dataforseo_logger.batch_complete(
                    endpoint, index, len(batches), len(batch), success=False
                )
                continue

            positions.update(parse_serp_tasks(response_data, target_domain))
            dataforseo_logger.batch_complete(
                endpoint, index, len(batches), len(batch), success=True
            )

        if batches and failed == len(batches) and last_error is not None:
            raise last_error
        return positions

    async def get_serp_positions(
        self,
        keywords: list[str],
        target_domain: str,
        country: str = "us",
        language: str = "en",
    ) -> dict[str, SerpPosition]:
        """Check live Google organic positions of ``target_domain``.

        Args:
            keywords: Keywords to check
            target_domain: Bare hostname, e.g. ``example.com``
            country: Two-letter country code (mapped to a location code)
            language: Language code, e.g. ``en``
        """
        location_code = location_code_for(country)
        tasks = [
            {
                "keyword": keyword,
                "location_code": location_code,
                "language_code": language,
                "depth": self._serp_depth,
            }
            for keyword in keywords
        ]
        return await self._collect_positions(
            LIVE_SERP_ENDPOINT,
            tasks,
            target_domain,
            self._live_batch_size,
            self._live_batch_pause,
        )

    async def get_historical_serp_positions(
        self,
        keywords: list[str],
        target_domain: str,
        on_date: date,
        country: str = "us",
        language: str = "en",
    ) -> dict[str, SerpPosition]:
        """Look up positions of ``target_domain`` in SERPs crawled on ``on_date``."""
        location_code = location_code_for(country)
        day = on_date.isoformat()
        tasks = [
            {
                "keyword": keyword,
                "location_code": location_code,
                "language_code": language,
                "date_from": day,
                "date_to": day,
            }
            for keyword in keywords
        ]
        return await self._collect_positions(
            HISTORICAL_SERP_ENDPOINT,
            tasks,
            target_domain,
            self._historical_batch_size,
            self._historical_batch_pause,
        )


# Global DataForSEO client instance
dataforseo_client: DataForSEOClient | None = None


async def init_dataforseo(settings: Settings) -> DataForSEOClient:
    """Initialize the global DataForSEO client."""
    global dataforseo_client
    if dataforseo_client is None:
        dataforseo_client = DataForSEOClient.from_settings(settings)
        if dataforseo_client.available:
            logger.info("DataForSEO client initialized")
        else:
            logger.info("DataForSEO not configured (missing API credentials)")
    return dataforseo_client


async def close_dataforseo() -> None:
    """Close the global DataForSEO client."""
    global dataforseo_client
    if dataforseo_client:
        await dataforseo_client.close()
        dataforseo_client = None


def get_dataforseo() -> DataForSEOClient:
    """Dependency for getting the DataForSEO client."""
    if dataforseo_client is None:
        raise RuntimeError("DataForSEO client not initialized")
    return dataforseo_client
