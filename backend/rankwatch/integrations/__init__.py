"""Clients for external services: SERP positions, search analytics, messaging."""

from rankwatch.integrations.dataforseo import (
    DataForSEOClient,
    DataForSEOError,
    SerpPosition,
)
from rankwatch.integrations.search_console import (
    SearchAnalyticsRow,
    SearchConsoleClient,
    SearchConsoleError,
)
from rankwatch.integrations.telegram import TelegramClient, TelegramResult

__all__ = [
    "DataForSEOClient",
    "DataForSEOError",
    "SearchAnalyticsRow",
    "SearchConsoleClient",
    "SearchConsoleError",
    "SerpPosition",
    "TelegramClient",
    "TelegramResult",
]
