"""Telegram Bot API client used as the notification sink.

Delivery is best effort:
- no bot token or chat id configured means every send is a silent no-op
- transport errors, timeouts and API errors are logged and returned as a
  failed ``TelegramResult``; ``send_message`` never raises
"""

import asyncio
import time
from dataclasses import dataclass

import httpx

from rankwatch.core.config import Settings
from rankwatch.core.logging import get_logger, telegram_logger

logger = get_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"

# Telegram rejects longer messages
MAX_MESSAGE_LENGTH = 4096


@dataclass
class TelegramResult:
    """Result of a send operation."""

    success: bool
    skipped: bool = False
    message_id: int | None = None
    status_code: int | None = None
    error: str | None = None
    duration_ms: float = 0.0


class TelegramError(Exception):
    """Raised internally for a failed delivery attempt."""

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class TelegramClient:
    """Sends HTML-formatted messages to one chat."""

    def __init__(
        self,
        bot_token: str | None,
        chat_id: str | None,
        timeout: float = 15.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "TelegramClient":
        """Build a client from application settings."""
        return cls(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            timeout=settings.telegram_timeout,
            max_retries=settings.telegram_max_retries,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        """True when both the bot token and chat id are set."""
        return bool(self._bot_token and self._chat_id)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=TELEGRAM_API_URL,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post_message(self, text: str) -> int | None:
        client = await self._get_client()
        try:
            response = await client.post(
                f"/bot{self._bot_token}/sendMessage",
                json={
                    "chat_id": self._chat_id,
                    "text": text,
                    "parse_mode": "HTML",
                    "disable_web_page_preview": True,
                },
            )
        except httpx.TimeoutException as e:
            raise TelegramError(f"Request timed out after {self._timeout}s", retryable=True) from e
        except httpx.RequestError as e:
            raise TelegramError(f"Request failed: {e}", retryable=True) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TelegramError(
                f"Telegram API error ({response.status_code})",
                status_code=response.status_code,
                retryable=True,
            )

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code >= 400 or not payload.get("ok", False):
            description = payload.get("description") or response.text[:200]
            raise TelegramError(
                f"Telegram API error ({response.status_code}): {description}",
                status_code=response.status_code,
            )

        message_id = (payload.get("result") or {}).get("message_id")
        return int(message_id) if message_id is not None else None

    async def send_message(self, text: str) -> TelegramResult:
        """Deliver ``text`` to the configured chat. Never raises."""
        if not self.configured:
            telegram_logger.send_skipped("Telegram not configured")
            return TelegramResult(success=False, skipped=True)

        if len(text) > MAX_MESSAGE_LENGTH:
            # HTML cannot be cut safely here; callers size their messages
            telegram_logger.message_too_long(len(text), MAX_MESSAGE_LENGTH)

        start_time = time.monotonic()
        last_error: TelegramError | None = None

        for attempt in range(self._max_retries):
            try:
                message_id = await self._post_message(text)
            except TelegramError as e:
                last_error = e
                telegram_logger.send_error(str(e), e.status_code, retry_attempt=attempt)
                if e.retryable and attempt < self._max_retries - 1:
                    await asyncio.sleep(self._retry_delay * (2**attempt))
                    continue
                break

            duration_ms = (time.monotonic() - start_time) * 1000
            telegram_logger.send_success(message_id, duration_ms)
            return TelegramResult(
                success=True, message_id=message_id, duration_ms=duration_ms
            )

        return TelegramResult(
            success=False,
            status_code=last_error.status_code if last_error else None,
            error=str(last_error) if last_error else "Unknown error",
            duration_ms=(time.monotonic() - start_time) * 1000,
        )


# Global Telegram client instance
telegram_client: TelegramClient | None = None


async def init_telegram(settings: Settings) -> TelegramClient:
    """Initialize the global Telegram client."""
    global telegram_client
    if telegram_client is None:
        telegram_client = TelegramClient.from_settings(settings)
        if telegram_client.configured:
            logger.info("Telegram client initialized")
        else:
            logger.info("Telegram not configured, weekly reports disabled")
    return telegram_client


async def close_telegram() -> None:
    """Close the global Telegram client."""
    global telegram_client
    if telegram_client:
        await telegram_client.close()
        telegram_client = None


def get_telegram() -> TelegramClient:
    """Dependency for getting the Telegram client."""
    if telegram_client is None:
        raise RuntimeError("Telegram client not initialized")
    return telegram_client
