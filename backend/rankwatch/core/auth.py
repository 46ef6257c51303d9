"""Shared-secret authentication for trigger endpoints.

The scheduler (or an external cron) calls the trigger endpoints with an
``X-Cron-Secret`` header. When CRON_SECRET is unset every caller is accepted.
"""

import hmac

from fastapi import Depends, HTTPException, Request, status

from rankwatch.core.config import Settings, get_settings
from rankwatch.core.logging import get_logger

logger = get_logger(__name__)

CRON_SECRET_HEADER = "X-Cron-Secret"


def is_valid_secret(provided: str | None, expected: str | None) -> bool:
    """Return True if ``provided`` satisfies the configured secret."""
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


async def verify_cron_secret(
    request: Request, settings: Settings = Depends(get_settings)
) -> None:
    """FastAPI dependency rejecting trigger calls without the shared secret."""
    provided = request.headers.get(CRON_SECRET_HEADER)
    if is_valid_secret(provided, settings.cron_secret):
        return

    logger.warning(
        "Rejected trigger call with missing or invalid secret",
        extra={
            "path": request.url.path,
            "header_present": provided is not None,
        },
    )
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
    )
