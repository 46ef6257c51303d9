"""Run configuration API endpoints.

- GET /api/v1/config - Current configuration, defaults included
- PUT /api/v1/config - Create or overwrite keys
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.database import get_session
from rankwatch.core.logging import get_logger
from rankwatch.schemas.config import ConfigResponse, ConfigUpdate
from rankwatch.services.config import ConfigService, ConfigValidationError

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=ConfigResponse, summary="Get configuration")
async def get_config(session: AsyncSession = Depends(get_session)) -> ConfigResponse:
    """Stored configuration merged over the defaults."""
    return ConfigResponse(values=await ConfigService(session).get_config())


@router.put(
    "",
    response_model=ConfigResponse,
    summary="Update configuration",
    responses={
        400: {
            "description": "Invalid configuration",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Invalid configuration: alert_threshold: ...",
                        "code": "VALIDATION_ERROR",
                        "request_id": "<request_id>",
                    }
                }
            },
        },
    },
)
async def update_config(
    request: Request,
    data: ConfigUpdate,
    session: AsyncSession = Depends(get_session),
) -> ConfigResponse | JSONResponse:
    """Create or overwrite the given keys. Other keys are left alone."""
    request_id = getattr(request.state, "request_id", "unknown")
    try:
        values = await ConfigService(session).update_config(data.values)
    except ConfigValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(e), "code": "VALIDATION_ERROR", "request_id": request_id},
        )
    logger.info(
        "Config updated",
        extra={"request_id": request_id, "keys": sorted(data.values)},
    )
    return ConfigResponse(values=values)
