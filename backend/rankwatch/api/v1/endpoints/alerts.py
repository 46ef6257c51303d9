"""Alert API endpoints.

- GET /api/v1/alerts - List alerts, newest first
- PATCH /api/v1/alerts/{alert_id} - Update status and/or action
"""

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.database import get_session
from rankwatch.core.logging import get_logger
from rankwatch.schemas.alert import AlertListResponse, AlertResponse, AlertUpdate
from rankwatch.services.alerts import AlertNotFoundError, AlertService

logger = get_logger(__name__)

router = APIRouter()


def _get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


@router.get(
    "",
    response_model=AlertListResponse,
    summary="List alerts",
)
async def list_alerts(
    status_filter: str | None = Query(default=None, alias="status", description="Workflow status"),
    severity: str | None = Query(default=None, description="critical, warning or positive"),
    limit: int = Query(default=100, ge=1, le=1000, description="Number of results"),
    session: AsyncSession = Depends(get_session),
) -> AlertListResponse:
    """Newest alerts first, optionally filtered by status and severity."""
    items = await AlertService(session).list_alerts(
        status=status_filter, severity=severity, limit=limit
    )
    return AlertListResponse(items=items, total=len(items))


@router.patch(
    "/{alert_id}",
    response_model=AlertResponse,
    summary="Update an alert",
    responses={
        404: {
            "description": "Alert not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Alert not found: <uuid>",
                        "code": "NOT_FOUND",
                        "request_id": "<request_id>",
                    }
                }
            },
        },
    },
)
async def update_alert(
    request: Request,
    alert_id: str,
    data: AlertUpdate,
    session: AsyncSession = Depends(get_session),
) -> AlertResponse | JSONResponse:
    """Move an alert through its workflow."""
    request_id = _get_request_id(request)
    try:
        return await AlertService(session).update_alert(alert_id, data)
    except AlertNotFoundError as e:
        logger.warning(
            "Alert not found",
            extra={"request_id": request_id, "alert_id": alert_id},
        )
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": str(e), "code": "NOT_FOUND", "request_id": request_id},
        )
