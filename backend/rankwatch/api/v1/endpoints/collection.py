"""Collection trigger API endpoints.

- POST /api/v1/cron - Run the weekly collection for every tracked URL
- POST /api/v1/admin/backfill - Fill missing snapshots for past weeks
- POST /api/v1/admin/trigger-url - Run the weekly collection for one URL
- POST /api/v1/admin/clear-snapshots - Delete all snapshots and alerts

Every endpoint requires the X-Cron-Secret header when CRON_SECRET is set.
Run endpoints return the run result with 200 when it succeeded, 404 when
the requested URL is unknown and 500 for any other failure; the body has
the same shape in every case.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.auth import verify_cron_secret
from rankwatch.core.config import Settings, get_settings
from rankwatch.core.database import get_session
from rankwatch.core.logging import get_logger
from rankwatch.integrations.dataforseo import DataForSEOClient, get_dataforseo
from rankwatch.integrations.search_console import SearchConsoleClient, get_search_console
from rankwatch.integrations.telegram import TelegramClient, get_telegram
from rankwatch.repositories.alert import AlertRepository
from rankwatch.repositories.snapshot import SnapshotRepository
from rankwatch.schemas.collection import (
    BackfillRequest,
    ClearSnapshotsResponse,
    RunResult,
    TriggerUrlRequest,
)
from rankwatch.services.collection import CollectionPipeline

logger = get_logger(__name__)

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


def _get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


def get_pipeline(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    serp_client: DataForSEOClient = Depends(get_dataforseo),
    analytics_client: SearchConsoleClient = Depends(get_search_console),
    notifier: TelegramClient = Depends(get_telegram),
) -> CollectionPipeline:
    """Dependency building a pipeline bound to the request session."""
    return CollectionPipeline.from_settings(
        session, settings, serp_client, analytics_client, notifier
    )


def _run_response(
    result: RunResult, request_id: str, failure_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
) -> JSONResponse:
    extra = {
        "request_id": request_id,
        "run_id": result.run_id,
        "duration_seconds": result.duration_seconds,
    }
    if result.ok:
        logger.info("Run finished", extra=extra)
    else:
        logger.error("Run failed", extra={**extra, "error": result.error})
    return JSONResponse(
        status_code=status.HTTP_200_OK if result.ok else failure_status,
        content=result.model_dump(mode="json"),
    )


_RUN_RESPONSES: dict[int | str, dict[str, object]] = {
    401: {"description": "Missing or invalid X-Cron-Secret"},
    500: {"description": "Run failed", "model": RunResult},
}


@router.post(
    "/cron",
    response_model=RunResult,
    summary="Run the weekly collection",
    responses=_RUN_RESPONSES,
)
async def run_collection(
    request: Request,
    pipeline: CollectionPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Collect this week's data for every tracked URL, alert and notify."""
    request_id = _get_request_id(request)
    logger.info("Collection trigger received", extra={"request_id": request_id})
    result = await pipeline.run_collection()
    return _run_response(result, request_id)


@router.post(
    "/admin/backfill",
    response_model=RunResult,
    summary="Backfill past weeks",
    responses=_RUN_RESPONSES,
)
async def run_backfill(
    request: Request,
    data: BackfillRequest,
    pipeline: CollectionPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Create snapshots for past weeks that have none. Existing rows are kept."""
    request_id = _get_request_id(request)
    logger.info(
        "Backfill trigger received",
        extra={
            "request_id": request_id,
            "weeks_back": data.weeks_back,
            "url_id": data.url_id,
            "use_historical_serp": data.use_historical_serp,
        },
    )
    result = await pipeline.run_backfill(
        data.weeks_back, url_id=data.url_id, use_historical_serp=data.use_historical_serp
    )
    return _run_response(result, request_id)


@router.post(
    "/admin/trigger-url",
    response_model=RunResult,
    summary="Run the weekly collection for one URL",
    responses={
        **_RUN_RESPONSES,
        404: {"description": "Tracked URL not found", "model": RunResult},
    },
)
async def trigger_url(
    request: Request,
    data: TriggerUrlRequest,
    pipeline: CollectionPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Collect this week's data for one tracked URL.

    An unknown URL answers 404 with the failed run result.
    """
    result = await pipeline.run_collection_for_url(data.url_id)
    if result.error_code == "NOT_FOUND":
        return _run_response(result, _get_request_id(request), status.HTTP_404_NOT_FOUND)
    return _run_response(result, _get_request_id(request))


@router.post(
    "/admin/clear-snapshots",
    response_model=ClearSnapshotsResponse,
    summary="Delete all snapshots and alerts",
)
async def clear_snapshots(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ClearSnapshotsResponse:
    """Wipe collected history. Tracked URLs and keywords are kept."""
    request_id = _get_request_id(request)
    alerts_deleted = await AlertRepository(session).delete_all()
    snapshots_deleted = await SnapshotRepository(session).delete_all()
    logger.warning(
        "Snapshots and alerts cleared",
        extra={
            "request_id": request_id,
            "snapshots_deleted": snapshots_deleted,
            "alerts_deleted": alerts_deleted,
        },
    )
    return ClearSnapshotsResponse(
        snapshots_deleted=snapshots_deleted, alerts_deleted=alerts_deleted
    )
