"""Tracked URL API endpoints.

- POST /api/v1/urls - Start tracking a URL
- GET /api/v1/urls - List tracked URLs
- GET /api/v1/urls/{url_id} - URL with keywords, latest figures and notes
- PATCH /api/v1/urls/{url_id} - Update metadata and/or replace keywords
- DELETE /api/v1/urls/{url_id} - Stop tracking (deletes all history)
- POST /api/v1/urls/{url_id}/notes - Add a changelog note

Error responses: {"error": str, "code": str, "request_id": str}
"""

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.database import get_session
from rankwatch.core.logging import get_logger
from rankwatch.schemas.tracked_url import (
    NoteCreate,
    NoteResponse,
    TrackedUrlCreate,
    TrackedUrlDetailResponse,
    TrackedUrlListResponse,
    TrackedUrlResponse,
    TrackedUrlUpdate,
)
from rankwatch.services.tracked_url import (
    TrackedUrlNotFoundError,
    TrackedUrlService,
    TrackedUrlValidationError,
)

logger = get_logger(__name__)

router = APIRouter()

_NOT_FOUND_RESPONSE = {
    404: {
        "description": "Tracked URL not found",
        "content": {
            "application/json": {
                "example": {
                    "error": "Tracked URL not found: <uuid>",
                    "code": "NOT_FOUND",
                    "request_id": "<request_id>",
                }
            }
        },
    },
}


def _get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


def _not_found(e: TrackedUrlNotFoundError, request_id: str) -> JSONResponse:
    logger.warning(
        "Tracked URL not found",
        extra={"request_id": request_id, "url_id": e.url_id},
    )
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": str(e), "code": "NOT_FOUND", "request_id": request_id},
    )


@router.post(
    "",
    response_model=TrackedUrlDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Track a URL",
    responses={
        400: {
            "description": "URL already tracked",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Validation failed for 'url': URL is already tracked",
                        "code": "VALIDATION_ERROR",
                        "request_id": "<request_id>",
                    }
                }
            },
        },
    },
)
async def create_url(
    request: Request,
    data: TrackedUrlCreate,
    session: AsyncSession = Depends(get_session),
) -> TrackedUrlDetailResponse | JSONResponse:
    """Start tracking a URL with its initial keywords."""
    request_id = _get_request_id(request)
    service = TrackedUrlService(session)
    try:
        tracked_url = await service.create_url(data)
    except TrackedUrlValidationError as e:
        logger.warning(
            "Tracked URL validation error",
            extra={"request_id": request_id, "field": e.field, "message": e.message},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(e), "code": "VALIDATION_ERROR", "request_id": request_id},
        )
    return await service.get_detail(tracked_url.id)


@router.get("", response_model=TrackedUrlListResponse, summary="List tracked URLs")
async def list_urls(session: AsyncSession = Depends(get_session)) -> TrackedUrlListResponse:
    """All tracked URLs."""
    urls = await TrackedUrlService(session).list_urls()
    return TrackedUrlListResponse(
        items=[TrackedUrlResponse.model_validate(u) for u in urls],
        total=len(urls),
    )


@router.get(
    "/{url_id}",
    response_model=TrackedUrlDetailResponse,
    summary="Get a tracked URL",
    responses=_NOT_FOUND_RESPONSE,
)
async def get_url(
    request: Request,
    url_id: str,
    session: AsyncSession = Depends(get_session),
) -> TrackedUrlDetailResponse | JSONResponse:
    """A tracked URL with its keywords, their latest figures and its notes."""
    try:
        return await TrackedUrlService(session).get_detail(url_id)
    except TrackedUrlNotFoundError as e:
        return _not_found(e, _get_request_id(request))


@router.patch(
    "/{url_id}",
    response_model=TrackedUrlDetailResponse,
    summary="Update a tracked URL",
    responses=_NOT_FOUND_RESPONSE,
)
async def update_url(
    request: Request,
    url_id: str,
    data: TrackedUrlUpdate,
    session: AsyncSession = Depends(get_session),
) -> TrackedUrlDetailResponse | JSONResponse:
    """Update metadata. A ``keywords`` list replaces the keyword set."""
    service = TrackedUrlService(session)
    try:
        await service.update_url(url_id, data)
        return await service.get_detail(url_id)
    except TrackedUrlNotFoundError as e:
        return _not_found(e, _get_request_id(request))


@router.delete(
    "/{url_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Stop tracking a URL",
    responses=_NOT_FOUND_RESPONSE,
)
async def delete_url(
    request: Request,
    url_id: str,
    session: AsyncSession = Depends(get_session),
) -> Response:
    """Delete a tracked URL with its keywords, snapshots, alerts and notes."""
    try:
        await TrackedUrlService(session).delete_url(url_id)
    except TrackedUrlNotFoundError as e:
        return _not_found(e, _get_request_id(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{url_id}/notes",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a note",
    responses=_NOT_FOUND_RESPONSE,
)
async def add_note(
    request: Request,
    url_id: str,
    data: NoteCreate,
    session: AsyncSession = Depends(get_session),
) -> NoteResponse | JSONResponse:
    """Append a changelog note to a tracked URL."""
    try:
        note = await TrackedUrlService(session).add_note(url_id, data.content)
    except TrackedUrlNotFoundError as e:
        return _not_found(e, _get_request_id(request))
    return NoteResponse.model_validate(note)
