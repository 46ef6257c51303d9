"""Pydantic schemas for request/response validation."""

from rankwatch.schemas.alert import AlertListResponse, AlertResponse, AlertUpdate
from rankwatch.schemas.collection import (
    BackfillRequest,
    ClearSnapshotsResponse,
    RunCounts,
    RunResult,
    TriggerUrlRequest,
)
from rankwatch.schemas.config import ConfigResponse, ConfigUpdate
from rankwatch.schemas.tracked_url import (
    KeywordResponse,
    NoteCreate,
    NoteResponse,
    TrackedUrlCreate,
    TrackedUrlDetailResponse,
    TrackedUrlListResponse,
    TrackedUrlResponse,
    TrackedUrlUpdate,
)

__all__ = [
    "AlertListResponse",
    "AlertResponse",
    "AlertUpdate",
    "BackfillRequest",
    "ClearSnapshotsResponse",
    "ConfigResponse",
    "ConfigUpdate",
    "KeywordResponse",
    "NoteCreate",
    "NoteResponse",
    "RunCounts",
    "RunResult",
    "TrackedUrlCreate",
    "TrackedUrlDetailResponse",
    "TrackedUrlListResponse",
    "TrackedUrlResponse",
    "TrackedUrlUpdate",
]
