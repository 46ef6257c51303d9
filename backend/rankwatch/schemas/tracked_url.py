"""Pydantic schemas for tracked URLs, their keywords and notes.

Defines request/response models for the tracked URL API endpoints.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rankwatch.models.tracked_url import UrlPriority

VALID_PRIORITIES = frozenset(priority.value for priority in UrlPriority)


def _validate_priority(v: str | None) -> str | None:
    if v is not None and v not in VALID_PRIORITIES:
        raise ValueError(
            f"Invalid priority '{v}'. Must be one of: {', '.join(sorted(VALID_PRIORITIES))}"
        )
    return v


class TrackedUrlCreate(BaseModel):
    """Schema for starting to track a URL."""

    url: str = Field(..., min_length=1, description="Full page URL")
    title: str = Field(..., min_length=1, max_length=500, description="Display title")
    category: str | None = Field(None, max_length=100, description="Free-form label")
    priority: str = Field(default=UrlPriority.MEDIUM.value, description="Editorial priority")
    keywords: list[str] = Field(default_factory=list, description="Keywords to track")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate and normalize the title."""
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty or whitespace only")
        return v

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: str) -> str:
        """Validate priority is a known value."""
        return _validate_priority(v) or UrlPriority.MEDIUM.value


class TrackedUrlUpdate(BaseModel):
    """Schema for updating a tracked URL. All fields optional.

    When ``keywords`` is given it replaces the keyword set: keywords missing
    from the list are deleted together with their history.
    """

    title: str | None = Field(None, min_length=1, max_length=500)
    category: str | None = Field(None, max_length=100)
    priority: str | None = None
    keywords: list[str] | None = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: str | None) -> str | None:
        """Validate priority is a known value."""
        return _validate_priority(v)


class NoteCreate(BaseModel):
    """Schema for adding a changelog note."""

    content: str = Field(..., min_length=1, max_length=5000, description="Note text")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Note cannot be empty or whitespace only")
        return v


class NoteResponse(BaseModel):
    """Schema for a changelog note."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    content: str
    created_at: datetime


class KeywordResponse(BaseModel):
    """A keyword with the figures of its most recent snapshot.

    ``has_positions`` is false when either SERP position of the latest
    snapshot is unknown, in which case ``position_change`` is 0 and carries
    no meaning.
    """

    id: str
    keyword: str
    source: str
    intent: str
    tracked: bool
    created_at: datetime
    week_starting: date | None = None
    gsc_position: float | None = None
    gsc_clicks: int = 0
    gsc_impressions: int = 0
    gsc_ctr: float | None = None
    serp_position: int | None = None
    serp_features: list[str] = Field(default_factory=list)
    prev_position: int | None = None
    position_change: int = 0
    has_positions: bool = False


class TrackedUrlResponse(BaseModel):
    """Schema for a tracked URL in list views."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str
    title: str
    category: str | None
    status: str
    priority: str
    created_at: datetime
    updated_at: datetime


class TrackedUrlDetailResponse(TrackedUrlResponse):
    """Schema for one tracked URL with its keywords and notes."""

    keywords: list[KeywordResponse] = Field(default_factory=list)
    notes: list[NoteResponse] = Field(default_factory=list)


class TrackedUrlListResponse(BaseModel):
    """Schema for the tracked URL list."""

    items: list[TrackedUrlResponse]
    total: int
