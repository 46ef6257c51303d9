"""Pydantic schemas for alerts and their workflow updates."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from rankwatch.models.alert import AlertStatus

VALID_ALERT_STATUSES = frozenset(status.value for status in AlertStatus)


class AlertResponse(BaseModel):
    """An alert with the keyword and URL it belongs to."""

    id: str
    keyword_id: str
    keyword: str
    url_id: str
    url_title: str
    type: str
    severity: str
    details: str
    status: str
    action: str | None
    created_at: datetime
    resolved_at: datetime | None


class AlertListResponse(BaseModel):
    """Schema for the alert list."""

    items: list[AlertResponse]
    total: int


class AlertUpdate(BaseModel):
    """Schema for moving an alert through its workflow."""

    status: str | None = Field(None, description="New workflow status")
    action: str | None = Field(None, max_length=5000, description="What is being done about it")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str | None) -> str | None:
        """Validate status is a known value."""
        if v is not None and v not in VALID_ALERT_STATUSES:
            raise ValueError(
                f"Invalid status '{v}'. Must be one of: {', '.join(sorted(VALID_ALERT_STATUSES))}"
            )
        return v
