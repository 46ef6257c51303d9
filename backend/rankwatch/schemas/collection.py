"""Pydantic schemas for collection triggers and their results."""

from pydantic import BaseModel, Field


class RunCounts(BaseModel):
    """Counters accumulated during a collection or backfill run."""

    urls_processed: int = 0
    url_failures: int = 0
    periods_processed: int = 0
    keywords_processed: int = 0
    snapshots_created: int = 0
    snapshots_updated: int = 0
    snapshots_skipped: int = 0
    alerts_critical: int = 0
    alerts_warning: int = 0
    alerts_positive: int = 0
    keywords_discovered: int = 0
    snapshots_archived: int = 0
    notification_sent: bool = False

    @property
    def alerts_total(self) -> int:
        """All alerts raised by the run."""
        return self.alerts_critical + self.alerts_warning + self.alerts_positive


class RunResult(BaseModel):
    """Structured outcome of every trigger, returned even on failure.

    Programmatic callers should rely on ``ok`` and ``counts``; ``log`` lines
    are for humans and their wording may change.
    """

    ok: bool
    run_id: str
    duration_seconds: float
    counts: RunCounts = Field(default_factory=RunCounts)
    log: list[str] = Field(default_factory=list)
    error: str | None = None
    error_code: str | None = Field(
        default=None,
        description="NOT_FOUND, CONFIGURATION_MISSING or RUN_FAILED when ok is false",
    )


class BackfillRequest(BaseModel):
    """Request body for a backfill run."""

    weeks_back: int = Field(
        default=4,
        ge=1,
        le=52,
        description="Number of weeks to fill, counting the current week",
    )
    url_id: str | None = Field(
        default=None,
        description="Restrict the backfill to one tracked URL",
    )
    use_historical_serp: bool = Field(
        default=False,
        description="Look up historical SERP positions for past weeks",
    )


class TriggerUrlRequest(BaseModel):
    """Request body for a single-URL collection run."""

    url_id: str = Field(..., min_length=1, description="Tracked URL to collect")


class ClearSnapshotsResponse(BaseModel):
    """Result of the clear-snapshots admin action."""

    snapshots_deleted: int
    alerts_deleted: int
