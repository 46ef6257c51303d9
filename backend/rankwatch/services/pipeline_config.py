"""Run-level configuration parsed from the config_entries table.

Values are stored as strings and parsed once at the start of every run into
an immutable ``PipelineConfig``. A malformed value fails the config load,
which is fatal to the run.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rankwatch.utils.url import normalize_target_domain

# Defaults seeded by the initial migration and assumed when a key is missing
DEFAULT_CONFIG: dict[str, str] = {
    "serp_country": "us",
    "serp_language": "en",
    "alert_threshold": "3",
    "auto_discovery_enabled": "true",
    "auto_discovery_min_impressions": "100",
    "max_keywords_per_url": "10",
    "archive_weeks": "13",
}


class PipelineConfig(BaseModel):
    """Typed, frozen view over the run configuration."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    target_domain: str | None = None
    gsc_property: str | None = None
    serp_country: str = "us"
    serp_language: str = "en"
    alert_threshold: int = Field(default=3, ge=1)
    auto_discovery_enabled: bool = True
    auto_discovery_min_impressions: int = Field(default=100, ge=0)
    max_keywords_per_url: int = Field(default=10, ge=0)
    archive_weeks: int = Field(default=13, ge=1)

    @field_validator("target_domain", "gsc_property", mode="before")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_entries(
        cls, entries: dict[str, str], default_property: str | None = None
    ) -> "PipelineConfig":
        """Parse stored entries, falling back to defaults for missing keys."""
        values: dict[str, str | None] = {**DEFAULT_CONFIG, **entries}
        if not values.get("gsc_property"):
            values["gsc_property"] = default_property
        return cls.model_validate(values)

    @property
    def resolved_target_domain(self) -> str:
        """Bare hostname matched against SERP results ('' when unknown)."""
        return normalize_target_domain(self.target_domain or self.gsc_property)
