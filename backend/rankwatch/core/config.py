"""Application configuration loaded from environment variables.

All process-level configuration is via environment variables (or a local
``.env`` file). Per-run tuning such as alert thresholds lives in the
``config_entries`` table instead; see ``rankwatch.services.pipeline_config``.
"""

from functools import lru_cache

from pydantic import Field, PostgresDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="RankWatch")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Server
    port: int = Field(default=8000, description="Port to bind to")
    host: str = Field(default="0.0.0.0", description="Host to bind to")

    # Database
    database_url: PostgresDsn = Field(
        ...,
        description="PostgreSQL connection string",
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size")
    db_max_overflow: int = Field(default=10, description="Max overflow connections")
    db_pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    db_slow_query_threshold_ms: int = Field(
        default=100, description="Threshold for slow query warnings (ms)"
    )
    db_connect_timeout: int = Field(
        default=60, description="Connection timeout in seconds"
    )
    db_command_timeout: int = Field(
        default=60, description="Command timeout in seconds"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")

    # Trigger authentication
    cron_secret: str | None = Field(
        default=None,
        description="Shared secret expected in the X-Cron-Secret header (open if unset)",
    )

    # DataForSEO (SERP positions)
    dataforseo_api_login: str | None = Field(
        default=None,
        description="DataForSEO API login (email)",
    )
    dataforseo_api_password: str | None = Field(
        default=None,
        description="DataForSEO API password",
    )
    dataforseo_timeout: float = Field(
        default=60.0, description="DataForSEO request timeout in seconds"
    )
    dataforseo_max_retries: int = Field(
        default=3, description="Maximum retry attempts for DataForSEO requests"
    )
    dataforseo_retry_delay: float = Field(
        default=1.0, description="Base delay between retries in seconds"
    )
    dataforseo_live_batch_size: int = Field(
        default=100, description="Keywords per live SERP request"
    )
    dataforseo_historical_batch_size: int = Field(
        default=10, description="Keywords per historical SERP request"
    )
    dataforseo_live_batch_pause: float = Field(
        default=1.0, description="Pause between live SERP batches in seconds"
    )
    dataforseo_historical_batch_pause: float = Field(
        default=3.0, description="Pause between historical SERP batches in seconds"
    )
    dataforseo_serp_depth: int = Field(
        default=100, description="Number of organic results checked per keyword"
    )

    # Google Search Console (traffic metrics)
    gsc_credentials_json: str | None = Field(
        default=None,
        description="Service account credentials as a JSON string",
    )
    gsc_credentials_file: str | None = Field(
        default=None,
        description="Path to a service account credentials file",
    )
    gsc_property: str | None = Field(
        default=None,
        description="Search Console property (e.g. sc-domain:example.com)",
    )
    gsc_timeout: float = Field(
        default=60.0, description="Search Console query timeout in seconds"
    )
    gsc_row_limit: int = Field(
        default=500, description="Maximum rows per Search Console query"
    )

    # Telegram (weekly report)
    telegram_bot_token: str | None = Field(
        default=None,
        description="Telegram bot token (notifications disabled if unset)",
    )
    telegram_chat_id: str | None = Field(
        default=None,
        description="Telegram chat id receiving the weekly report",
    )
    telegram_timeout: float = Field(
        default=15.0, description="Telegram request timeout in seconds"
    )
    telegram_max_retries: int = Field(
        default=2, description="Maximum retry attempts for Telegram requests"
    )
    dashboard_url: str | None = Field(
        default=None,
        description="Dashboard link appended to the weekly report",
    )

    # Scheduler
    scheduler_enabled: bool = Field(
        default=False, description="Run the weekly collection in-process"
    )
    collection_cron: str = Field(
        default="0 6 * * 1",
        description="Crontab expression for the weekly collection (UTC)",
    )
    scheduler_misfire_grace_time: int = Field(
        default=3600, description="Seconds a missed collection may still start late"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
