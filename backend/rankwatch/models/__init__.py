"""SQLAlchemy models.

All models are imported here so that Base.metadata is complete for
Alembic autogenerate and for test schema creation.
"""

from rankwatch.models.alert import Alert, AlertSeverity, AlertStatus, AlertType
from rankwatch.models.config_entry import ConfigEntry
from rankwatch.models.keyword import Keyword, KeywordIntent, KeywordSource
from rankwatch.models.tracked_url import Note, TrackedUrl, UrlPriority, UrlStatus
from rankwatch.models.weekly_snapshot import WeeklySnapshot

__all__ = [
    "Alert",
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "ConfigEntry",
    "Keyword",
    "KeywordIntent",
    "KeywordSource",
    "Note",
    "TrackedUrl",
    "UrlPriority",
    "UrlStatus",
    "WeeklySnapshot",
]
