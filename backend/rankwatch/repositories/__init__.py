"""Data access layer: one repository per aggregate, each bound to an AsyncSession."""

from rankwatch.repositories.alert import AlertRepository
from rankwatch.repositories.config import ConfigRepository
from rankwatch.repositories.keyword import KeywordRepository
from rankwatch.repositories.snapshot import SnapshotRepository
from rankwatch.repositories.tracked_url import TrackedUrlRepository

__all__ = [
    "AlertRepository",
    "ConfigRepository",
    "KeywordRepository",
    "SnapshotRepository",
    "TrackedUrlRepository",
]
