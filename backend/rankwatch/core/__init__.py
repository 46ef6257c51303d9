"""Core utilities and configuration."""

from rankwatch.core.config import Settings, get_settings
from rankwatch.core.database import Base, db_manager, get_session
from rankwatch.core.logging import db_logger, get_logger, setup_logging

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "db_manager",
    "get_session",
    # Logging
    "db_logger",
    "get_logger",
    "setup_logging",
]
