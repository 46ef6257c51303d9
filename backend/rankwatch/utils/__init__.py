"""Utility modules for the application."""

from rankwatch.utils.url import normalize_target_domain

__all__ = ["normalize_target_domain"]
