"""Utility modules for BriefDesk."""

from .config import Settings, StorageConfig, get_settings

__all__ = [
    "Settings",
    "StorageConfig",
    "get_settings",
]
