"""Configuration module for YotoForge."""

from .settings import (
    AiSettings,
    CacheSettings,
    ContentApiSettings,
    DatabaseSettings,
    JobQueueSettings,
    Settings,
    get_settings,
)

__all__ = [
    "AiSettings",
    "CacheSettings",
    "ContentApiSettings",
    "DatabaseSettings",
    "JobQueueSettings",
    "Settings",
    "get_settings",
]
