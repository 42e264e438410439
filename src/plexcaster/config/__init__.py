"""Configuration module for plexcaster."""

from .settings import (
    ObservabilitySettings,
    PlexSettings,
    Settings,
    StorageSettings,
    TelegramSettings,
    get_settings,
)

__all__ = [
    "ObservabilitySettings",
    "PlexSettings",
    "Settings",
    "StorageSettings",
    "TelegramSettings",
    "get_settings",
]
