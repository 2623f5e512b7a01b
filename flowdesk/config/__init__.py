"""Configuration package."""

from flowdesk.config.settings import (
    DEFAULT_NAMESPACE,
    AppSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_NAMESPACE",
    "AppSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
