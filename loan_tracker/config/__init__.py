"""Configuration package."""

from loan_tracker.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    SharingSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "SharingSettings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
