"""Configuration package."""

from group_ledger.config.settings import (
    GeminiSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    Settings,
    StorageBackend,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "GeminiSettings",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "Settings",
    "StorageBackend",
    "get_settings",
    "validate_all_settings",
]
