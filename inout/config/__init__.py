"""Configuration package."""

from inout.config.settings import (
    DuplicateSettings,
    LedgerSettings,
    Settings,
    StorageSettings,
    default_currency_code,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DuplicateSettings",
    "LedgerSettings",
    "Settings",
    "StorageSettings",
    "default_currency_code",
    "get_settings",
    "validate_all_settings",
]
