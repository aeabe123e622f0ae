"""
Configuration Management for the In-Out Ledger Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Defaults that the engine falls back on (currency, calendar timezone,
duplicate criteria) live in one place and are validated at startup.
"""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from inout.models.transaction import DuplicateCriteria


class LedgerSettings(BaseSettings):
    """Core ledger behaviour: fallback currency and calendar."""

    model_config = SettingsConfigDict(
        env_prefix="INOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_currency: str = Field(
        default="USD",
        min_length=1,
        max_length=8,
        description="Currency code used when a row or subscription omits one"
    )
    timezone: str = Field(
        default="UTC",
        description="IANA timezone for calendar-day comparisons and cycle arithmetic"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )

    @field_validator('default_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject timezone names zoneinfo cannot resolve."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class DuplicateSettings(BaseSettings):
    """
    Default duplicate detection criteria for CSV imports.

    Default: Amount + Date + Type, compared by calendar day.
    """

    model_config = SettingsConfigDict(
        env_prefix="INOUT_DUPLICATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    check_amount: bool = True
    check_timestamp: bool = True
    check_title: bool = False
    check_kind: bool = True
    check_category: bool = False
    check_currency: bool = False
    time_threshold_seconds: float = Field(
        default=86400.0,
        ge=0.0,
        description="Seconds within which timestamps match (>= 86400 means same day)"
    )

    def to_criteria(self) -> DuplicateCriteria:
        return DuplicateCriteria(
            check_amount=self.check_amount,
            check_timestamp=self.check_timestamp,
            check_title=self.check_title,
            check_kind=self.check_kind,
            check_category=self.check_category,
            check_currency=self.check_currency,
            time_threshold=self.time_threshold_seconds,
        )


class StorageSettings(BaseSettings):
    """Storage backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="INOUT_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        pattern="^(memory|sqlite)$",
        description="Which storage backend to wire up"
    )
    sqlite_path: str = Field(
        default="inout.db",
        description="SQLite database file (used when backend=sqlite)"
    )
    audit_sqlite_path: str = Field(
        default="inout_audit.db",
        description="SQLite file for the audit log (used when backend=sqlite)"
    )
    commit_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a commit that hits a locked database"
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="How long SQLite waits on a locked database per attempt"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def duplicates(self) -> DuplicateSettings:
        return DuplicateSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def default_currency_code() -> str:
    """Default currency provider consulted when a row or subscription has none."""
    return get_settings().ledger.default_currency


def validate_all_settings() -> dict[str, Optional[object]]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus "<name>_error" entries
    for the sections that failed. Useful for startup checks.
    """
    results: dict[str, Optional[object]] = {}
    settings = get_settings()

    for name in ("ledger", "duplicates", "storage"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
