"""
Configuration Management for Budget Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The store's retry budget and the ledger's naming conventions are the only
knobs; everything else is fixed by the data model.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Document store transaction settings."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORE_",
        extra="ignore"
    )

    max_attempts: int = Field(
        default=5,
        ge=1,
        le=25,
        description="Attempts per transaction before giving up on conflicts"
    )
    wait_multiplier: float = Field(
        default=0.05,
        ge=0.0,
        description="Exponential backoff multiplier (seconds)"
    )
    wait_min: float = Field(
        default=0.0,
        ge=0.0,
        description="Minimum wait between attempts (seconds)"
    )
    wait_max: float = Field(
        default=1.0,
        ge=0.0,
        description="Maximum wait between attempts (seconds)"
    )


class LedgerSettings(BaseSettings):
    """
    Ledger settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    namespace: str = Field(
        default="budget-ledger",
        min_length=1,
        description="Top-level namespace all user documents live under"
    )
    default_rule: str = Field(
        default="50/30/20",
        description="Budget rule used when a month has no budget document"
    )
    recurring_marker: str = Field(
        default="[Auto]",
        description="Prefix for budget items posted by the recurring engine"
    )
    upcoming_window_days: int = Field(
        default=7,
        ge=0,
        le=31,
        description="How many days ahead upcoming bills are reported"
    )

    @field_validator('namespace')
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Namespace becomes a path segment, so it cannot contain slashes."""
        if "/" in v:
            raise ValueError("Namespace cannot contain '/'")
        return v

    @field_validator('default_rule')
    @classmethod
    def validate_default_rule(cls, v: str) -> str:
        allowed = {"50/30/20", "80/20", "70/20/10"}
        if v not in allowed:
            raise ValueError(f"Unsupported budget rule: {v}. Allowed: {sorted(allowed)}")
        return v


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
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.store
        results["store"] = True
    except Exception as e:
        results["store"] = False
        results["store_error"] = str(e)

    try:
        _ = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)

    return results
