"""
Configuration Management for Rental Billing

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Tariff defaults, tolerances and side-channel switches live in one
place and are validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BillingSettings(BaseSettings):
    """Billing engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BILLING_",
        extra="ignore"
    )

    # Tariff used when the Price singleton has never been saved
    default_water_price: float = Field(
        default=4.0,
        ge=0.0,
        description="Default water unit price"
    )
    default_electricity_price: float = Field(
        default=1.0,
        ge=0.0,
        description="Default electricity unit price"
    )

    reconciliation_tolerance: float = Field(
        default=0.01,
        gt=0.0,
        le=1.0,
        description="Currency tolerance when classifying persisted totals"
    )

    # Name and keyword limits
    custom_name_max_length: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Maximum length of a custom meter name"
    )
    max_privacy_keywords: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Maximum number of privacy keywords"
    )
    privacy_keyword_max_length: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Maximum length of a single privacy keyword"
    )

    auto_backup_enabled: bool = Field(
        default=False,
        description="Write a backup after every successful bill save"
    )


class NotificationSettings(BaseSettings):
    """Change notification bus configuration."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        extra="ignore"
    )

    subscriber_queue_size: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Events buffered per subscriber before publish blocks"
    )
    publish_timeout_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="How long publish waits on a full subscriber queue before logging a delay"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets backup configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to back up into"
    )

    # Sheet names within the spreadsheet
    tenants_sheet_name: str = Field(
        default="Tenants",
        description="Name of the sheet for tenants"
    )
    bills_sheet_name: str = Field(
        default="Bills",
        description="Name of the sheet for bills"
    )
    details_sheet_name: str = Field(
        default="BillDetails",
        description="Name of the sheet for bill line items"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Backups will fail until it exists."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def billing(self) -> BillingSettings:
        return BillingSettings()

    @property
    def notifications(self) -> NotificationSettings:
        return NotificationSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
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

    sections = {
        "billing": lambda: settings.billing,
        "notifications": lambda: settings.notifications,
        "google_sheets": lambda: settings.google_sheets,
        "app": lambda: settings.app,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
