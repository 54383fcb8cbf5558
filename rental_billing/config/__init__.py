"""Configuration package."""

from rental_billing.config.settings import (
    AppSettings,
    BillingSettings,
    GoogleSheetsSettings,
    NotificationSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BillingSettings",
    "GoogleSheetsSettings",
    "NotificationSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
