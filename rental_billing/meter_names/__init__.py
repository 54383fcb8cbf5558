"""Meter display name package."""

from rental_billing.meter_names.manager import (
    MeterNameError,
    MeterNameManager,
    sanitize_custom_name,
)

__all__ = ["MeterNameError", "MeterNameManager", "sanitize_custom_name"]
