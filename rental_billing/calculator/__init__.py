"""Meter reading calculation package."""

from rental_billing.calculator.meter import (
    MeterReadingCalculator,
    derive_usage,
    parse_decimal,
)

__all__ = ["MeterReadingCalculator", "derive_usage", "parse_decimal"]
