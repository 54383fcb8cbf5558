"""Validation package."""

from rental_billing.validation.validator import BillValidationError, BillValidator

__all__ = ["BillValidationError", "BillValidator"]
