"""
Billing Package

Builds, writes, re-prices and reconciles bills.
"""

from rental_billing.billing.builder import BillAggregateBuilder, sum_amounts
from rental_billing.billing.recalculation import RecalculationCascade, ensure_price
from rental_billing.billing.reconciliation import (
    FormatReconciliationReader,
    NegativeAmountError,
)
from rental_billing.billing.upsert import BillUpsertTransaction

__all__ = [
    "BillAggregateBuilder",
    "BillUpsertTransaction",
    "FormatReconciliationReader",
    "NegativeAmountError",
    "RecalculationCascade",
    "ensure_price",
    "sum_amounts",
]
