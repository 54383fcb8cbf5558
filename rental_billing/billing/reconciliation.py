"""
Format Reconciliation Reader

Two encodings of a bill total coexist in the store, without migration:
- "old": persisted total = sum of line items (what every save writes now)
- "new": persisted total = tenant rent + sum of line items (older rows)

Every read reconciles both:
1. details_sum = sum of current line item amounts
2. candidate_new = rent + details_sum, candidate_old = details_sum
3. Within tolerance of candidate_new -> "new": shown as persisted
   Within tolerance of candidate_old -> "old": shown as candidate_new
   Neither -> anomaly is logged, shown as candidate_new

"new" is checked first, so a zero-rent tenant always classifies as "new".

Negative rent, line item amounts or display totals are errors, never
repaired.
"""

from decimal import Decimal
from typing import Optional

from rental_billing.config import get_settings
from rental_billing.logs import OperationLogger
from rental_billing.models.bill import BillWithDetails, Tenant
from rental_billing.models.results import DisplayTotal, TotalFormat
from rental_billing.services.storage import BillingStoreInterface, NotFoundError


class NegativeAmountError(ValueError):
    """A stored amount that feeds a displayed total is negative."""

    def __init__(self, room_number: str, month: str, what: str, value: Decimal):
        self.room_number = room_number
        self.month = month
        self.what = what
        self.value = value
        super().__init__(f"Negative {what} for {room_number} {month}: {value}")


class FormatReconciliationReader:
    """
    Computes the rent-inclusive total to display for a stored bill.

    Usage:
        reader = FormatReconciliationReader(store)
        total = await reader.get_display_total("101", "2025-06")
    """

    def __init__(
        self,
        store: BillingStoreInterface,
        tolerance: Optional[Decimal] = None,
        operation_logger: Optional[OperationLogger] = None,
    ):
        if tolerance is None:
            tolerance = Decimal(str(get_settings().billing.reconciliation_tolerance))
        self._store = store
        self._tolerance = tolerance
        self._operation_logger = operation_logger or OperationLogger()

    def reconcile(self, tenant: Tenant, stored: BillWithDetails) -> DisplayTotal:
        """
        Classify and correct one bill's persisted total.

        Raises:
            NegativeAmountError: If rent, a line item or the result is negative
        """
        bill = stored.bill

        if tenant.rent < 0:
            raise NegativeAmountError(bill.room_number, bill.month, "rent", tenant.rent)
        for detail in stored.details:
            if detail.amount < 0:
                raise NegativeAmountError(
                    bill.room_number, bill.month, f"amount on '{detail.name}'", detail.amount
                )

        details_sum = stored.details_sum
        candidate_new = tenant.rent + details_sum
        candidate_old = details_sum
        persisted = bill.total_amount

        if abs(persisted - candidate_new) <= self._tolerance:
            total_format = TotalFormat.NEW
            display = persisted
        elif abs(persisted - candidate_old) <= self._tolerance:
            total_format = TotalFormat.OLD
            display = candidate_new
        else:
            total_format = TotalFormat.ANOMALOUS
            display = candidate_new
            self._operation_logger.log_reconciliation_anomaly(
                room_number=bill.room_number,
                month=bill.month,
                persisted_total=str(persisted),
                details_sum=str(details_sum),
                rent=str(tenant.rent),
            )

        if display < 0:
            raise NegativeAmountError(bill.room_number, bill.month, "total", display)

        return DisplayTotal(
            room_number=bill.room_number,
            month=bill.month,
            display_total=display,
            persisted_total=persisted,
            details_sum=details_sum,
            rent=tenant.rent,
            format=total_format,
        )

    async def get_display_total(self, room_number: str, month: str) -> DisplayTotal:
        """
        Load and reconcile the bill for (room_number, month).

        Raises:
            NotFoundError: If the tenant or the bill doesn't exist
            NegativeAmountError: If a stored amount is negative
        """
        tenant = await self._store.get_tenant(room_number)
        if tenant is None:
            raise NotFoundError(f"Tenant not found: {room_number}")
        stored = await self._store.get_bill_with_details(room_number, month)
        if stored is None:
            raise NotFoundError(f"Bill not found: {room_number} {month}")
        return self.reconcile(tenant, stored)

    async def list_display_totals(self, room_number: str) -> list[DisplayTotal]:
        """Reconciled totals for every bill of one tenant, by month."""
        tenant = await self._store.get_tenant(room_number)
        if tenant is None:
            raise NotFoundError(f"Tenant not found: {room_number}")
        bills = await self._store.list_bills_with_details(room_number)
        return [self.reconcile(tenant, stored) for stored in bills]
