"""
Tests for reading bill totals across both persisted formats.
"""

import asyncio

import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from rental_billing.billing import FormatReconciliationReader, NegativeAmountError
from rental_billing.models.bill import (
    Bill,
    BillDetail,
    BillWithDetails,
    DetailType,
    Tenant,
)
from rental_billing.models.results import TotalFormat
from rental_billing.services.storage import InMemoryBillingStore, NotFoundError

TENANT = Tenant(room_number="101", rent=Decimal("1000"))


def stored_bill(total: str, amounts: tuple[str, ...] = ("200", "150")) -> BillWithDetails:
    return BillWithDetails(
        bill=Bill(room_number="101", month="2025-06", total_amount=Decimal(total)),
        details=[
            BillDetail(type=DetailType.EXTRA, name=f"Fee {i}", amount=Decimal(amount))
            for i, amount in enumerate(amounts)
        ],
    )


@pytest.fixture
def operation_logger():
    return MagicMock()


@pytest.fixture
def reader(operation_logger) -> FormatReconciliationReader:
    return FormatReconciliationReader(
        InMemoryBillingStore(),
        tolerance=Decimal("0.01"),
        operation_logger=operation_logger,
    )


class TestFormats:
    """Tests for classification of persisted totals."""

    def test_old_format_adds_rent(self, reader, operation_logger):
        """Test that a line-item-only total is shown with rent."""
        total = reader.reconcile(TENANT, stored_bill("350"))
        assert total.format == TotalFormat.OLD
        assert total.display_total == Decimal("1350")
        operation_logger.log_reconciliation_anomaly.assert_not_called()

    def test_new_format_is_shown_as_stored(self, reader, operation_logger):
        """Test that a rent-inclusive total is left alone."""
        total = reader.reconcile(TENANT, stored_bill("1350"))
        assert total.format == TotalFormat.NEW
        assert total.display_total == Decimal("1350")
        operation_logger.log_reconciliation_anomaly.assert_not_called()

    def test_anomaly_is_repaired_and_logged(self, reader, operation_logger):
        """Test that a total matching neither format is recomputed."""
        total = reader.reconcile(TENANT, stored_bill("500"))
        assert total.format == TotalFormat.ANOMALOUS
        assert total.display_total == Decimal("1350")
        assert total.persisted_total == Decimal("500")
        operation_logger.log_reconciliation_anomaly.assert_called_once_with(
            room_number="101",
            month="2025-06",
            persisted_total="500",
            details_sum="350",
            rent="1000",
        )

    def test_all_three_agree(self, reader):
        """Test that old, new and anomalous rows display the same total."""
        displayed = {
            reader.reconcile(TENANT, stored_bill(total)).display_total
            for total in ("350", "1350", "500")
        }
        assert displayed == {Decimal("1350")}

    def test_within_tolerance(self, reader):
        """Test rounding noise up to one cent."""
        assert reader.reconcile(TENANT, stored_bill("350.01")).format == TotalFormat.OLD
        assert reader.reconcile(TENANT, stored_bill("1349.99")).format == TotalFormat.NEW
        assert reader.reconcile(TENANT, stored_bill("350.02")).format == TotalFormat.ANOMALOUS

    def test_zero_rent_prefers_new(self, reader):
        """Test that the two candidates coincide when rent is zero."""
        tenant = Tenant(room_number="101", rent=Decimal("0"))
        total = reader.reconcile(tenant, stored_bill("350"))
        assert total.format == TotalFormat.NEW
        assert total.display_total == Decimal("350")

    def test_empty_bill(self, reader):
        """Test a bill with no line items."""
        total = reader.reconcile(TENANT, stored_bill("0", amounts=()))
        assert total.format == TotalFormat.OLD
        assert total.display_total == Decimal("1000")


class TestNegativeAmounts:
    """Tests for amounts that can't be displayed."""

    def test_negative_line_item(self, reader):
        """Test that a negative line item raises instead of being repaired."""
        with pytest.raises(NegativeAmountError) as exc_info:
            reader.reconcile(TENANT, stored_bill("100", amounts=("150", "-50")))
        assert exc_info.value.room_number == "101"
        assert exc_info.value.value == Decimal("-50")

    def test_negative_rent(self, reader):
        """Test that a negative rent raises."""
        tenant = Tenant.model_construct(room_number="101", name="", rent=Decimal("-1"))
        with pytest.raises(NegativeAmountError, match="rent"):
            reader.reconcile(tenant, stored_bill("350"))


class TestStoreReads:
    """Tests for loading bills from the store."""

    def test_get_display_total(self):
        """Test the store-backed read."""
        async def scenario():
            store = InMemoryBillingStore()
            async with store.transaction() as tx:
                await tx.insert_tenant(TENANT)
                bill_id = await tx.insert_bill(
                    Bill(room_number="101", month="2025-06", total_amount=Decimal("350"))
                )
                await tx.insert_details(bill_id, stored_bill("350").details)

            reader = FormatReconciliationReader(store, operation_logger=MagicMock())
            total = await reader.get_display_total("101", "2025-06")
            assert total.display_total == Decimal("1350")

            totals = await reader.list_display_totals("101")
            assert [t.month for t in totals] == ["2025-06"]

        asyncio.run(scenario())

    def test_missing_tenant_or_bill(self):
        """Test NotFoundError for unknown keys."""
        async def scenario():
            store = InMemoryBillingStore()
            async with store.transaction() as tx:
                await tx.insert_tenant(TENANT)
            reader = FormatReconciliationReader(store, operation_logger=MagicMock())

            with pytest.raises(NotFoundError):
                await reader.get_display_total("999", "2025-06")
            with pytest.raises(NotFoundError):
                await reader.get_display_total("101", "2025-06")
            with pytest.raises(NotFoundError):
                await reader.list_display_totals("999")

        asyncio.run(scenario())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
