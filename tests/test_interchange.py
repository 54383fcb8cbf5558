"""
Tests for snapshot export and import.
"""

import asyncio

import pytest
from decimal import Decimal

from rental_billing.billing import FormatReconciliationReader
from rental_billing.interchange import BillingSnapshot, export_snapshot, import_snapshot
from rental_billing.models.bill import (
    Bill,
    BillDetail,
    BillWithDetails,
    DetailType,
    MeterNameConfig,
    MeterType,
    Price,
    Tenant,
)
from rental_billing.models.results import TotalFormat
from rental_billing.services.storage import InMemoryBillingStore


def bill(room: str, month: str, total: str, *amounts: str) -> BillWithDetails:
    return BillWithDetails(
        bill=Bill(bill_id=99, room_number=room, month=month, total_amount=Decimal(total)),
        details=[
            BillDetail(detail_id=7, bill_id=99, type=DetailType.EXTRA, name=f"Fee {i}", amount=Decimal(a))
            for i, a in enumerate(amounts)
        ],
    )


def sample_snapshot() -> BillingSnapshot:
    return BillingSnapshot(
        tenants=[
            Tenant(room_number="101", name="Alice", rent=Decimal("1000")),
            Tenant(room_number="102", name="Bob", rent=Decimal("800")),
        ],
        price=Price(water=Decimal("5"), electricity=Decimal("1.2"), privacy_keywords=["Sunny"]),
        bills=[
            bill("101", "2025-05", "350", "200", "150"),
            bill("101", "2025-06", "1350", "200", "150"),
            bill("102", "2025-06", "30", "30"),
        ],
        meter_names=[
            MeterNameConfig(
                meter_type=MeterType.WATER,
                default_name="Extra Water Meter 1",
                custom_name="Garden tap",
                scope="101",
            ),
            MeterNameConfig(
                meter_type=MeterType.WATER,
                default_name="Extra Water Meter 1",
                custom_name="Old tap",
                scope="101",
                is_active=False,
            ),
        ],
    )


class TestImport:
    """Tests for loading a snapshot."""

    def test_import_into_empty_store(self):
        """Test that tenants, price, bills and names are written."""
        async def scenario():
            store = InMemoryBillingStore()
            summary = await import_snapshot(store, sample_snapshot())

            assert summary.tenants_added == 2
            assert summary.bills_written == 3
            assert summary.meter_names_written == 1
            assert summary.failed_bills == []

            assert (await store.get_price()).privacy_keywords == ["Sunny"]
            assert await store.find_custom_name("Extra Water Meter 1", "101") == "Garden tap"
            stored = await store.get_bill_with_details("101", "2025-05")
            assert stored.bill.bill_id == 1
            assert [d.detail_id for d in stored.details] == [1, 2]
            assert [d.amount for d in stored.details] == [Decimal("200"), Decimal("150")]

        asyncio.run(scenario())

    def test_legacy_totals_survive_import(self):
        """Test that both total encodings load and display the same amount."""
        async def scenario():
            store = InMemoryBillingStore()
            await import_snapshot(store, sample_snapshot())
            reader = FormatReconciliationReader(store)

            may = await reader.get_display_total("101", "2025-05")
            june = await reader.get_display_total("101", "2025-06")
            assert (may.format, june.format) == (TotalFormat.OLD, TotalFormat.NEW)
            assert may.display_total == june.display_total == Decimal("1350")

        asyncio.run(scenario())

    def test_repeated_key_last_one_wins(self):
        """Test that a duplicate (room, month) leaves one bill."""
        async def scenario():
            store = InMemoryBillingStore()
            snapshot = sample_snapshot()
            snapshot.bills.append(bill("102", "2025-06", "45", "45"))
            summary = await import_snapshot(store, snapshot)

            assert summary.bills_written == 4
            bills = await store.list_bills_with_details("102")
            assert len(bills) == 1
            assert bills[0].bill.total_amount == Decimal("45")

        asyncio.run(scenario())

    def test_bad_bill_is_skipped(self):
        """Test that an inconsistent bill doesn't stop the import."""
        async def scenario():
            store = InMemoryBillingStore()
            snapshot = sample_snapshot()
            snapshot.bills.append(bill("102", "2025-07", "999", "30"))
            snapshot.bills.append(bill("404", "2025-07", "30", "30"))
            summary = await import_snapshot(store, snapshot)

            assert summary.failed_bills == ["102/2025-07", "404/2025-07"]
            assert summary.bills_written == 3
            assert await store.get_bill_with_details("102", "2025-07") is None

        asyncio.run(scenario())

    def test_existing_tenant_is_updated(self):
        """Test that importing over existing data updates tenants."""
        async def scenario():
            store = InMemoryBillingStore()
            async with store.transaction() as tx:
                await tx.insert_tenant(Tenant(room_number="101", rent=Decimal("900")))
            summary = await import_snapshot(store, sample_snapshot())

            assert (summary.tenants_added, summary.tenants_updated) == (1, 1)
            assert (await store.get_tenant("101")).rent == Decimal("1000")

        asyncio.run(scenario())


class TestExport:
    """Tests for reading a snapshot."""

    def test_round_trip_through_json(self):
        """Test export, serialize, import into a fresh store, export again."""
        async def scenario():
            source = InMemoryBillingStore()
            await import_snapshot(source, sample_snapshot())
            exported = await export_snapshot(source)
            assert exported.bill_count == 3
            assert len(exported.meter_names) == 1

            loaded = BillingSnapshot.model_validate_json(exported.model_dump_json())
            target = InMemoryBillingStore()
            await import_snapshot(target, loaded)
            again = await export_snapshot(target)

            def values(snapshot):
                return [
                    (b.bill.key, b.bill.total_amount, [(d.name, d.amount) for d in b.details])
                    for b in snapshot.bills
                ]

            assert values(again) == values(exported)
            assert again.tenants == exported.tenants
            assert again.price == exported.price

        asyncio.run(scenario())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
