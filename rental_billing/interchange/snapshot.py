"""
Snapshot Interchange

Export and import the whole billing store as one pydantic document.
The persisted shapes (Tenant, Price, Bill, BillDetail, MeterNameConfig)
are the interchange format, so a snapshot serializes with
`model_dump_json()` and loads with `model_validate_json()`.

Import rules:
- Tenants are inserted, or updated when the room already exists
- The price is replaced when the snapshot carries one
- Bills go through the upsert transaction, so a repeated
  (room_number, month) resolves to the last one in the snapshot
- Active meter names replace the current active name for their key
- A bill that can't be written is logged and skipped
"""

from datetime import datetime
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from rental_billing.billing.upsert import BillUpsertTransaction
from rental_billing.models.bill import (
    BillAggregate,
    BillWithDetails,
    MeterNameConfig,
    Price,
    Tenant,
)
from rental_billing.services.storage import BillingStoreInterface

logger = structlog.get_logger(__name__)


class BillingSnapshot(BaseModel):
    """Everything in the billing store at one point in time."""

    exported_at: datetime = Field(default_factory=datetime.utcnow)
    tenants: list[Tenant] = Field(default_factory=list)
    price: Optional[Price] = None
    bills: list[BillWithDetails] = Field(default_factory=list)
    meter_names: list[MeterNameConfig] = Field(default_factory=list)

    @property
    def bill_count(self) -> int:
        return len(self.bills)


class ImportSummary(BaseModel):
    tenants_added: int = 0
    tenants_updated: int = 0
    bills_written: int = 0
    meter_names_written: int = 0
    failed_bills: list[str] = Field(
        default_factory=list,
        description="'room/month' keys that could not be written"
    )


async def export_snapshot(store: BillingStoreInterface) -> BillingSnapshot:
    """Read the committed state of the store."""
    return BillingSnapshot(
        tenants=await store.list_tenants(),
        price=await store.get_price(),
        bills=await store.list_bills_with_details(),
        meter_names=await store.list_meter_name_configs(active_only=False),
    )


async def import_snapshot(
    store: BillingStoreInterface,
    snapshot: BillingSnapshot,
    upsert: Optional[BillUpsertTransaction] = None,
) -> ImportSummary:
    """
    Load a snapshot into the store.

    Totals are kept as exported, so bills written under the older
    rent-inclusive convention still reconcile after import.
    """
    upsert = upsert or BillUpsertTransaction(store)
    summary = ImportSummary()

    async with store.transaction() as tx:
        for tenant in snapshot.tenants:
            if await tx.get_tenant(tenant.room_number) is None:
                await tx.insert_tenant(tenant)
                summary.tenants_added += 1
            else:
                await tx.update_tenant(tenant)
                summary.tenants_updated += 1
        if snapshot.price is not None:
            await tx.save_price(snapshot.price)

    rents = {tenant.room_number: tenant.rent for tenant in await store.list_tenants()}

    for stored in snapshot.bills:
        bill = stored.bill
        aggregate = BillAggregate(
            room_number=bill.room_number,
            month=bill.month,
            details=[
                d.model_copy(update={"detail_id": None, "bill_id": None})
                for d in stored.details
            ],
            total_amount=bill.total_amount,
        )
        try:
            await upsert.upsert(aggregate, legacy_rent=rents.get(bill.room_number))
        except Exception as e:
            summary.failed_bills.append(f"{bill.room_number}/{bill.month}")
            logger.warning(
                "snapshot_bill_skipped",
                room_number=bill.room_number,
                month=bill.month,
                error=str(e),
            )
            continue
        summary.bills_written += 1

    active = [config for config in snapshot.meter_names if config.is_active]
    if active:
        async with store.transaction() as tx:
            for config in active:
                await tx.deactivate_meter_names(config.default_name, config.scope)
                await tx.insert_meter_name(config.model_copy(update={"config_id": None}))
                summary.meter_names_written += 1

    logger.info(
        "snapshot_imported",
        tenants_added=summary.tenants_added,
        tenants_updated=summary.tenants_updated,
        bills_written=summary.bills_written,
        failed_bills=len(summary.failed_bills),
    )
    return summary
