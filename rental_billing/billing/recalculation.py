"""
Recalculation Cascade

Re-prices every stored bill after a tariff change (all tenants) or a
rent change (one tenant).

FLOW (per tenant, strictly one tenant at a time):
1. Load every bill of the tenant with its line items
2. Water/electricity items: amount = usage x current price
   (readings, usage and extra items stay as stored)
3. Total = new sum of line items
4. Write each bill back through the upsert transaction
5. Publish one tenant-changed and one price-changed event

FAILURE POLICY: best effort. If a bill fails, that tenant is logged as
failed and the cascade moves on to the next tenant. Each bill's own
upsert stays atomic; there is no atomicity across tenants.

Running the cascade again with the same tariff reproduces the same
values: it only ever overwrites, never accumulates.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from rental_billing.billing.builder import BillAggregateBuilder
from rental_billing.billing.upsert import BillUpsertTransaction
from rental_billing.config import get_settings
from rental_billing.logs import OperationLogger, create_correlation_id
from rental_billing.models.bill import Price
from rental_billing.models.results import RecalculationReport
from rental_billing.notifications import ChangeNotificationBus, PriceChanged, TenantChanged
from rental_billing.services.storage import BillingStoreInterface

logger = structlog.get_logger(__name__)


async def ensure_price(store: BillingStoreInterface) -> Price:
    """
    Return the Price singleton, creating it with default tariffs if absent.
    """
    price = await store.get_price()
    if price is not None:
        return price

    settings = get_settings().billing
    async with store.transaction() as tx:
        # Someone may have saved it while we were waiting for the lock
        price = await tx.get_price()
        if price is None:
            price = Price(
                water=Decimal(str(settings.default_water_price)),
                electricity=Decimal(str(settings.default_electricity_price)),
            )
            await tx.save_price(price)
            logger.info(
                "default_price_created",
                water=str(price.water),
                electricity=str(price.electricity),
            )
    return price


class RecalculationCascade:
    """
    Batch re-pricing of historical bills.

    Cascades report only an aggregate outcome. Per-tenant failures are
    logged and listed in the report, never raised.
    """

    def __init__(
        self,
        store: BillingStoreInterface,
        bus: ChangeNotificationBus,
        upsert: Optional[BillUpsertTransaction] = None,
        operation_logger: Optional[OperationLogger] = None,
    ):
        self._store = store
        self._bus = bus
        self._upsert = upsert or BillUpsertTransaction(store)
        self._operation_logger = operation_logger or OperationLogger()

    async def _recalculate_tenant(
        self,
        room_number: str,
        builder: BillAggregateBuilder,
        report: RecalculationReport,
        correlation_id: UUID,
    ) -> None:
        bills = await self._store.list_bills_with_details(room_number)
        for stored in bills:
            try:
                await self._upsert.upsert(builder.reprice(stored))
            except Exception as e:
                self._operation_logger.log_recalculation_failed(
                    room_number=room_number,
                    month=stored.bill.month,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                raise
            report.bills_updated += 1

        await self._bus.publish(TenantChanged(room_number=room_number))
        await self._bus.publish(PriceChanged())

    async def _run(
        self,
        trigger: str,
        rooms: list[str],
        correlation_id: Optional[UUID],
    ) -> RecalculationReport:
        correlation_id = correlation_id or create_correlation_id()
        report = RecalculationReport()
        self._operation_logger.log_recalculation_started(
            trigger=trigger,
            tenant_count=len(rooms),
            correlation_id=correlation_id,
        )

        price = await ensure_price(self._store)
        builder = BillAggregateBuilder(price)

        for room_number in rooms:
            try:
                await self._recalculate_tenant(room_number, builder, report, correlation_id)
            except Exception as e:
                report.failed_rooms.append(room_number)
                logger.warning(
                    "tenant_recalculation_skipped",
                    room_number=room_number,
                    error=str(e),
                )
            report.tenants_processed += 1

        report.finished_at = datetime.utcnow()
        self._operation_logger.log_recalculation_completed(
            trigger=trigger,
            tenants_processed=report.tenants_processed,
            bills_updated=report.bills_updated,
            failed_rooms=report.failed_rooms,
            correlation_id=correlation_id,
        )
        return report

    async def recalculate_for_tenant(
        self,
        room_number: str,
        correlation_id: Optional[UUID] = None,
    ) -> RecalculationReport:
        """Re-price every bill of one tenant (after a rent change)."""
        return await self._run("tenant", [room_number], correlation_id)

    async def recalculate_all(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> RecalculationReport:
        """Re-price every bill of every tenant (after a tariff change)."""
        tenants = await self._store.list_tenants()
        return await self._run(
            "price",
            [tenant.room_number for tenant in tenants],
            correlation_id,
        )
