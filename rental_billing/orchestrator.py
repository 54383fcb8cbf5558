"""
Main Orchestrator for Rental Billing

This module ties together all the components and defines the
end-to-end flows for:
1. Bill save (rows -> validate -> build -> upsert -> notify -> backup)
2. Tariff and tenant edits (write -> recalculation cascade -> notify)
3. Reads (stored bill -> reconciliation -> display total)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation first
- Notifications and backups run only after a successful commit
- Side-channel failures are logged, never raised to the caller
- Every mutation is logged

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import asyncio
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from rental_billing.billing import (
    BillAggregateBuilder,
    BillUpsertTransaction,
    FormatReconciliationReader,
    RecalculationCascade,
    ensure_price,
)
from rental_billing.calculator import MeterReadingCalculator
from rental_billing.config import get_settings
from rental_billing.interchange import (
    BillingSnapshot,
    ImportSummary,
    export_snapshot,
    import_snapshot,
)
from rental_billing.logs import OperationLogger, configure_logging, create_correlation_id
from rental_billing.meter_names import MeterNameManager
from rental_billing.models.bill import (
    MAIN_ELECTRICITY_METER,
    MAIN_WATER_METER,
    BillDetail,
    DetailType,
    MeterType,
    Price,
    Tenant,
    is_primary_meter,
)
from rental_billing.models.editing import ExtraFeeRow, MeterRow, OverrideState
from rental_billing.models.results import DisplayTotal, RecalculationReport
from rental_billing.notifications import (
    BillChanged,
    ChangeEvent,
    ChangeNotificationBus,
    NotificationChannel,
    PriceChanged,
    PrivacyKeywordsChanged,
    Subscription,
    TenantChanged,
)
from rental_billing.privacy import apply_privacy_protection, prepare_keywords
from rental_billing.services.backup import BackupSinkInterface, GoogleSheetsBackup
from rental_billing.services.storage import (
    BillingStoreInterface,
    InMemoryBillingStore,
    NotFoundError,
)
from rental_billing.validation import BillValidationError, BillValidator

logger = structlog.get_logger(__name__)


async def publish_quietly(
    bus: ChangeNotificationBus,
    event: ChangeEvent,
    operation_logger: OperationLogger,
) -> None:
    """Publish an event; a delivery failure is logged, never raised."""
    try:
        await bus.publish(event)
    except Exception as e:
        operation_logger.log_error(
            error_type="notification",
            error_message=str(e),
            details={"channel": event.channel.value},
        )


class BillSaveFlow:
    """
    Orchestrates saving one bill from the editing surface.

    Flow:
    1. Validate -> Reject malformed rows (no transaction opened)
    2. Build -> Canonical line items against the current tariff
    3. Upsert -> One atomic write for (room, month)
    4. Notify -> bill-changed
    5. Backup -> Best effort, in the background

    Steps 4 and 5 never affect the outcome of step 3.
    """

    def __init__(
        self,
        store: BillingStoreInterface,
        bus: ChangeNotificationBus,
        validator: Optional[BillValidator] = None,
        upsert: Optional[BillUpsertTransaction] = None,
        backup_sink: Optional[BackupSinkInterface] = None,
        operation_logger: Optional[OperationLogger] = None,
    ):
        self._store = store
        self._bus = bus
        self._validator = validator or BillValidator()
        self._upsert = upsert or BillUpsertTransaction(store, self._validator)
        self._backup_sink = backup_sink
        self._operation_logger = operation_logger or OperationLogger()
        self._backup_tasks: set[asyncio.Task] = set()

    async def save_bill(
        self,
        room_number: str,
        month: str,
        meters: list[MeterRow],
        extra_fees: list[ExtraFeeRow],
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Save a bill, replacing any existing bill for the same month.

        Returns:
            The bill identity

        Raises:
            BillValidationError: If the rows are rejected (nothing written)
            NotFoundError: If the tenant doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate_input(room_number, month, meters, extra_fees)
        if not result.is_valid:
            self._operation_logger.log_validation_failed(
                room_number=room_number,
                month=month,
                issues=[
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.issues
                ],
                correlation_id=correlation_id,
            )
            raise BillValidationError(result)

        price = await ensure_price(self._store)
        aggregate = BillAggregateBuilder(price).build(room_number, month, meters, extra_fees)

        try:
            bill_id = await self._upsert.upsert(aggregate)
        except Exception as e:
            self._operation_logger.log_save_failed(
                room_number=room_number,
                month=month,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._operation_logger.log_bill_saved(
            room_number=room_number,
            month=month,
            bill_id=bill_id,
            total=str(aggregate.total_amount),
            correlation_id=correlation_id,
        )

        await publish_quietly(
            self._bus,
            BillChanged(room_number=room_number, month=month),
            self._operation_logger,
        )

        if self._backup_sink is not None:
            task = asyncio.create_task(self.run_backup(correlation_id))
            self._backup_tasks.add(task)
            task.add_done_callback(self._backup_tasks.discard)

        return bill_id

    async def run_backup(self, correlation_id: Optional[UUID] = None) -> bool:
        """
        Write a snapshot to the backup sink.

        Returns:
            True if the backup was written. Failures are logged, not raised.
        """
        if self._backup_sink is None:
            return False
        try:
            snapshot = await export_snapshot(self._store)
            await self._backup_sink.write_snapshot(snapshot)
        except Exception as e:
            self._operation_logger.log_backup_failed(
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return False

        self._operation_logger.log_backup_completed(
            sink=self._backup_sink.name,
            bill_count=snapshot.bill_count,
            correlation_id=correlation_id,
        )
        return True

    async def wait_for_backups(self) -> None:
        """Wait until every background backup has finished."""
        if self._backup_tasks:
            await asyncio.gather(*list(self._backup_tasks))


class TariffFlow:
    """
    Orchestrates changes to the Price singleton.

    A tariff change re-prices every stored bill before price-changed
    is published, so subscribers reload consistent totals.
    """

    def __init__(
        self,
        store: BillingStoreInterface,
        bus: ChangeNotificationBus,
        cascade: RecalculationCascade,
        validator: Optional[BillValidator] = None,
        operation_logger: Optional[OperationLogger] = None,
    ):
        self._store = store
        self._bus = bus
        self._cascade = cascade
        self._validator = validator or BillValidator()
        self._operation_logger = operation_logger or OperationLogger()

    async def get_price(self) -> Price:
        return await ensure_price(self._store)

    async def save_price(
        self,
        water: Decimal,
        electricity: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[RecalculationReport]:
        """
        Save the tariffs, keeping the privacy keywords.

        Returns:
            The cascade report if the tariffs changed, else None

        Raises:
            BillValidationError: If a tariff is negative
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate_price(water, electricity)
        if not result.is_valid:
            raise BillValidationError(result)

        async with self._store.transaction() as tx:
            current = await tx.get_price()
            changed = (
                current is None
                or current.water != water
                or current.electricity != electricity
            )
            await tx.save_price(Price(
                water=water,
                electricity=electricity,
                privacy_keywords=current.privacy_keywords if current else [],
            ))

        self._operation_logger.log_price_saved(
            water=str(water),
            electricity=str(electricity),
            changed=changed,
            correlation_id=correlation_id,
        )

        report = None
        if changed:
            report = await self._cascade.recalculate_all(correlation_id)

        await publish_quietly(self._bus, PriceChanged(), self._operation_logger)
        return report

    async def save_privacy_keywords(self, keywords: list[str]) -> list[str]:
        """
        Replace the privacy keyword list.

        Returns:
            The cleaned keywords that were stored

        Raises:
            PrivacyKeywordError: If a keyword is too long
        """
        cleaned = prepare_keywords(keywords)
        await ensure_price(self._store)

        async with self._store.transaction() as tx:
            current = await tx.get_price()
            await tx.save_price(current.model_copy(update={"privacy_keywords": cleaned}))

        self._operation_logger.log_privacy_keywords_saved(cleaned)
        await publish_quietly(
            self._bus,
            PrivacyKeywordsChanged(keywords=tuple(cleaned)),
            self._operation_logger,
        )
        return cleaned


class TenantFlow:
    """
    Orchestrates tenant edits.

    A rent change triggers the cascade for that tenant. Deleting a
    tenant deletes its bills in the same transaction.
    """

    def __init__(
        self,
        store: BillingStoreInterface,
        bus: ChangeNotificationBus,
        cascade: RecalculationCascade,
        operation_logger: Optional[OperationLogger] = None,
    ):
        self._store = store
        self._bus = bus
        self._cascade = cascade
        self._operation_logger = operation_logger or OperationLogger()

    async def add_tenant(self, tenant: Tenant) -> None:
        """
        Raises:
            DuplicateError: If the room number is already taken
        """
        async with self._store.transaction() as tx:
            await tx.insert_tenant(tenant)
        await publish_quietly(
            self._bus,
            TenantChanged(room_number=tenant.room_number),
            self._operation_logger,
        )

    async def update_tenant(
        self,
        tenant: Tenant,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[RecalculationReport]:
        """
        Update a tenant, re-pricing its bills if the rent changed.

        Returns:
            The cascade report if the rent changed, else None

        Raises:
            NotFoundError: If the tenant doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._store.transaction() as tx:
            previous = await tx.get_tenant(tenant.room_number)
            if previous is None:
                raise NotFoundError(f"Tenant not found: {tenant.room_number}")
            await tx.update_tenant(tenant)

        report = None
        if previous.rent != tenant.rent:
            self._operation_logger.log_rent_changed(
                room_number=tenant.room_number,
                old_rent=str(previous.rent),
                new_rent=str(tenant.rent),
                correlation_id=correlation_id,
            )
            report = await self._cascade.recalculate_for_tenant(
                tenant.room_number, correlation_id
            )

        await publish_quietly(
            self._bus,
            TenantChanged(room_number=tenant.room_number),
            self._operation_logger,
        )
        return report

    async def delete_tenant(self, room_number: str) -> bool:
        """
        Delete a tenant and all of its bills.

        Returns:
            True if the tenant existed
        """
        async with self._store.transaction() as tx:
            deleted = await tx.delete_tenant(room_number)

        if deleted:
            self._operation_logger.log_tenant_deleted(room_number)
            await publish_quietly(
                self._bus,
                TenantChanged(room_number=room_number),
                self._operation_logger,
            )
        return deleted


class BillReadFlow:
    """
    Orchestrates reads for presentation.

    Totals always go through reconciliation; rows for the editing
    surface carry display names but persist canonical ones.
    """

    def __init__(
        self,
        store: BillingStoreInterface,
        reader: FormatReconciliationReader,
        meter_names: MeterNameManager,
    ):
        self._store = store
        self._reader = reader
        self._meter_names = meter_names

    async def get_display_total(self, room_number: str, month: str) -> DisplayTotal:
        return await self._reader.get_display_total(room_number, month)

    async def list_display_totals(self, room_number: str) -> list[DisplayTotal]:
        return await self._reader.list_display_totals(room_number)

    async def get_room_label(self, room_number: str) -> str:
        """Room number with the privacy keywords removed."""
        price = await self._store.get_price()
        keywords = price.privacy_keywords if price else []
        return apply_privacy_protection(room_number, keywords)

    def _detail_to_row(self, detail: BillDetail, calculator: MeterReadingCalculator) -> MeterRow:
        meter_type = MeterType(detail.type.value)
        row = MeterRow(
            meter_type=meter_type,
            default_name=detail.name,
            name=detail.name,
            is_primary=is_primary_meter(detail.name),
            previous_reading=_reading_text(detail.previous_reading),
            current_reading=_reading_text(detail.current_reading),
            usage=detail.usage,
            amount=detail.amount,
        )

        # Restore the override the stored numbers imply
        derived = calculator.recalculate(row)
        if derived.usage == detail.usage and derived.amount == detail.amount:
            return derived
        if detail.usage is not None and detail.usage * calculator.unit_price(row) == detail.amount:
            return row.model_copy(update={"override": OverrideState.MANUAL_USAGE})
        return row.model_copy(update={"override": OverrideState.MANUAL_AMOUNT})

    async def load_for_editing(
        self,
        room_number: str,
        month: str,
    ) -> tuple[list[MeterRow], list[ExtraFeeRow]]:
        """
        Rows for the editing surface.

        An existing bill is loaded as stored. A new month starts with the
        meters of the tenant's latest earlier bill, its current readings
        carried over as previous readings (or just the two main meters
        for a tenant's first bill).
        """
        price = await ensure_price(self._store)
        calculator = MeterReadingCalculator(price)

        stored = await self._store.get_bill_with_details(room_number, month)
        if stored is not None:
            meters = [
                self._detail_to_row(d, calculator)
                for d in stored.details if d.type.is_metered
            ]
            fees = [
                ExtraFeeRow(name=d.name, amount=str(d.amount))
                for d in stored.details if d.type == DetailType.EXTRA
            ]
        else:
            earlier = [
                b for b in await self._store.list_bills_with_details(room_number)
                if b.bill.month < month
            ]
            if earlier:
                meters = [
                    MeterRow(
                        meter_type=MeterType(d.type.value),
                        default_name=d.name,
                        name=d.name,
                        is_primary=is_primary_meter(d.name),
                        previous_reading=_reading_text(d.current_reading),
                    )
                    for d in earlier[-1].details if d.type.is_metered
                ]
            else:
                meters = [
                    MeterRow(meter_type=MeterType.WATER, default_name=MAIN_WATER_METER,
                             name=MAIN_WATER_METER, is_primary=True),
                    MeterRow(meter_type=MeterType.ELECTRICITY, default_name=MAIN_ELECTRICITY_METER,
                             name=MAIN_ELECTRICITY_METER, is_primary=True),
                ]
            fees = []

        meters = await self._meter_names.with_display_names(meters, room_number)
        return meters, fees


def _reading_text(value: Optional[Decimal]) -> str:
    return "" if value is None else str(value)


class BillingService:
    """
    Single entry point for presentation and import/export collaborators.

    Usage:
        service = create_app_components()
        bill_id = await service.save_bill("101", "2025-06", meters, fees)
        total = await service.get_display_total("101", "2025-06")
    """

    def __init__(
        self,
        store: BillingStoreInterface,
        bus: Optional[ChangeNotificationBus] = None,
        backup_sink: Optional[BackupSinkInterface] = None,
        operation_logger: Optional[OperationLogger] = None,
    ):
        self.store = store
        self.operation_logger = operation_logger or OperationLogger()
        self.bus = bus or ChangeNotificationBus(operation_logger=self.operation_logger)

        validator = BillValidator()
        self.upsert = BillUpsertTransaction(store, validator)
        self.cascade = RecalculationCascade(
            store, self.bus, self.upsert, self.operation_logger
        )
        self.meter_names = MeterNameManager(store, self.bus, self.operation_logger)

        self.bill_save_flow = BillSaveFlow(
            store, self.bus, validator, self.upsert, backup_sink, self.operation_logger
        )
        self.tariff_flow = TariffFlow(
            store, self.bus, self.cascade, validator, self.operation_logger
        )
        self.tenant_flow = TenantFlow(store, self.bus, self.cascade, self.operation_logger)
        self.bill_read_flow = BillReadFlow(
            store,
            FormatReconciliationReader(store, operation_logger=self.operation_logger),
            self.meter_names,
        )

    # Presentation interface

    async def get_display_total(self, room_number: str, month: str) -> DisplayTotal:
        return await self.bill_read_flow.get_display_total(room_number, month)

    async def save_bill(
        self,
        room_number: str,
        month: str,
        meters: list[MeterRow],
        extra_fees: list[ExtraFeeRow],
    ) -> int:
        return await self.bill_save_flow.save_bill(room_number, month, meters, extra_fees)

    async def recalculate_for_tenant(self, room_number: str) -> RecalculationReport:
        return await self.cascade.recalculate_for_tenant(room_number)

    async def recalculate_all(self) -> RecalculationReport:
        return await self.cascade.recalculate_all()

    def subscribe(self, channel: NotificationChannel) -> Subscription:
        return self.bus.subscribe(channel)

    # Settings and tenant edits

    async def save_price(self, water: Decimal, electricity: Decimal) -> Optional[RecalculationReport]:
        return await self.tariff_flow.save_price(water, electricity)

    async def save_privacy_keywords(self, keywords: list[str]) -> list[str]:
        return await self.tariff_flow.save_privacy_keywords(keywords)

    async def add_tenant(self, tenant: Tenant) -> None:
        await self.tenant_flow.add_tenant(tenant)

    async def update_tenant(self, tenant: Tenant) -> Optional[RecalculationReport]:
        return await self.tenant_flow.update_tenant(tenant)

    async def delete_tenant(self, room_number: str) -> bool:
        return await self.tenant_flow.delete_tenant(room_number)

    # Import/export interface

    async def export_snapshot(self) -> BillingSnapshot:
        return await export_snapshot(self.store)

    async def import_snapshot(self, snapshot: BillingSnapshot) -> ImportSummary:
        summary = await import_snapshot(self.store, snapshot, self.upsert)
        for tenant in snapshot.tenants:
            await publish_quietly(
                self.bus,
                TenantChanged(room_number=tenant.room_number),
                self.operation_logger,
            )
        return summary


def create_app_components(
    store: Optional[BillingStoreInterface] = None,
    use_backup: bool = True,
) -> BillingService:
    """
    Factory function to create all application components.

    Args:
        store: Billing store to use. Defaults to a fresh in-memory store.
        use_backup: Whether to set up the Google Sheets backup sink.
                    It is only used when auto backup is enabled.

    Returns:
        A wired BillingService
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    backup_sink = None
    if use_backup and settings.billing.auto_backup_enabled:
        try:
            backup_sink = GoogleSheetsBackup()
        except Exception as e:
            # Backup not configured - continue without it
            logger.warning("backup_not_configured", error=str(e))
            backup_sink = None

    return BillingService(
        store=store or InMemoryBillingStore(),
        backup_sink=backup_sink,
    )
