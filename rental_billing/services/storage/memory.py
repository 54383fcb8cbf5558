"""
In-Memory Storage Implementation

DESIGN DECISION: Transactions are staged on a private copy of the table
maps and published with a single reference swap on commit. This gives:
1. Readers see either the pre- or post-commit state, never a mix
2. Any exception inside a transaction discards every staged write
3. No awaits between "read committed state" and "return it"

Writers are serialized by one store-wide asyncio.Lock. Models are
copied on the way in and out so callers can't mutate stored rows.

TRADEOFFS:
- Every transaction copies the table maps (fine for a small rental
  operation, not for millions of rows)
- State lives only as long as the process
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, Optional

from rental_billing.models.bill import (
    Bill,
    BillDetail,
    BillWithDetails,
    MeterNameConfig,
    MeterType,
    Price,
    Tenant,
)
from rental_billing.services.storage.interface import (
    BillingStoreInterface,
    DuplicateError,
    NotFoundError,
    StoreTransaction,
    TransactionError,
)


class _Tables:
    """One immutable-by-convention snapshot of every table."""

    def __init__(self):
        self.tenants: dict[str, Tenant] = {}
        self.price: Optional[Price] = None
        self.bills: dict[int, Bill] = {}
        self.bill_keys: dict[tuple[str, str], int] = {}
        self.details: dict[int, BillDetail] = {}
        self.meter_names: dict[int, MeterNameConfig] = {}
        self.next_bill_id = 1
        self.next_detail_id = 1
        self.next_meter_name_id = 1

    def copy(self) -> "_Tables":
        staged = _Tables()
        staged.tenants = dict(self.tenants)
        staged.price = self.price
        staged.bills = dict(self.bills)
        staged.bill_keys = dict(self.bill_keys)
        staged.details = dict(self.details)
        staged.meter_names = dict(self.meter_names)
        staged.next_bill_id = self.next_bill_id
        staged.next_detail_id = self.next_detail_id
        staged.next_meter_name_id = self.next_meter_name_id
        return staged

    def details_for(self, bill_id: int) -> list[BillDetail]:
        items = [d for d in self.details.values() if d.bill_id == bill_id]
        items.sort(key=lambda d: d.detail_id)
        return [d.model_copy(deep=True) for d in items]

    def bill_with_details(self, bill_id: int) -> BillWithDetails:
        return BillWithDetails(
            bill=self.bills[bill_id].model_copy(deep=True),
            details=self.details_for(bill_id),
        )


class InMemoryTransaction(StoreTransaction):
    """Transaction over a staged copy of the store tables."""

    def __init__(self, tables: _Tables):
        self._staged = tables
        self._closed = False

    @property
    def _tables(self) -> _Tables:
        if self._closed:
            raise TransactionError("Transaction already finished; its writes would be lost")
        return self._staged

    def close(self) -> None:
        self._closed = True

    async def get_tenant(self, room_number: str) -> Optional[Tenant]:
        tenant = self._tables.tenants.get(room_number)
        return tenant.model_copy(deep=True) if tenant else None

    async def insert_tenant(self, tenant: Tenant) -> None:
        if tenant.room_number in self._tables.tenants:
            raise DuplicateError(f"Tenant already exists: {tenant.room_number}")
        self._tables.tenants[tenant.room_number] = tenant.model_copy(deep=True)

    async def update_tenant(self, tenant: Tenant) -> None:
        if tenant.room_number not in self._tables.tenants:
            raise NotFoundError(f"Tenant not found: {tenant.room_number}")
        self._tables.tenants[tenant.room_number] = tenant.model_copy(deep=True)

    async def delete_tenant(self, room_number: str) -> bool:
        if room_number not in self._tables.tenants:
            return False
        del self._tables.tenants[room_number]

        bill_ids = [
            bill_id for (room, _), bill_id in self._tables.bill_keys.items()
            if room == room_number
        ]
        for bill_id in bill_ids:
            await self.delete_details(bill_id)
            bill = self._tables.bills.pop(bill_id)
            del self._tables.bill_keys[bill.key]
        return True

    async def get_price(self) -> Optional[Price]:
        price = self._tables.price
        return price.model_copy(deep=True) if price else None

    async def save_price(self, price: Price) -> None:
        self._tables.price = price.model_copy(deep=True)

    async def get_bill(self, room_number: str, month: str) -> Optional[Bill]:
        bill_id = self._tables.bill_keys.get((room_number, month))
        if bill_id is None:
            return None
        return self._tables.bills[bill_id].model_copy(deep=True)

    async def insert_bill(self, bill: Bill) -> int:
        if bill.key in self._tables.bill_keys:
            raise DuplicateError(f"Bill already exists for {bill.room_number} {bill.month}")
        if bill.room_number not in self._tables.tenants:
            raise NotFoundError(f"Tenant not found: {bill.room_number}")

        bill_id = self._tables.next_bill_id
        self._tables.next_bill_id += 1
        self._tables.bills[bill_id] = bill.model_copy(update={"bill_id": bill_id}, deep=True)
        self._tables.bill_keys[bill.key] = bill_id
        return bill_id

    async def update_bill_total(self, bill_id: int, total_amount: Decimal) -> None:
        bill = self._tables.bills.get(bill_id)
        if bill is None:
            raise NotFoundError(f"Bill not found: {bill_id}")
        self._tables.bills[bill_id] = bill.model_copy(update={"total_amount": total_amount})

    async def delete_details(self, bill_id: int) -> int:
        doomed = [
            detail_id for detail_id, d in self._tables.details.items()
            if d.bill_id == bill_id
        ]
        for detail_id in doomed:
            del self._tables.details[detail_id]
        return len(doomed)

    async def insert_details(
        self,
        bill_id: int,
        details: list[BillDetail],
    ) -> list[int]:
        if bill_id not in self._tables.bills:
            raise NotFoundError(f"Bill not found: {bill_id}")

        ids = []
        for detail in details:
            detail_id = self._tables.next_detail_id
            self._tables.next_detail_id += 1
            self._tables.details[detail_id] = detail.model_copy(
                update={"detail_id": detail_id, "bill_id": bill_id},
                deep=True,
            )
            ids.append(detail_id)
        return ids

    async def deactivate_meter_names(self, default_name: str, scope: str) -> int:
        count = 0
        now = datetime.utcnow()
        for config_id, config in list(self._tables.meter_names.items()):
            if (
                config.is_active
                and config.default_name == default_name
                and config.scope == scope
            ):
                self._tables.meter_names[config_id] = config.model_copy(
                    update={"is_active": False, "updated_at": now}
                )
                count += 1
        return count

    async def insert_meter_name(self, config: MeterNameConfig) -> int:
        config_id = self._tables.next_meter_name_id
        self._tables.next_meter_name_id += 1
        self._tables.meter_names[config_id] = config.model_copy(
            update={"config_id": config_id},
            deep=True,
        )
        return config_id


class InMemoryBillingStore(BillingStoreInterface):
    """
    Process-local billing store.

    Used by tests and by single-process tools that load a snapshot,
    work on it, and export it again.
    """

    def __init__(self):
        self._committed = _Tables()
        self._write_lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        async with self._write_lock:
            staged = self._committed.copy()
            tx = InMemoryTransaction(staged)
            try:
                yield tx
                # Only reached when the body didn't raise
                self._committed = staged
            finally:
                tx.close()

    async def get_tenant(self, room_number: str) -> Optional[Tenant]:
        tenant = self._committed.tenants.get(room_number)
        return tenant.model_copy(deep=True) if tenant else None

    async def list_tenants(self) -> list[Tenant]:
        tables = self._committed
        return [
            tables.tenants[room].model_copy(deep=True)
            for room in sorted(tables.tenants)
        ]

    async def get_price(self) -> Optional[Price]:
        price = self._committed.price
        return price.model_copy(deep=True) if price else None

    async def get_bill_with_details(
        self,
        room_number: str,
        month: str,
    ) -> Optional[BillWithDetails]:
        tables = self._committed
        bill_id = tables.bill_keys.get((room_number, month))
        if bill_id is None:
            return None
        return tables.bill_with_details(bill_id)

    async def list_bills_with_details(
        self,
        room_number: Optional[str] = None,
    ) -> list[BillWithDetails]:
        tables = self._committed
        keys = sorted(
            key for key in tables.bill_keys
            if room_number is None or key[0] == room_number
        )
        return [tables.bill_with_details(tables.bill_keys[key]) for key in keys]

    async def find_custom_name(
        self,
        default_name: str,
        scope: str,
    ) -> Optional[str]:
        candidates = [
            c for c in self._committed.meter_names.values()
            if c.is_active and c.default_name == default_name and c.scope == scope
        ]
        if not candidates:
            return None
        latest = max(candidates, key=lambda c: (c.updated_at, c.config_id))
        return latest.custom_name

    async def list_meter_name_configs(
        self,
        scope: Optional[str] = None,
        meter_type: Optional[MeterType] = None,
        active_only: bool = True,
    ) -> list[MeterNameConfig]:
        configs = []
        for config_id in sorted(self._committed.meter_names):
            config = self._committed.meter_names[config_id]
            if active_only and not config.is_active:
                continue
            if scope is not None and config.scope != scope:
                continue
            if meter_type is not None and config.meter_type != meter_type:
                continue
            configs.append(config.model_copy(deep=True))
        return configs
