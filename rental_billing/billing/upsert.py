"""
Bill Upsert Transaction

Writes a bill aggregate for (room_number, month):
1. If a bill exists for the key, keep its identity, overwrite its total,
   delete all of its line items and insert the new ones.
2. Otherwise insert a new bill, then its line items.

CRITICAL: The total overwrite, the delete and the insert run inside ONE
store transaction. A reader sees the old bill or the new bill, never a
new total next to missing or stale line items.

Concurrent saves for the same key are serialized by a per-key lock,
so the later commit fully replaces the earlier one. A key's lock lives
only while some save holds or awaits it.
"""

import asyncio
import weakref
from decimal import Decimal
from typing import Optional

import structlog

from rental_billing.models.bill import Bill, BillAggregate
from rental_billing.services.storage import BillingStoreInterface
from rental_billing.validation import BillValidationError, BillValidator

logger = structlog.get_logger(__name__)


class BillUpsertTransaction:
    """
    Atomic insert-or-replace of one bill and its line items.

    The aggregate is validated before any transaction is opened;
    a rejected aggregate never reaches the store.
    """

    def __init__(
        self,
        store: BillingStoreInterface,
        validator: Optional[BillValidator] = None,
    ):
        self._store = store
        self._validator = validator or BillValidator()
        self._key_locks: "weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, key: tuple[str, str]) -> asyncio.Lock:
        lock = self._key_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._key_locks[key] = lock
        return lock

    async def upsert(
        self,
        aggregate: BillAggregate,
        legacy_rent: Optional[Decimal] = None,
    ) -> int:
        """
        Insert or fully replace the bill for the aggregate's key.

        Args:
            aggregate: The bill to write
            legacy_rent: Only for imports of stored bills, whose total may
                         still include the tenant's rent

        Returns:
            The bill identity (unchanged when an existing bill is replaced)

        Raises:
            BillValidationError: If a line item or the total is inconsistent
            NotFoundError: If the tenant doesn't exist
        """
        result = self._validator.validate_details(
            aggregate.room_number,
            aggregate.month,
            aggregate.details,
            aggregate.total_amount,
            legacy_rent=legacy_rent,
        )
        if not result.is_valid:
            raise BillValidationError(result)

        # Held here so the weak entry survives until the save is done
        lock = self._lock_for(aggregate.key)
        async with lock:
            async with self._store.transaction() as tx:
                existing = await tx.get_bill(aggregate.room_number, aggregate.month)
                if existing is not None:
                    bill_id = existing.bill_id
                    await tx.update_bill_total(bill_id, aggregate.total_amount)
                    await tx.delete_details(bill_id)
                else:
                    bill_id = await tx.insert_bill(Bill(
                        room_number=aggregate.room_number,
                        month=aggregate.month,
                        total_amount=aggregate.total_amount,
                    ))
                await tx.insert_details(bill_id, aggregate.details)

        logger.debug(
            "bill_upserted",
            room_number=aggregate.room_number,
            month=aggregate.month,
            bill_id=bill_id,
            replaced=existing is not None,
            detail_count=len(aggregate.details),
        )
        return bill_id

    async def upsert_many(self, aggregates: list[BillAggregate]) -> list[int]:
        """
        Apply aggregates in order, one transaction each.

        A repeated key is simply written again, so the last one wins.
        """
        bill_ids = []
        for aggregate in aggregates:
            bill_ids.append(await self.upsert(aggregate))
        return bill_ids
