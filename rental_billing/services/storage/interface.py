"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the billing store.
This allows us to:
1. Inject an explicit store into every component (no global handle)
2. Use in-memory storage for testing
3. Swap in a relational backend without touching billing logic

Reads go through BillingStoreInterface and always see committed state.
Writes go through a StoreTransaction obtained from `transaction()`;
everything written inside one transaction commits together or not at all.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from decimal import Decimal
from typing import Optional

from rental_billing.models.bill import (
    Bill,
    BillDetail,
    BillWithDetails,
    MeterNameConfig,
    MeterType,
    Price,
    Tenant,
)


class StoreTransaction(ABC):
    """
    Write handle for one atomic unit of work.

    Reads made through the transaction see its own uncommitted writes.
    The handle is only valid inside its `async with` block; any use after
    the block has committed or rolled back raises TransactionError.
    """

    # Tenants

    @abstractmethod
    async def get_tenant(self, room_number: str) -> Optional[Tenant]:
        pass

    @abstractmethod
    async def insert_tenant(self, tenant: Tenant) -> None:
        """
        Raises:
            DuplicateError: If the room number is already taken
        """
        pass

    @abstractmethod
    async def update_tenant(self, tenant: Tenant) -> None:
        """
        Raises:
            NotFoundError: If the tenant doesn't exist
        """
        pass

    @abstractmethod
    async def delete_tenant(self, room_number: str) -> bool:
        """
        Delete a tenant together with all of its bills and line items.

        Returns:
            True if the tenant existed
        """
        pass

    # Price singleton

    @abstractmethod
    async def get_price(self) -> Optional[Price]:
        pass

    @abstractmethod
    async def save_price(self, price: Price) -> None:
        pass

    # Bills

    @abstractmethod
    async def get_bill(self, room_number: str, month: str) -> Optional[Bill]:
        pass

    @abstractmethod
    async def insert_bill(self, bill: Bill) -> int:
        """
        Insert a new bill.

        Returns:
            The new bill identity

        Raises:
            DuplicateError: If a bill already exists for (room, month)
            NotFoundError: If the tenant doesn't exist
        """
        pass

    @abstractmethod
    async def update_bill_total(self, bill_id: int, total_amount: Decimal) -> None:
        """
        Raises:
            NotFoundError: If the bill doesn't exist
        """
        pass

    @abstractmethod
    async def delete_details(self, bill_id: int) -> int:
        """
        Delete every line item of a bill.

        Returns:
            Number of line items deleted
        """
        pass

    @abstractmethod
    async def insert_details(
        self,
        bill_id: int,
        details: list[BillDetail],
    ) -> list[int]:
        """
        Insert line items against a bill.

        Returns:
            The new detail identities, in input order
        """
        pass

    # Meter names

    @abstractmethod
    async def deactivate_meter_names(self, default_name: str, scope: str) -> int:
        """
        Soft-delete every active config for (default_name, scope).

        Returns:
            Number of rows deactivated
        """
        pass

    @abstractmethod
    async def insert_meter_name(self, config: MeterNameConfig) -> int:
        pass


class BillingStoreInterface(ABC):
    """
    Abstract interface for the billing store.

    Any storage implementation (in-memory, SQLite, ...) must implement
    these methods.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """
        Open a write transaction.

        Usage:
            async with store.transaction() as tx:
                await tx.update_bill_total(bill_id, total)

        Raises:
            TransactionError: If the yielded handle is used after the block
                              has committed or rolled back
        """
        pass

    @abstractmethod
    async def get_tenant(self, room_number: str) -> Optional[Tenant]:
        pass

    @abstractmethod
    async def list_tenants(self) -> list[Tenant]:
        """List tenants ordered by room number."""
        pass

    @abstractmethod
    async def get_price(self) -> Optional[Price]:
        """Return the Price singleton, or None if it was never saved."""
        pass

    @abstractmethod
    async def get_bill_with_details(
        self,
        room_number: str,
        month: str,
    ) -> Optional[BillWithDetails]:
        pass

    @abstractmethod
    async def list_bills_with_details(
        self,
        room_number: Optional[str] = None,
    ) -> list[BillWithDetails]:
        """
        List bills with their line items.

        Args:
            room_number: Only this tenant's bills if given

        Returns:
            Bills ordered by (room_number, month)
        """
        pass

    @abstractmethod
    async def find_custom_name(
        self,
        default_name: str,
        scope: str,
    ) -> Optional[str]:
        """
        Latest active custom name for (default_name, scope).

        Returns:
            The custom name of the most recently updated active row, or None
        """
        pass

    @abstractmethod
    async def list_meter_name_configs(
        self,
        scope: Optional[str] = None,
        meter_type: Optional[MeterType] = None,
        active_only: bool = True,
    ) -> list[MeterNameConfig]:
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class TransactionError(StorageError):
    """A transaction could not be committed."""
    pass
