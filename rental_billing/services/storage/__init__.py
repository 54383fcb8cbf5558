"""
Storage Services Package

Provides the abstract billing store interface and an in-memory
implementation. Business logic only ever sees the interface.
"""

from rental_billing.services.storage.interface import (
    BillingStoreInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    StoreTransaction,
    TransactionError,
)
from rental_billing.services.storage.memory import (
    InMemoryBillingStore,
    InMemoryTransaction,
)

__all__ = [
    # Interfaces
    "BillingStoreInterface",
    "StoreTransaction",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "TransactionError",
    # In-memory implementation
    "InMemoryBillingStore",
    "InMemoryTransaction",
]
