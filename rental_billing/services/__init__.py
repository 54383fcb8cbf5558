"""Services package."""

from rental_billing.services.storage import (
    BillingStoreInterface,
    DuplicateError,
    InMemoryBillingStore,
    NotFoundError,
    StorageError,
    StoreTransaction,
    TransactionError,
)

__all__ = [
    # Storage services
    "BillingStoreInterface",
    "DuplicateError",
    "InMemoryBillingStore",
    "NotFoundError",
    "StorageError",
    "StoreTransaction",
    "TransactionError",
]
