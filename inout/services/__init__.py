"""Services package."""

from inout.services.clock import Clock, FixedClock, SystemClock
from inout.services.storage import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    NotFoundError,
    SQLiteAuditStorage,
    SQLiteLedgerStore,
    StorageError,
    SubscriptionStorageInterface,
    TransactionStorageInterface,
)

__all__ = [
    # Clock
    "Clock",
    "FixedClock",
    "SystemClock",
    # Storage services
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "NotFoundError",
    "SQLiteAuditStorage",
    "SQLiteLedgerStore",
    "StorageError",
    "SubscriptionStorageInterface",
    "TransactionStorageInterface",
]
