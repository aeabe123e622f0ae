"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory backend and a SQLite backend; both are swappable.
"""

from inout.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
    SubscriptionStorageInterface,
    TransactionalStorage,
    TransactionStorageInterface,
)
from inout.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)
from inout.services.storage.sqlite import (
    SQLiteAuditStorage,
    SQLiteLedgerStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "SubscriptionStorageInterface",
    "TransactionalStorage",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    # SQLite implementation
    "SQLiteAuditStorage",
    "SQLiteLedgerStore",
]
