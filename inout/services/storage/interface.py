"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Pass explicit store handles into every batch (no global context)
2. Use in-memory storage for testing
3. Swap the SQLite backend for something else later
4. Keep ingestion and recurrence logic decoupled from persistence

Writes are staged: create/save/update_cursor are only visible to other
readers after commit(). rollback() discards everything staged since the
last commit. One import or one recurrence sweep is one commit.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from inout.models.transaction import (
    Category,
    SubscriptionDefinition,
    TransactionKind,
    TransactionRecord,
)
from inout.models.audit import AuditEvent


class TransactionalStorage(ABC):
    """A store whose writes are published atomically."""

    @abstractmethod
    def commit(self) -> None:
        """
        Publish all staged writes at once.

        Raises:
            StorageError: If the commit fails. Nothing staged is published.
        """
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Discard all staged writes."""
        pass


class TransactionStorageInterface(TransactionalStorage):
    """
    Abstract interface for transaction record storage.
    """

    @abstractmethod
    def fetch_all(self) -> list[TransactionRecord]:
        """
        Return every committed transaction record.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def create(self, record: TransactionRecord) -> TransactionRecord:
        """
        Stage a new transaction record.

        Returns:
            The staged record
        """
        pass


class CategoryStorageInterface(TransactionalStorage):
    """
    Abstract interface for the category taxonomy.

    Categories are unique per (name, kind).
    """

    @abstractmethod
    def fetch_all(self) -> list[Category]:
        """
        Return every category.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def create(self, name: str, kind: TransactionKind) -> Category:
        """
        Stage a new category.

        Raises:
            DuplicateError: If (name, kind) already exists
        """
        pass


class SubscriptionStorageInterface(TransactionalStorage):
    """
    Abstract interface for subscription definitions.
    """

    @abstractmethod
    def fetch_all(self) -> list[SubscriptionDefinition]:
        """Return every subscription definition."""
        pass

    @abstractmethod
    def save(self, subscription: SubscriptionDefinition) -> SubscriptionDefinition:
        """Stage an insert or full replacement of a subscription."""
        pass

    @abstractmethod
    def update_cursor(self, subscription_id: UUID, cursor: datetime) -> None:
        """
        Stage a new last_generated_date for a subscription.

        Raises:
            NotFoundError: If the subscription doesn't exist
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one import).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
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


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
