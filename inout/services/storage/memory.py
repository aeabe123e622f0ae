"""
In-Memory Storage Implementation

One InMemoryLedgerStore is one unit of work shared by three views:
transactions, categories and subscriptions. A commit on any view
publishes everything staged on all three at once, which is what lets a
CSV import create categories and transactions atomically.

Used by the tests and as the default backend when nothing persistent
is configured.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog

from inout.models.transaction import (
    Category,
    SubscriptionDefinition,
    TransactionKind,
    TransactionRecord,
)
from inout.models.audit import AuditEvent
from inout.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    NotFoundError,
    SubscriptionStorageInterface,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


class InMemoryLedgerStore:
    """
    Committed state plus a staging area.

    Readers (fetch_all) only ever see committed state, so a half-done
    batch is never observable.
    """

    def __init__(self):
        self._records: dict[UUID, TransactionRecord] = {}
        self._categories: dict[UUID, Category] = {}
        self._subscriptions: dict[UUID, SubscriptionDefinition] = {}

        self._staged_records: list[TransactionRecord] = []
        self._staged_categories: list[Category] = []
        self._staged_subscriptions: dict[UUID, SubscriptionDefinition] = {}

        self.transactions = InMemoryTransactionStorage(self)
        self.categories = InMemoryCategoryStorage(self)
        self.subscriptions = InMemorySubscriptionStorage(self)

    @property
    def has_pending_changes(self) -> bool:
        return bool(
            self._staged_records
            or self._staged_categories
            or self._staged_subscriptions
        )

    def commit(self) -> None:
        if not self.has_pending_changes:
            return
        self._publish()
        logger.debug("memory_store_committed")

    def _publish(self) -> None:
        for record in self._staged_records:
            self._records[record.id] = record
        for category in self._staged_categories:
            self._categories[category.id] = category
        self._subscriptions.update(self._staged_subscriptions)
        self._clear_staging()

    def rollback(self) -> None:
        self._clear_staging()

    def _clear_staging(self) -> None:
        self._staged_records = []
        self._staged_categories = []
        self._staged_subscriptions = {}


class _InMemoryView:
    def __init__(self, store: InMemoryLedgerStore):
        self._store = store

    def commit(self) -> None:
        self._store.commit()

    def rollback(self) -> None:
        self._store.rollback()


class InMemoryTransactionStorage(_InMemoryView, TransactionStorageInterface):

    def fetch_all(self) -> list[TransactionRecord]:
        records = list(self._store._records.values())
        records.sort(key=lambda r: r.timestamp)
        return records

    def create(self, record: TransactionRecord) -> TransactionRecord:
        self._store._staged_records.append(record)
        return record


class InMemoryCategoryStorage(_InMemoryView, CategoryStorageInterface):

    def fetch_all(self) -> list[Category]:
        return list(self._store._categories.values())

    def create(self, name: str, kind: TransactionKind) -> Category:
        category = Category(name=name, kind=kind)
        known = list(self._store._categories.values()) + self._store._staged_categories
        if any(c.key == category.key for c in known):
            raise DuplicateError(f"Category already exists: {category.name} ({kind.value})")
        self._store._staged_categories.append(category)
        return category


class InMemorySubscriptionStorage(_InMemoryView, SubscriptionStorageInterface):

    def fetch_all(self) -> list[SubscriptionDefinition]:
        return [s.model_copy() for s in self._store._subscriptions.values()]

    def save(self, subscription: SubscriptionDefinition) -> SubscriptionDefinition:
        self._store._staged_subscriptions[subscription.id] = subscription.model_copy()
        return subscription

    def update_cursor(self, subscription_id: UUID, cursor: datetime) -> None:
        current = self._store._staged_subscriptions.get(
            subscription_id,
            self._store._subscriptions.get(subscription_id),
        )
        if current is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        self._store._staged_subscriptions[subscription_id] = current.model_copy(
            update={"last_generated_date": cursor}
        )

    def get(self, subscription_id: UUID) -> Optional[SubscriptionDefinition]:
        found = self._store._subscriptions.get(subscription_id)
        return found.model_copy() if found else None


class InMemoryAuditStorage(AuditStorageInterface):
    """
    In-memory audit log.

    Audit events are append-only.
    """

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
