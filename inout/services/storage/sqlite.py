"""
SQLite Storage Implementation

DESIGN DECISION: SQLite is the persistent backend because:
1. A personal ledger is single-user and fits in one file
2. It gives us real transactions, so one import is one atomic commit
3. No server to run

One SQLiteLedgerStore owns one connection. Its three views (transactions,
categories, subscriptions) write through that connection, so everything a
batch stages lands in a single database transaction. Other connections
see the batch all at once or not at all.

Money is stored as TEXT to keep Decimal precision. Timestamps are stored
as ISO-8601 in UTC.
"""

import json
import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from inout.models.transaction import (
    Category,
    SubscriptionDefinition,
    TransactionKind,
    TransactionRecord,
)
from inout.models.audit import AuditEvent, AuditEventType, AuditSeverity
from inout.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
    SubscriptionStorageInterface,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


SCHEMA = """
    CREATE TABLE IF NOT EXISTS transactions (
        id              TEXT PRIMARY KEY,
        title           TEXT,
        amount          TEXT,
        currency        TEXT NOT NULL,
        kind            TEXT NOT NULL CHECK(kind IN ('Income','Outcome')),
        category        TEXT,
        notes           TEXT,
        timestamp       TEXT NOT NULL,
        subscription_id TEXT
    );

    CREATE TABLE IF NOT EXISTS categories (
        id    TEXT PRIMARY KEY,
        name  TEXT NOT NULL,
        kind  TEXT NOT NULL CHECK(kind IN ('Income','Outcome')),
        UNIQUE(name, kind)
    );

    CREATE TABLE IF NOT EXISTS subscriptions (
        id                  TEXT PRIMARY KEY,
        title               TEXT,
        amount              TEXT,
        currency            TEXT,
        category            TEXT,
        kind                TEXT,
        notes               TEXT,
        start_date          TEXT,
        cycle_unit          TEXT,
        cycle_count         INTEGER,
        end_date            TEXT,
        last_generated_date TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_transactions_timestamp ON transactions(timestamp);
"""

AUDIT_SCHEMA = """
    CREATE TABLE IF NOT EXISTS audit_log (
        event_id       TEXT PRIMARY KEY,
        timestamp      TEXT NOT NULL,
        event_type     TEXT NOT NULL,
        severity       TEXT NOT NULL,
        entity_type    TEXT,
        entity_id      TEXT,
        correlation_id TEXT,
        description    TEXT NOT NULL,
        details_json   TEXT,
        error_message  TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_audit_correlation ON audit_log(correlation_id);
"""


def _is_locked(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower()


def _to_text(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    return moment.astimezone(timezone.utc).isoformat()


def _from_text(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value not in (None, "") else None


class SQLiteLedgerStore:
    """
    Connection owner and unit of work for the ledger tables.
    """

    def __init__(
        self,
        db_path: str,
        busy_timeout: float = 5.0,
        commit_retry_attempts: int = 3,
    ):
        self.db_path = db_path
        self._busy_timeout = busy_timeout
        self._commit_retry_attempts = commit_retry_attempts
        self._conn: Optional[sqlite3.Connection] = None

        self.transactions = SQLiteTransactionStorage(self)
        self.categories = SQLiteCategoryStorage(self)
        self.subscriptions = SQLiteSubscriptionStorage(self)

    def get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                conn = sqlite3.connect(self.db_path, timeout=self._busy_timeout)
                conn.execute("PRAGMA journal_mode = WAL")
            except sqlite3.Error as e:
                raise ConnectionError(f"Failed to open database {self.db_path}: {e}")
            conn.row_factory = sqlite3.Row
            self._conn = conn
        return self._conn

    def initialize(self) -> None:
        """Create schema if missing."""
        conn = self.get_connection()
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to create schema: {e}")

    def commit(self) -> None:
        conn = self.get_connection()
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self._commit_retry_attempts),
                wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
                retry=retry_if_exception(_is_locked),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            "sqlite_commit_retry",
                            attempt=attempt.retry_state.attempt_number,
                        )
                    conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to commit: {e}")

    def rollback(self) -> None:
        if self._conn is not None:
            self._conn.rollback()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self.get_connection().execute(sql, params)
        except sqlite3.IntegrityError as e:
            raise DuplicateError(str(e))
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}")


class _SQLiteView:
    def __init__(self, store: SQLiteLedgerStore):
        self._store = store

    def commit(self) -> None:
        self._store.commit()

    def rollback(self) -> None:
        self._store.rollback()


class SQLiteTransactionStorage(_SQLiteView, TransactionStorageInterface):

    def _row_to_record(self, row: sqlite3.Row) -> TransactionRecord:
        return TransactionRecord(
            id=UUID(row["id"]),
            title=row["title"],
            amount=_decimal(row["amount"]),
            currency=row["currency"],
            kind=TransactionKind(row["kind"]),
            category=row["category"],
            notes=row["notes"],
            timestamp=_from_text(row["timestamp"]),
            subscription_id=UUID(row["subscription_id"]) if row["subscription_id"] else None,
        )

    def fetch_all(self) -> list[TransactionRecord]:
        rows = self._store.execute(
            "SELECT * FROM transactions ORDER BY timestamp"
        ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def create(self, record: TransactionRecord) -> TransactionRecord:
        self._store.execute(
            """
            INSERT INTO transactions
                (id, title, amount, currency, kind, category, notes, timestamp, subscription_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(record.id),
                record.title,
                str(record.amount) if record.amount is not None else None,
                record.currency,
                record.kind.value,
                record.category,
                record.notes,
                _to_text(record.timestamp),
                str(record.subscription_id) if record.subscription_id else None,
            ),
        )
        return record


class SQLiteCategoryStorage(_SQLiteView, CategoryStorageInterface):

    def fetch_all(self) -> list[Category]:
        rows = self._store.execute(
            "SELECT * FROM categories ORDER BY name"
        ).fetchall()
        return [
            Category(id=UUID(r["id"]), name=r["name"], kind=TransactionKind(r["kind"]))
            for r in rows
        ]

    def create(self, name: str, kind: TransactionKind) -> Category:
        category = Category(name=name, kind=kind)
        self._store.execute(
            "INSERT INTO categories(id, name, kind) VALUES (?, ?, ?)",
            (str(category.id), category.name, category.kind.value),
        )
        return category


class SQLiteSubscriptionStorage(_SQLiteView, SubscriptionStorageInterface):

    def _row_to_subscription(self, row: sqlite3.Row) -> SubscriptionDefinition:
        return SubscriptionDefinition(
            id=UUID(row["id"]),
            title=row["title"],
            amount=_decimal(row["amount"]),
            currency=row["currency"],
            category=row["category"],
            kind=TransactionKind(row["kind"]) if row["kind"] else None,
            notes=row["notes"],
            start_date=_from_text(row["start_date"]),
            cycle_unit=row["cycle_unit"],
            cycle_count=row["cycle_count"],
            end_date=_from_text(row["end_date"]),
            last_generated_date=_from_text(row["last_generated_date"]),
        )

    def fetch_all(self) -> list[SubscriptionDefinition]:
        rows = self._store.execute("SELECT * FROM subscriptions").fetchall()
        return [self._row_to_subscription(r) for r in rows]

    def save(self, subscription: SubscriptionDefinition) -> SubscriptionDefinition:
        self._store.execute(
            """
            INSERT OR REPLACE INTO subscriptions
                (id, title, amount, currency, category, kind, notes,
                 start_date, cycle_unit, cycle_count, end_date, last_generated_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(subscription.id),
                subscription.title,
                str(subscription.amount) if subscription.amount is not None else None,
                subscription.currency,
                subscription.category,
                subscription.kind.value if subscription.kind else None,
                subscription.notes,
                _to_text(subscription.start_date),
                subscription.cycle_unit.value if subscription.cycle_unit else None,
                subscription.cycle_count,
                _to_text(subscription.end_date),
                _to_text(subscription.last_generated_date),
            ),
        )
        return subscription

    def update_cursor(self, subscription_id: UUID, cursor: datetime) -> None:
        cur = self._store.execute(
            "UPDATE subscriptions SET last_generated_date = ? WHERE id = ?",
            (_to_text(cursor), str(subscription_id)),
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"Subscription not found: {subscription_id}")


class SQLiteAuditStorage(AuditStorageInterface):
    """
    SQLite implementation of audit log storage.

    Uses its own connection and commits every event immediately, so a
    rolled-back batch still leaves its failure on record.

    Point it at a different file than the ledger: the ledger connection
    holds the write lock for the length of a batch.
    """

    def __init__(self, db_path: str, busy_timeout: float = 5.0):
        self.db_path = db_path
        self._busy_timeout = busy_timeout
        self._conn: Optional[sqlite3.Connection] = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, timeout=self._busy_timeout)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(AUDIT_SCHEMA)
        return self._conn

    def _row_to_event(self, row: sqlite3.Row) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(row["event_id"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            event_type=AuditEventType(row["event_type"]),
            severity=AuditSeverity(row["severity"]),
            entity_type=row["entity_type"],
            entity_id=UUID(row["entity_id"]) if row["entity_id"] else None,
            correlation_id=UUID(row["correlation_id"]) if row["correlation_id"] else None,
            description=row["description"],
            details=json.loads(row["details_json"]) if row["details_json"] else {},
            error_message=row["error_message"],
        )

    def append_event(self, event: AuditEvent) -> bool:
        try:
            conn = self._connection()
            conn.execute(
                """
                INSERT INTO audit_log
                    (event_id, timestamp, event_type, severity, entity_type, entity_id,
                     correlation_id, description, details_json, error_message)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                event.to_row(),
            )
            conn.commit()
            return True
        except sqlite3.Error as e:
            # Audit logging should not break the main flow
            logger.warning("audit_event_write_failed", error=str(e))
            return False

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            rows = self._connection().execute(
                "SELECT * FROM audit_log WHERE correlation_id = ? ORDER BY timestamp",
                (str(correlation_id),),
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return [self._row_to_event(r) for r in rows]

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            rows = self._connection().execute(
                "SELECT * FROM audit_log ORDER BY timestamp DESC LIMIT ?",
                (limit,),
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return [self._row_to_event(r) for r in rows]

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
