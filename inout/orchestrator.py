"""
Main Orchestrator for the In-Out Ledger Engine

This module ties together all the components and defines the
end-to-end flows for:
1. CSV Import (text → parse → normalize → reconcile categories → dedupe → commit)
2. CSV Export (records → text)
3. Recurrence Sweep (subscriptions → due transactions → advance cursors → commit)

DESIGN DECISION: The orchestrator enforces the boundaries:
- One batch is one commit; a failed commit leaves nothing behind
- Non-fatal problems (short rows, duplicates, unreadable taxonomy,
  incomplete subscriptions) are counted and audited, never raised
- Every batch is audited under one correlation ID

Stores are passed in explicitly. Nothing here reaches for a global
persistence context.
"""

from datetime import datetime, timezone as dt_timezone, tzinfo
from pathlib import Path
from typing import Callable, Iterable, Optional, Union
from uuid import UUID

import structlog

from inout.audit import AuditLogger, configure_logging, create_correlation_id
from inout.codec.csv_codec import export_records, parse_csv
from inout.codec.normalizer import MalformedRowError, RowNormalizer
from inout.config import Settings, default_currency_code, get_settings
from inout.matching import DuplicateDetector
from inout.models.transaction import (
    DuplicateCriteria,
    ImportResult,
    NormalizedRow,
    SweepResult,
    TransactionRecord,
)
from inout.reconciliation import CategoryReconciler
from inout.recurrence import MissingFieldsError, generate_due
from inout.services.clock import Clock, SystemClock
from inout.services.storage import (
    CategoryStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    SQLiteAuditStorage,
    SQLiteLedgerStore,
    StorageError,
    SubscriptionStorageInterface,
    TransactionalStorage,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


def _rollback_all(stores: Iterable[TransactionalStorage]) -> None:
    for store in stores:
        try:
            store.rollback()
        except StorageError as e:
            logger.error("rollback_failed", error=str(e))


class ImportExportFlow:
    """
    Orchestrates CSV import and export.

    Import flow:
    1. Parse → rows; a short row is counted as skipped
    2. Normalize → typed rows with defaults applied
    3. Reconcile → stage missing categories (before duplicate filtering)
    4. Snapshot → existing records, read once
    5. Dedupe → duplicates counted, everything else staged
    6. Commit → all or nothing

    Guarantee: imported + skipped + duplicates == data rows.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        category_storage: CategoryStorageInterface,
        clock: Optional[Clock] = None,
        default_currency: Optional[Callable[[], str]] = None,
        timezone: Optional[tzinfo] = None,
        default_criteria: Optional[DuplicateCriteria] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Args:
            transaction_storage: Where imported records are staged and committed
            category_storage: Taxonomy to reconcile against
            clock: Source of "now" for rows without a usable timestamp
            default_currency: Provider for rows without a currency
            timezone: Calendar for offset-less timestamps and same-day matching
            default_criteria: Duplicate criteria when import_csv gets none
            audit_logger: Optional audit trail
        """
        self._transactions = transaction_storage
        self._categories = category_storage
        self._clock = clock or SystemClock()
        self._default_currency = default_currency or default_currency_code
        self._timezone = timezone or get_settings().ledger.tzinfo
        self._default_criteria = default_criteria or get_settings().duplicates.to_criteria()
        self._audit_logger = audit_logger

        self._normalizer = RowNormalizer(
            default_currency=self._default_currency,
            clock=self._clock,
            timezone=self._timezone,
        )
        self._reconciler = CategoryReconciler(category_storage, audit_logger)

    def import_csv(
        self,
        text: str,
        criteria: Optional[DuplicateCriteria] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        """
        Import CSV text as one atomic batch.

        Returns:
            Counts of imported, skipped and duplicate rows, and of
            categories created

        Raises:
            StorageError: If the batch could not be committed. Nothing from
                the batch is persisted and no counts are reported.

        Any other exception also rolls the batch back before it propagates.
        """
        correlation_id = correlation_id or create_correlation_id()
        detector = DuplicateDetector(criteria or self._default_criteria, self._timezone)

        parsed = parse_csv(text)
        if self._audit_logger:
            self._audit_logger.log_import_started(
                correlation_id=correlation_id,
                row_count=len(parsed.rows),
                header_detected=parsed.header_detected,
            )

        rows: list[NormalizedRow] = []
        skipped = 0
        for line_number, fields in enumerate(parsed.rows, start=1):
            try:
                rows.append(self._normalizer.normalize(fields, line_number))
            except MalformedRowError as e:
                skipped += 1
                logger.info(
                    "row_skipped",
                    line_number=e.line_number,
                    field_count=e.field_count,
                )
                if self._audit_logger:
                    self._audit_logger.log_row_skipped(
                        line_number=e.line_number,
                        field_count=e.field_count,
                        correlation_id=correlation_id,
                    )

        imported = 0
        duplicates = 0
        try:
            created = self._reconciler.reconcile(rows, correlation_id)

            snapshot = self._transactions.fetch_all()
            for row in rows:
                existing = detector.find_duplicate(row, snapshot)
                if existing is not None:
                    duplicates += 1
                    if self._audit_logger:
                        self._audit_logger.log_duplicate_detected(
                            line_number=row.line_number,
                            existing_id=existing.id,
                            matched_axes=detector.matched_axes(row, existing),
                            correlation_id=correlation_id,
                        )
                    continue
                self._transactions.create(row.to_record())
                imported += 1

            self._categories.commit()
            self._transactions.commit()

        except StorageError as e:
            _rollback_all([self._categories, self._transactions])
            logger.error(
                "import_failed",
                error=str(e),
                correlation_id=str(correlation_id),
            )
            if self._audit_logger:
                self._audit_logger.log_import_failed(
                    correlation_id=correlation_id,
                    error_message=str(e),
                )
            raise

        except Exception as e:
            _rollback_all([self._categories, self._transactions])
            logger.error(
                "import_crashed",
                error_type=type(e).__name__,
                error=str(e),
                correlation_id=str(correlation_id),
            )
            if self._audit_logger:
                self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"stage": "import"},
                    correlation_id=correlation_id,
                )
            raise

        result = ImportResult(
            imported=imported,
            skipped=skipped,
            duplicates=duplicates,
            categories_created=len(created),
        )

        if self._audit_logger:
            self._audit_logger.log_import_completed(
                correlation_id=correlation_id,
                imported=result.imported,
                skipped=result.skipped,
                duplicates=result.duplicates,
                categories_created=result.categories_created,
            )

        return result

    def export_csv(
        self,
        records: Optional[Iterable[TransactionRecord]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Export records as CSV text.

        With no records given, exports every committed record in the store.
        Never writes to the store.
        """
        if records is None:
            records = self._transactions.fetch_all()
        records = list(records)

        text = export_records(records)

        if self._audit_logger:
            self._audit_logger.log_export_completed(
                record_count=len(records),
                correlation_id=correlation_id or create_correlation_id(),
            )

        return text

    def import_file(
        self,
        path: Union[str, Path],
        criteria: Optional[DuplicateCriteria] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        # newline="" keeps line breaks inside quoted fields as written
        with open(path, encoding="utf-8", newline="") as f:
            text = f.read()
        return self.import_csv(text, criteria=criteria, correlation_id=correlation_id)

    def export_file(
        self,
        path: Union[str, Path],
        records: Optional[Iterable[TransactionRecord]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """Write the export to a UTF-8 file. Returns the number of characters written."""
        text = self.export_csv(records, correlation_id=correlation_id)
        with open(path, "w", encoding="utf-8", newline="") as f:
            return f.write(text)


class RecurrenceFlow:
    """
    Orchestrates the recurrence sweep.

    Flow:
    1. Fetch every subscription
    2. Skip the incomplete ones (counted and audited)
    3. Stage the due transactions and the advanced cursor of each
    4. Commit once

    Safe to run on every start: a second sweep at the same instant
    generates nothing.
    """

    def __init__(
        self,
        subscription_storage: SubscriptionStorageInterface,
        transaction_storage: TransactionStorageInterface,
        clock: Optional[Clock] = None,
        default_currency: Optional[Callable[[], str]] = None,
        timezone: Optional[tzinfo] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._subscriptions = subscription_storage
        self._transactions = transaction_storage
        self._clock = clock or SystemClock()
        self._default_currency = default_currency or default_currency_code
        self._timezone = timezone or get_settings().ledger.tzinfo
        self._audit_logger = audit_logger

    def generate_transactions(
        self,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SweepResult:
        """
        Materialize every due occurrence of every subscription.

        Args:
            now: Cut-off instant; defaults to the injected clock

        Raises:
            StorageError: If the sweep could not be read or committed.
                Nothing from the sweep is persisted.
        """
        correlation_id = correlation_id or create_correlation_id()
        now = now or self._clock.now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=dt_timezone.utc)
        result = SweepResult()

        try:
            subscriptions = self._subscriptions.fetch_all()
            currency = self._default_currency()

            for subscription in subscriptions:
                try:
                    generation = generate_due(subscription, now, currency, self._timezone)
                except MissingFieldsError as e:
                    result.skipped_subscriptions.append(subscription.id)
                    logger.info(
                        "subscription_skipped",
                        subscription_id=str(subscription.id),
                        missing=e.missing,
                    )
                    if self._audit_logger:
                        self._audit_logger.log_subscription_skipped(
                            subscription_id=subscription.id,
                            missing_fields=e.missing,
                            correlation_id=correlation_id,
                        )
                    continue

                if not generation.records:
                    continue

                for record in generation.records:
                    self._transactions.create(record)
                self._subscriptions.update_cursor(subscription.id, generation.cursor)

                result.generated += len(generation.records)
                result.per_subscription[subscription.id] = len(generation.records)
                if self._audit_logger:
                    self._audit_logger.log_transactions_generated(
                        subscription_id=subscription.id,
                        count=len(generation.records),
                        cursor=generation.cursor,
                        correlation_id=correlation_id,
                    )

            self._transactions.commit()
            self._subscriptions.commit()

        except StorageError as e:
            _rollback_all([self._transactions, self._subscriptions])
            logger.error(
                "recurrence_sweep_failed",
                error=str(e),
                correlation_id=str(correlation_id),
            )
            if self._audit_logger:
                self._audit_logger.log_recurrence_sweep_failed(
                    correlation_id=correlation_id,
                    error_message=str(e),
                )
            raise

        except Exception as e:
            _rollback_all([self._transactions, self._subscriptions])
            logger.error(
                "recurrence_sweep_crashed",
                error_type=type(e).__name__,
                error=str(e),
                correlation_id=str(correlation_id),
            )
            if self._audit_logger:
                self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"stage": "recurrence_sweep"},
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            self._audit_logger.log_recurrence_sweep_completed(
                correlation_id=correlation_id,
                generated=result.generated,
                skipped=len(result.skipped_subscriptions),
            )

        return result


def create_app_components(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
) -> tuple[ImportExportFlow, RecurrenceFlow, Union[InMemoryLedgerStore, SQLiteLedgerStore]]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to wire from; defaults to get_settings()
        clock: Clock shared by both flows; defaults to the system clock

    Returns:
        (import_export_flow, recurrence_flow, ledger_store)

    If the SQLite backend cannot be opened, falls back to in-memory storage.
    """
    settings = settings or get_settings()
    ledger = settings.ledger
    storage = settings.storage

    configure_logging(ledger.log_level)

    store: Union[InMemoryLedgerStore, SQLiteLedgerStore]
    if storage.backend == "sqlite":
        try:
            store = SQLiteLedgerStore(
                storage.sqlite_path,
                busy_timeout=storage.busy_timeout_seconds,
                commit_retry_attempts=storage.commit_retry_attempts,
            )
            store.initialize()
            audit_logger = AuditLogger(
                SQLiteAuditStorage(
                    storage.audit_sqlite_path,
                    busy_timeout=storage.busy_timeout_seconds,
                )
            )
        except StorageError as e:
            # Storage not usable - continue in memory
            logger.warning("sqlite_unavailable", path=storage.sqlite_path, error=str(e))
            store = InMemoryLedgerStore()
            audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        store = InMemoryLedgerStore()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    clock = clock or SystemClock()

    def default_currency() -> str:
        return ledger.default_currency

    import_export_flow = ImportExportFlow(
        transaction_storage=store.transactions,
        category_storage=store.categories,
        clock=clock,
        default_currency=default_currency,
        timezone=ledger.tzinfo,
        default_criteria=settings.duplicates.to_criteria(),
        audit_logger=audit_logger,
    )

    recurrence_flow = RecurrenceFlow(
        subscription_storage=store.subscriptions,
        transaction_storage=store.transactions,
        clock=clock,
        default_currency=default_currency,
        timezone=ledger.tzinfo,
        audit_logger=audit_logger,
    )

    return import_export_flow, recurrence_flow, store
