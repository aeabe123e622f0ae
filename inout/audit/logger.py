"""
Audit Logger

DESIGN DECISION: Every batch operation is logged.
This provides:
1. Traceability of what an import created, skipped or rejected
2. Debugging capability when a commit fails
3. A history of automatically generated transactions

The audit logger:
- Gracefully handles failures (doesn't break an import if logging fails)
- Supports correlation IDs to trace the events of one batch
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog

from inout.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from inout.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("inout.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_import_started(
        self,
        correlation_id: UUID,
        row_count: int,
        header_detected: bool,
    ) -> None:
        self.log(AuditEventBuilder.import_started(
            correlation_id=correlation_id,
            row_count=row_count,
            header_detected=header_detected,
        ))

    def log_import_completed(
        self,
        correlation_id: UUID,
        imported: int,
        skipped: int,
        duplicates: int,
        categories_created: int,
    ) -> None:
        self.log(AuditEventBuilder.import_completed(
            correlation_id=correlation_id,
            imported=imported,
            skipped=skipped,
            duplicates=duplicates,
            categories_created=categories_created,
        ))

    def log_import_failed(
        self,
        correlation_id: UUID,
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.import_failed(
            correlation_id=correlation_id,
            error_message=error_message,
        ))

    def log_row_skipped(
        self,
        line_number: int,
        field_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.row_skipped(
            line_number=line_number,
            field_count=field_count,
            correlation_id=correlation_id,
        ))

    def log_duplicate_detected(
        self,
        line_number: int,
        existing_id: UUID,
        matched_axes: list[str],
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.duplicate_detected(
            line_number=line_number,
            existing_id=existing_id,
            matched_axes=matched_axes,
            correlation_id=correlation_id,
        ))

    def log_category_created(
        self,
        category_id: UUID,
        name: str,
        kind: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.category_created(
            category_id=category_id,
            name=name,
            kind=kind,
            correlation_id=correlation_id,
        ))

    def log_category_reconciliation_skipped(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.category_reconciliation_skipped(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_export_completed(
        self,
        record_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.export_completed(
            record_count=record_count,
            correlation_id=correlation_id,
        ))

    def log_subscription_skipped(
        self,
        subscription_id: UUID,
        missing_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.subscription_skipped(
            subscription_id=subscription_id,
            missing_fields=missing_fields,
            correlation_id=correlation_id,
        ))

    def log_transactions_generated(
        self,
        subscription_id: UUID,
        count: int,
        cursor: Optional[datetime],
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transactions_generated(
            subscription_id=subscription_id,
            count=count,
            cursor=cursor,
            correlation_id=correlation_id,
        ))

    def log_recurrence_sweep_completed(
        self,
        correlation_id: UUID,
        generated: int,
        skipped: int,
    ) -> None:
        self.log(AuditEventBuilder.recurrence_sweep_completed(
            correlation_id=correlation_id,
            generated=generated,
            skipped=skipped,
        ))

    def log_recurrence_sweep_failed(
        self,
        correlation_id: UUID,
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.recurrence_sweep_failed(
            correlation_id=correlation_id,
            error_message=error_message,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a batch (an import, a sweep) and pass it
    through all subsequent operations.
    """
    return uuid4()
