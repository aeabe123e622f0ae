"""
Audit Models for the In-Out Ledger Engine

Every batch operation (CSV import, CSV export, recurrence sweep) leaves an
audit trail. This provides:
1. Traceability of which rows were skipped or treated as duplicates
2. Debugging information when a commit fails
3. A history of categories and transactions created automatically

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from inout.models.transaction import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # CSV import
    IMPORT_STARTED = "import_started"
    IMPORT_COMPLETED = "import_completed"
    IMPORT_FAILED = "import_failed"
    ROW_SKIPPED = "row_skipped"
    DUPLICATE_DETECTED = "duplicate_detected"

    # Taxonomy
    CATEGORY_CREATED = "category_created"
    CATEGORY_RECONCILIATION_SKIPPED = "category_reconciliation_skipped"

    # CSV export
    EXPORT_COMPLETED = "export_completed"

    # Recurrence
    SUBSCRIPTION_SKIPPED = "subscription_skipped"
    TRANSACTIONS_GENERATED = "transactions_generated"
    RECURRENCE_SWEEP_COMPLETED = "recurrence_sweep_completed"
    RECURRENCE_SWEEP_FAILED = "recurrence_sweep_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'import', 'category', 'subscription')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one import)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_row(self) -> tuple:
        """
        Flatten for table storage.

        Columns: event_id, timestamp, event_type, severity, entity_type,
        entity_id, correlation_id, description, details_json, error_message
        """
        return (
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type,
            str(self.entity_id) if self.entity_id else None,
            str(self.correlation_id) if self.correlation_id else None,
            self.description,
            json.dumps(self.details, default=str) if self.details else None,
            self.error_message,
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.import_started(correlation_id, row_count)
        event = AuditEventBuilder.category_created(category_id, name, kind, correlation_id)
    """

    @staticmethod
    def import_started(
        correlation_id: UUID,
        row_count: int,
        header_detected: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_STARTED,
            entity_type="import",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=f"CSV import started with {row_count} data rows",
            details={
                "row_count": row_count,
                "header_detected": header_detected,
            },
        )

    @staticmethod
    def import_completed(
        correlation_id: UUID,
        imported: int,
        skipped: int,
        duplicates: int,
        categories_created: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            entity_type="import",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=(
                f"CSV import committed: {imported} imported, "
                f"{skipped} skipped, {duplicates} duplicates"
            ),
            details={
                "imported": imported,
                "skipped": skipped,
                "duplicates": duplicates,
                "categories_created": categories_created,
            },
        )

    @staticmethod
    def import_failed(
        correlation_id: UUID,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="import",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description="CSV import failed; no rows were saved",
            error_message=error_message,
        )

    @staticmethod
    def row_skipped(
        line_number: int,
        field_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROW_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=f"Row {line_number} skipped: {field_count} fields",
            details={
                "line_number": line_number,
                "field_count": field_count,
            },
        )

    @staticmethod
    def duplicate_detected(
        line_number: int,
        existing_id: UUID,
        matched_axes: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_DETECTED,
            entity_type="transaction",
            entity_id=existing_id,
            correlation_id=correlation_id,
            description=f"Row {line_number} matches an existing transaction",
            details={
                "line_number": line_number,
                "matched_axes": matched_axes,
            },
        )

    @staticmethod
    def category_created(
        category_id: UUID,
        name: str,
        kind: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"{kind} category created",
            details={
                "name": name,
                "kind": kind,
            },
        )

    @staticmethod
    def category_reconciliation_skipped(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_RECONCILIATION_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            correlation_id=correlation_id,
            description="Existing categories could not be read; no categories created",
            error_message=error_message,
        )

    @staticmethod
    def export_completed(
        record_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            entity_type="export",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=f"CSV export of {record_count} transactions",
            details={
                "record_count": record_count,
            },
        )

    @staticmethod
    def subscription_skipped(
        subscription_id: UUID,
        missing_fields: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="subscription",
            entity_id=subscription_id,
            correlation_id=correlation_id,
            description="Subscription skipped: missing required fields",
            details={
                "missing_fields": missing_fields,
            },
        )

    @staticmethod
    def transactions_generated(
        subscription_id: UUID,
        count: int,
        cursor: Optional[datetime],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_GENERATED,
            entity_type="subscription",
            entity_id=subscription_id,
            correlation_id=correlation_id,
            description=f"Generated {count} transactions from subscription",
            details={
                "count": count,
                "cursor": cursor.isoformat() if cursor else None,
            },
        )

    @staticmethod
    def recurrence_sweep_completed(
        correlation_id: UUID,
        generated: int,
        skipped: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRENCE_SWEEP_COMPLETED,
            entity_type="recurrence",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=f"Recurrence sweep committed {generated} transactions",
            details={
                "generated": generated,
                "skipped_subscriptions": skipped,
            },
        )

    @staticmethod
    def recurrence_sweep_failed(
        correlation_id: UUID,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRENCE_SWEEP_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="recurrence",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description="Recurrence sweep failed; no transactions were saved",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
