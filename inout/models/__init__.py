"""
Data Models Package

This package contains all Pydantic models used by the ledger engine.
All data flowing through the system must conform to these schemas.
"""

from inout.models.transaction import (
    Category,
    CycleUnit,
    DuplicateCriteria,
    GenerationResult,
    ImportResult,
    NormalizedRow,
    SubscriptionDefinition,
    SweepResult,
    TransactionKind,
    TransactionRecord,
)
from inout.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Category",
    "CycleUnit",
    "DuplicateCriteria",
    "GenerationResult",
    "ImportResult",
    "NormalizedRow",
    "SubscriptionDefinition",
    "SweepResult",
    "TransactionKind",
    "TransactionRecord",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
