"""
Core Data Models for the In-Out Ledger Engine

These models define the schemas for everything flowing through the
ingestion and recurrence pipelines. They are designed to:
1. Keep money in Decimal, never float
2. Keep every timestamp timezone-aware
3. Be serializable for storage, CSV export and logging

DESIGN DECISION: Categories are referenced by name, not by foreign key.
A transaction stays valid even if its category is later renamed or removed.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of a transaction. Serialized exactly as these literals."""
    INCOME = "Income"
    OUTCOME = "Outcome"

    @classmethod
    def resolve(cls, value: Optional[str]) -> "TransactionKind":
        """
        Map a free-form kind to the enum.

        Absent or foreign values resolve to OUTCOME.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.OUTCOME
        text = str(value).strip()
        for member in cls:
            if member.value == text:
                return member
        return cls.OUTCOME


class CycleUnit(str, Enum):
    """Unit of a subscription cycle."""
    DAY = "Day"
    WEEK = "Week"
    MONTH = "Month"
    YEAR = "Year"

    @classmethod
    def _missing_(cls, value):
        # Stored units are not always capitalized ("month")
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class TransactionRecord(BaseModel):
    """
    A single financial event.

    Created by user input, CSV import, or the recurrence engine.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )
    title: Optional[str] = None
    amount: Optional[Decimal] = Field(
        default=None,
        allow_inf_nan=False,
        description="Amount in the record's currency"
    )
    currency: str = Field(
        ...,
        min_length=1,
        description="ISO 4217-like currency code"
    )
    kind: TransactionKind = TransactionKind.OUTCOME
    category: Optional[str] = Field(
        default=None,
        description="Category name (loosely coupled to Category)"
    )
    notes: Optional[str] = None
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the transaction happened"
    )
    subscription_id: Optional[UUID] = Field(
        default=None,
        description="Subscription that generated this record, if any"
    )

    @field_validator('timestamp')
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are taken to be UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class Category(BaseModel):
    """
    Taxonomy entry.

    Identity is the (name, kind) pair: "Bonus"/Income and "Bonus"/Outcome
    are two different categories.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1)
    kind: TransactionKind

    @property
    def key(self) -> tuple[str, TransactionKind]:
        return (self.name, self.kind)


class SubscriptionDefinition(BaseModel):
    """
    A recurring-charge template.

    Every field except the id may be missing in storage. Incomplete
    definitions are skipped by the recurrence engine instead of failing
    the whole sweep.

    CRITICAL: last_generated_date is owned by the recurrence engine.
    It only ever moves forward.
    """

    id: UUID = Field(default_factory=uuid4)

    # Copied verbatim into each generated record
    title: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, allow_inf_nan=False)
    currency: Optional[str] = None
    category: Optional[str] = None
    kind: Optional[TransactionKind] = None
    notes: Optional[str] = None

    # Schedule
    start_date: Optional[datetime] = None
    cycle_unit: Optional[CycleUnit] = None
    cycle_count: Optional[int] = Field(
        default=None,
        description="Cycle length in units, e.g. 3 for every 3 months"
    )
    end_date: Optional[datetime] = Field(
        default=None,
        description="No renewal strictly after this instant"
    )

    # Cursor
    last_generated_date: Optional[datetime] = None

    @field_validator('cycle_unit', mode='before')
    @classmethod
    def parse_cycle_unit(cls, v):
        if isinstance(v, str) and not isinstance(v, CycleUnit):
            return CycleUnit(v)
        return v

    @field_validator('start_date', 'end_date', 'last_generated_date')
    @classmethod
    def ensure_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def missing_required_fields(self) -> list[str]:
        """Names of required fields that are absent or unusable."""
        missing = []
        if self.start_date is None:
            missing.append("start_date")
        if self.cycle_unit is None:
            missing.append("cycle_unit")
        if self.cycle_count is None or self.cycle_count < 1:
            missing.append("cycle_count")
        if not self.title:
            missing.append("title")
        if self.amount is None:
            missing.append("amount")
        if self.kind is None:
            missing.append("kind")
        if not self.category:
            missing.append("category")
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_required_fields()


# =============================================================================
# IMPORT MODELS
# =============================================================================

class DuplicateCriteria(BaseModel):
    """
    Which axes are compared when deciding an imported row already exists.

    A row is a duplicate of an existing record when it matches on at least
    min(2, enabled axes) of the enabled axes.
    """
    model_config = ConfigDict(frozen=True)

    check_amount: bool = True
    check_timestamp: bool = True
    check_title: bool = False
    check_kind: bool = True
    check_category: bool = False
    check_currency: bool = False
    time_threshold: float = Field(
        default=86400.0,
        ge=0.0,
        description="Seconds; 86400 or more compares by calendar day"
    )

    @property
    def enabled_count(self) -> int:
        return sum([
            self.check_amount,
            self.check_timestamp,
            self.check_title,
            self.check_kind,
            self.check_category,
            self.check_currency,
        ])

    @property
    def compares_by_day(self) -> bool:
        return self.time_threshold >= 86400


class NormalizedRow(BaseModel):
    """
    One CSV data row after normalization.

    kind keeps the normalized text: "Income", "Outcome", or a foreign value
    passed through unchanged. Use resolved_kind where a strict enum is needed.
    """

    line_number: int = Field(..., ge=1, description="1-based row position in the file")
    title: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, allow_inf_nan=False)
    currency: str = Field(..., min_length=1)
    kind: str = TransactionKind.OUTCOME.value
    category: Optional[str] = None
    notes: Optional[str] = None
    timestamp: datetime

    @property
    def resolved_kind(self) -> TransactionKind:
        return TransactionKind.resolve(self.kind)

    def to_record(self) -> TransactionRecord:
        return TransactionRecord(
            title=self.title,
            amount=self.amount,
            currency=self.currency,
            kind=self.resolved_kind,
            category=self.category,
            notes=self.notes,
            timestamp=self.timestamp,
        )


class ImportResult(BaseModel):
    """Counts reported by one CSV import."""

    imported: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    duplicates: int = Field(default=0, ge=0)
    categories_created: int = Field(default=0, ge=0)

    @property
    def total_rows(self) -> int:
        """Every data row lands in exactly one of the three buckets."""
        return self.imported + self.skipped + self.duplicates


# =============================================================================
# RECURRENCE MODELS
# =============================================================================

class GenerationResult(BaseModel):
    """Output of expanding one subscription up to a point in time."""

    records: list[TransactionRecord] = Field(default_factory=list)
    cursor: Optional[datetime] = Field(
        default=None,
        description="New last_generated_date (unchanged if nothing was due)"
    )
    terminated: bool = Field(
        default=False,
        description="The next occurrence falls after end_date; nothing more will ever be due"
    )


class SweepResult(BaseModel):
    """Output of one recurrence sweep over all subscriptions."""

    generated: int = Field(default=0, ge=0)
    skipped_subscriptions: list[UUID] = Field(default_factory=list)
    per_subscription: dict[UUID, int] = Field(default_factory=dict)
