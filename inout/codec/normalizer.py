"""
Row Normalization

Turns the raw string fields of one CSV row into typed, defaulted values.

DESIGN DECISION: Normalization degrades, it never rejects.
- An amount that is not a finite decimal becomes absent
- A timestamp no format understands becomes "now"
- A missing currency becomes the configured default
- A foreign type is passed through and resolved to Outcome downstream

The only hard failure is a row too short to hold every column.
"""

from datetime import datetime, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Sequence

from inout.codec.csv_codec import COLUMNS
from inout.models.transaction import NormalizedRow, TransactionKind
from inout.services.clock import Clock


# Tried in order; first successful parse wins.
# strptime does not depend on the user's locale for these directives.
TIMESTAMP_FORMATS: list[str] = [
    "%Y-%m-%dT%H:%M:%S.%f%z",   # 2024-12-31T23:59:59.000Z
    "%Y-%m-%dT%H:%M:%S%z",      # 2024-12-31T23:59:59+02:00
    "%Y-%m-%d %H:%M:%S%z",      # 2024-12-31 23:59:59+0200
    "%Y-%m-%d",                 # 2024-12-31
]


class MalformedRowError(ValueError):
    """A row has fewer fields than there are columns."""

    def __init__(self, line_number: int, field_count: int):
        self.line_number = line_number
        self.field_count = field_count
        super().__init__(
            f"Row {line_number} has {field_count} fields, expected {len(COLUMNS)}"
        )


def empty_to_none(value: Optional[str]) -> Optional[str]:
    """Trim the ends; whitespace-only becomes None."""
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def parse_amount(text: Optional[str]) -> Optional[Decimal]:
    value = empty_to_none(text)
    if value is None:
        return None
    try:
        amount = Decimal(value)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def normalize_kind(text: Optional[str]) -> Optional[str]:
    """
    Normalize a free-form transaction type.

    "in..." -> Income, "out..." -> Outcome (case-insensitive); anything
    else is returned trimmed and unchanged. None when absent.
    """
    value = empty_to_none(text)
    if value is None:
        return None
    lowered = value.lower()
    if lowered.startswith("in"):
        return TransactionKind.INCOME.value
    if lowered.startswith("out"):
        return TransactionKind.OUTCOME.value
    return value


def parse_timestamp(text: Optional[str], timezone: tzinfo) -> Optional[datetime]:
    """
    Parse a timestamp with the first matching entry of TIMESTAMP_FORMATS.

    Values without an offset are taken to be in the given timezone.
    Returns None if nothing matches.
    """
    value = empty_to_none(text)
    if value is None:
        return None
    for fmt in TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone)
        return parsed
    return None


class RowNormalizer:
    """
    Normalizes raw CSV field lists into NormalizedRows.

    Collaborators are injected so that defaults are deterministic under test.
    """

    def __init__(
        self,
        default_currency: Callable[[], str],
        clock: Clock,
        timezone: tzinfo,
    ):
        """
        Args:
            default_currency: Provider consulted when a row has no currency
            clock: Source of "now" for unparseable timestamps
            timezone: Zone for timestamps written without an offset
        """
        self._default_currency = default_currency
        self._clock = clock
        self._timezone = timezone

    def normalize(self, fields: Sequence[str], line_number: int = 1) -> NormalizedRow:
        """
        Normalize one row.

        Fields beyond the known columns are ignored.

        Raises:
            MalformedRowError: If the row has fewer fields than columns
        """
        if len(fields) < len(COLUMNS):
            raise MalformedRowError(line_number, len(fields))

        title, amount, currency, kind, category, notes, timestamp = fields[:len(COLUMNS)]

        return NormalizedRow(
            line_number=line_number,
            title=empty_to_none(title),
            amount=parse_amount(amount),
            currency=empty_to_none(currency) or self._default_currency(),
            kind=normalize_kind(kind) or TransactionKind.OUTCOME.value,
            category=empty_to_none(category),
            notes=empty_to_none(notes),
            timestamp=parse_timestamp(timestamp, self._timezone) or self._clock.now(),
        )
