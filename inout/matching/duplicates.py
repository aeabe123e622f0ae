"""
Duplicate Detection

Decides whether an imported row already exists in the ledger.

Each enabled axis of the DuplicateCriteria is compared independently. A
candidate duplicates an existing record when it matches on at least
min(2, enabled) axes; it duplicates the ledger when it duplicates ANY
existing record. Matches are never summed across records.

Axes:
- amount: exact decimal equality (an absent amount matches nothing)
- timestamp: same calendar day when the threshold is a day or more,
  otherwise |difference| <= threshold
- title: case-insensitive, trimmed; both sides must be non-empty
- kind: Income/Outcome equality (foreign kinds count as Outcome)
- category: case-insensitive, trimmed; two empty categories match
- currency: exact equality
"""

from datetime import datetime, tzinfo
from typing import Iterable, Optional

from inout.models.transaction import (
    DuplicateCriteria,
    NormalizedRow,
    TransactionRecord,
)


def _folded(value: Optional[str]) -> str:
    return (value or "").strip().lower()


class DuplicateDetector:
    """Compares normalized rows against a snapshot of existing records."""

    def __init__(self, criteria: DuplicateCriteria, timezone: tzinfo):
        self._criteria = criteria
        self._timezone = timezone

    @property
    def criteria(self) -> DuplicateCriteria:
        return self._criteria

    def _same_moment(self, a: datetime, b: datetime) -> bool:
        if self._criteria.compares_by_day:
            return (
                a.astimezone(self._timezone).date()
                == b.astimezone(self._timezone).date()
            )
        return abs((a - b).total_seconds()) <= self._criteria.time_threshold

    def matched_axes(
        self,
        candidate: NormalizedRow,
        existing: TransactionRecord,
    ) -> list[str]:
        """Names of the enabled axes on which the two agree."""
        c = self._criteria
        matched = []

        if c.check_amount:
            if (
                candidate.amount is not None
                and existing.amount is not None
                and candidate.amount == existing.amount
            ):
                matched.append("amount")

        if c.check_timestamp and self._same_moment(candidate.timestamp, existing.timestamp):
            matched.append("timestamp")

        if c.check_title:
            left, right = _folded(candidate.title), _folded(existing.title)
            if left and right and left == right:
                matched.append("title")

        if c.check_kind and candidate.resolved_kind == existing.kind:
            matched.append("kind")

        if c.check_category and _folded(candidate.category) == _folded(existing.category):
            matched.append("category")

        if c.check_currency and candidate.currency == existing.currency:
            matched.append("currency")

        return matched

    def is_duplicate_of(
        self,
        candidate: NormalizedRow,
        existing: TransactionRecord,
    ) -> bool:
        required = self._criteria.enabled_count
        if required == 0:
            return False
        return len(self.matched_axes(candidate, existing)) >= min(2, required)

    def find_duplicate(
        self,
        candidate: NormalizedRow,
        snapshot: Iterable[TransactionRecord],
    ) -> Optional[TransactionRecord]:
        """First record in the snapshot the candidate duplicates, if any."""
        for existing in snapshot:
            if self.is_duplicate_of(candidate, existing):
                return existing
        return None

    def is_duplicate(
        self,
        candidate: NormalizedRow,
        snapshot: Iterable[TransactionRecord],
    ) -> bool:
        return self.find_duplicate(candidate, snapshot) is not None
