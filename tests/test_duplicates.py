"""
Tests for duplicate detection.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from inout.matching import DuplicateDetector
from inout.models.transaction import (
    DuplicateCriteria,
    NormalizedRow,
    TransactionKind,
    TransactionRecord,
)


def existing_record(**overrides) -> TransactionRecord:
    fields = dict(
        title="Groceries run",
        amount=Decimal("50"),
        currency="USD",
        kind=TransactionKind.OUTCOME,
        category="Groceries",
        timestamp=datetime(2025, 8, 14, 9, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return TransactionRecord(**fields)


def candidate_row(**overrides) -> NormalizedRow:
    fields = dict(
        line_number=1,
        title="anything",
        amount=Decimal("50"),
        currency="USD",
        kind="Outcome",
        category=None,
        timestamp=datetime(2025, 8, 14, 18, 30, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return NormalizedRow(**fields)


@pytest.fixture
def detector():
    return DuplicateDetector(DuplicateCriteria(), timezone.utc)


class TestDefaultCriteria:
    """Tests for amount + same day + kind."""

    def test_all_three_match(self, detector):
        """Test that same amount, day and kind is a duplicate whatever the title."""
        assert detector.is_duplicate(candidate_row(), [existing_record()])

    def test_two_of_three_match(self, detector):
        """Test that a different amount on the same day and kind is still a duplicate."""
        assert detector.is_duplicate(candidate_row(amount=Decimal("51")), [existing_record()])

    def test_one_of_three_is_not_duplicate(self, detector):
        """Test that only matching kind is not enough."""
        row = candidate_row(
            amount=Decimal("51"),
            timestamp=datetime(2025, 8, 20, tzinfo=timezone.utc),
        )
        assert not detector.is_duplicate(row, [existing_record()])

    def test_matched_axes(self, detector):
        """Test the names of the matching axes are reported."""
        axes = detector.matched_axes(candidate_row(amount=Decimal("51")), existing_record())
        assert axes == ["timestamp", "kind"]

    def test_or_across_snapshot_not_cumulative(self, detector):
        """Test that partial matches on different records do not add up."""
        # Each record matches only one axis
        only_amount = existing_record(
            kind=TransactionKind.INCOME,
            timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        only_kind = existing_record(
            amount=Decimal("99"),
            timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        assert not detector.is_duplicate(candidate_row(), [only_amount, only_kind])

    def test_find_duplicate_returns_first_match(self, detector):
        """Test find_duplicate returns the matching record."""
        other = existing_record(amount=Decimal("7"), timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc))
        match = existing_record()
        assert detector.find_duplicate(candidate_row(), [other, match]) is match

    def test_empty_snapshot(self, detector):
        """Test nothing is a duplicate of an empty ledger."""
        assert detector.find_duplicate(candidate_row(), []) is None

    def test_absent_amount_never_matches(self, detector):
        """Test that two absent amounts do not count as equal."""
        axes = detector.matched_axes(candidate_row(amount=None), existing_record(amount=None))
        assert "amount" not in axes

    def test_decimal_equality_ignores_trailing_zeros(self, detector):
        """Test that 50 and 50.00 are the same amount."""
        axes = detector.matched_axes(candidate_row(amount=Decimal("50.00")), existing_record())
        assert "amount" in axes

    def test_foreign_kind_compares_as_outcome(self, detector):
        """Test that a foreign kind is compared after resolving to Outcome."""
        axes = detector.matched_axes(candidate_row(kind="Transfer"), existing_record())
        assert "kind" in axes


class TestTimestampAxis:
    """Tests for day and threshold comparison."""

    def test_same_day_depends_on_timezone(self):
        """Test that calendar days are taken in the configured zone."""
        tz = ZoneInfo("America/Los_Angeles")
        detector = DuplicateDetector(DuplicateCriteria(check_amount=False, check_kind=False), tz)
        # 2025-08-14 23:00 LA is 2025-08-15 06:00 UTC
        existing = existing_record(timestamp=datetime(2025, 8, 15, 6, 0, tzinfo=timezone.utc))
        row = candidate_row(timestamp=datetime(2025, 8, 14, 16, 0, tzinfo=timezone.utc))
        assert detector.matched_axes(row, existing) == ["timestamp"]

    def test_threshold_above_a_day_still_compares_days(self):
        """Test that a threshold over 86400 does not widen to a time window."""
        detector = DuplicateDetector(DuplicateCriteria(time_threshold=7 * 86400), timezone.utc)
        row = candidate_row(timestamp=datetime(2025, 8, 15, 0, 1, tzinfo=timezone.utc))
        assert "timestamp" not in detector.matched_axes(row, existing_record())

    def test_minute_threshold(self):
        """Test absolute difference within a sub-day threshold."""
        detector = DuplicateDetector(DuplicateCriteria(time_threshold=600), timezone.utc)
        base = existing_record().timestamp
        near = candidate_row(timestamp=base + timedelta(minutes=10))
        far = candidate_row(timestamp=base - timedelta(minutes=11))
        assert "timestamp" in detector.matched_axes(near, existing_record())
        assert "timestamp" not in detector.matched_axes(far, existing_record())


class TestOtherAxes:
    """Tests for title, category and currency axes."""

    def test_title_case_insensitive_trimmed(self):
        """Test titles match ignoring case and surrounding space."""
        detector = DuplicateDetector(DuplicateCriteria(check_title=True), timezone.utc)
        axes = detector.matched_axes(candidate_row(title="  GROCERIES run "), existing_record())
        assert "title" in axes

    def test_absent_titles_never_match(self):
        """Test that two missing titles do not match."""
        detector = DuplicateDetector(DuplicateCriteria(check_title=True), timezone.utc)
        axes = detector.matched_axes(candidate_row(title=None), existing_record(title=None))
        assert "title" not in axes

    def test_absent_categories_match(self):
        """Test that two missing categories count as equal."""
        detector = DuplicateDetector(DuplicateCriteria(check_category=True), timezone.utc)
        axes = detector.matched_axes(candidate_row(category=None), existing_record(category=None))
        assert "category" in axes

    def test_category_case_insensitive(self):
        """Test category comparison ignores case."""
        detector = DuplicateDetector(DuplicateCriteria(check_category=True), timezone.utc)
        axes = detector.matched_axes(candidate_row(category=" groceries"), existing_record())
        assert "category" in axes

    def test_currency_exact(self):
        """Test currency comparison is exact."""
        detector = DuplicateDetector(DuplicateCriteria(check_currency=True), timezone.utc)
        assert "currency" in detector.matched_axes(candidate_row(), existing_record())
        assert "currency" not in detector.matched_axes(
            candidate_row(currency="usd"), existing_record()
        )


class TestDecisionRule:
    """Tests for min(2, enabled) and the empty criteria."""

    def test_no_axes_enabled_is_never_duplicate(self):
        """Test that disabling every axis disables detection."""
        criteria = DuplicateCriteria(check_amount=False, check_timestamp=False, check_kind=False)
        detector = DuplicateDetector(criteria, timezone.utc)
        assert not detector.is_duplicate(candidate_row(), [existing_record()])

    def test_single_axis_needs_one_match(self):
        """Test that with one axis enabled one match is enough."""
        criteria = DuplicateCriteria(check_timestamp=False, check_kind=False)
        detector = DuplicateDetector(criteria, timezone.utc)
        assert detector.is_duplicate(candidate_row(), [existing_record()])
        assert not detector.is_duplicate(candidate_row(amount=Decimal("1")), [existing_record()])

    def test_many_axes_need_only_two(self):
        """Test that with six axes enabled two matches suffice."""
        criteria = DuplicateCriteria(
            check_title=True, check_category=True, check_currency=True,
        )
        detector = DuplicateDetector(criteria, timezone.utc)
        row = candidate_row(
            title="x",
            amount=Decimal("1"),
            currency="EUR",
            category="Other",
            timestamp=datetime(2020, 1, 1, tzinfo=timezone.utc),
        )
        # only kind matches
        assert not detector.is_duplicate(row, [existing_record()])
        # kind + currency
        assert detector.is_duplicate(row.model_copy(update={"currency": "USD"}), [existing_record()])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
