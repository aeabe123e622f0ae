"""
Tests for row normalization.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from inout.codec.normalizer import (
    TIMESTAMP_FORMATS,
    MalformedRowError,
    RowNormalizer,
    empty_to_none,
    normalize_kind,
    parse_amount,
    parse_timestamp,
)
from inout.models.transaction import TransactionKind
from inout.services.clock import FixedClock


NOW = datetime(2025, 8, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def normalizer():
    return RowNormalizer(
        default_currency=lambda: "EUR",
        clock=FixedClock(NOW),
        timezone=timezone.utc,
    )


class TestFieldParsers:
    """Tests for the individual field parsers."""

    def test_empty_to_none(self):
        """Test whitespace-only becomes None and ends are trimmed."""
        assert empty_to_none("   ") is None
        assert empty_to_none("") is None
        assert empty_to_none("  a  b  ") == "a  b"

    def test_parse_amount_valid(self):
        """Test decimal amounts parse exactly."""
        assert parse_amount("12.50") == Decimal("12.50")
        assert parse_amount(" -3 ") == Decimal("-3")

    def test_parse_amount_invalid_is_absent(self):
        """Test that unparseable amounts become None."""
        assert parse_amount("twelve") is None
        assert parse_amount("1,234") is None
        assert parse_amount("") is None

    def test_parse_amount_non_finite_is_absent(self):
        """Test that NaN and infinity become None."""
        assert parse_amount("NaN") is None
        assert parse_amount("Infinity") is None

    def test_normalize_kind_prefixes(self):
        """Test the in/out prefix rules are case-insensitive."""
        assert normalize_kind("income") == "Income"
        assert normalize_kind("IN") == "Income"
        assert normalize_kind("Outgoing") == "Outcome"
        assert normalize_kind("out") == "Outcome"

    def test_normalize_kind_foreign_passes_through(self):
        """Test that unknown kinds are kept trimmed and unchanged."""
        assert normalize_kind("  Transfer ") == "Transfer"

    def test_normalize_kind_absent(self):
        """Test that an empty kind is None."""
        assert normalize_kind(" ") is None


class TestTimestampParsing:
    """Tests for the ordered timestamp formats."""

    def test_formats_are_ordered(self):
        """Test fractional ISO is tried first and date-only last."""
        assert TIMESTAMP_FORMATS[0] == "%Y-%m-%dT%H:%M:%S.%f%z"
        assert TIMESTAMP_FORMATS[-1] == "%Y-%m-%d"

    def test_iso_with_fraction(self):
        """Test ISO-8601 with milliseconds and Z."""
        parsed = parse_timestamp("2024-12-31T23:59:59.000Z", timezone.utc)
        assert parsed == datetime(2024, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

    def test_iso_with_offset(self):
        """Test ISO-8601 without fraction and with a colon offset."""
        parsed = parse_timestamp("2025-01-15T10:00:00+02:00", timezone.utc)
        assert parsed == datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc)

    def test_space_separated_with_offset(self):
        """Test the space-separated pattern with a numeric offset."""
        parsed = parse_timestamp("2025-01-15 10:00:00+0000", timezone.utc)
        assert parsed == datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)

    def test_date_only_uses_configured_timezone(self):
        """Test that a bare date is midnight in the configured zone."""
        tz = ZoneInfo("America/New_York")
        parsed = parse_timestamp("2025-08-14", tz)
        assert parsed == datetime(2025, 8, 14, tzinfo=tz)
        assert parsed.astimezone(timezone.utc) == datetime(2025, 8, 14, 4, 0, tzinfo=timezone.utc)

    def test_unparseable(self):
        """Test that garbage yields None."""
        assert parse_timestamp("14/08/2025", timezone.utc) is None
        assert parse_timestamp("", timezone.utc) is None


class TestRowNormalizer:
    """Tests for RowNormalizer.normalize."""

    def test_full_row(self, normalizer):
        """Test a well-formed row."""
        row = normalizer.normalize(
            [" Coffee ", "3.20", "USD", "out", "Food", "oat milk", "2025-08-14"],
            line_number=4,
        )
        assert row.line_number == 4
        assert row.title == "Coffee"
        assert row.amount == Decimal("3.20")
        assert row.currency == "USD"
        assert row.kind == "Outcome"
        assert row.category == "Food"
        assert row.notes == "oat milk"
        assert row.timestamp == datetime(2025, 8, 14, tzinfo=timezone.utc)

    def test_defaults_applied(self, normalizer):
        """Test currency, kind and timestamp defaults."""
        row = normalizer.normalize(["", "", "", "", "", "", "not a date"])
        assert row.title is None
        assert row.amount is None
        assert row.currency == "EUR"
        assert row.kind == "Outcome"
        assert row.resolved_kind == TransactionKind.OUTCOME
        assert row.timestamp == NOW

    def test_extra_fields_ignored(self, normalizer):
        """Test that fields beyond the seventh are ignored."""
        row = normalizer.normalize(["a", "1", "USD", "in", "c", "n", "2025-01-01", "extra"])
        assert row.kind == "Income"

    def test_short_row_is_malformed(self, normalizer):
        """Test that fewer than seven fields raises MalformedRowError."""
        with pytest.raises(MalformedRowError) as exc_info:
            normalizer.normalize(["a", "1", "USD"], line_number=9)
        assert exc_info.value.line_number == 9
        assert exc_info.value.field_count == 3

    def test_default_currency_is_consulted_per_row(self):
        """Test the provider is called, not captured once."""
        currencies = iter(["GBP", "JPY"])
        normalizer = RowNormalizer(
            default_currency=lambda: next(currencies),
            clock=FixedClock(NOW),
            timezone=timezone.utc,
        )
        first = normalizer.normalize(["a", "1", "", "", "", "", ""])
        second = normalizer.normalize(["b", "1", "", "", "", "", ""])
        assert (first.currency, second.currency) == ("GBP", "JPY")

    def test_clock_is_read_at_normalization(self):
        """Test that the clock supplies now for each row."""
        clock = FixedClock(NOW)
        normalizer = RowNormalizer(lambda: "USD", clock, timezone.utc)
        clock.set(NOW + timedelta(hours=1))
        row = normalizer.normalize(["a", "1", "", "", "", "", ""])
        assert row.timestamp == NOW + timedelta(hours=1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
