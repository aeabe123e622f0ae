"""
Tests for the CSV codec.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from inout.codec.csv_codec import (
    COLUMNS,
    escape_field,
    export_records,
    format_timestamp,
    parse_csv,
    parse_row,
    parse_rows,
)
from inout.models.transaction import TransactionKind, TransactionRecord


HEADER = "title,amount,currency,type,category,notes,timestamp"


def make_record(**overrides) -> TransactionRecord:
    fields = dict(
        title="Lunch",
        amount=Decimal("12.50"),
        currency="USD",
        kind=TransactionKind.OUTCOME,
        category="Groceries",
        notes=None,
        timestamp=datetime(2024, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return TransactionRecord(**fields)


class TestEscaping:
    """Tests for field quoting."""

    def test_plain_field_is_not_quoted(self):
        """Test that a field without special characters is written as is."""
        assert escape_field("Groceries") == "Groceries"

    def test_comma_forces_quotes(self):
        """Test that a comma wraps the field in quotes."""
        assert escape_field("Lunch, with friends") == '"Lunch, with friends"'

    def test_quotes_are_doubled(self):
        """Test that embedded quotes are doubled."""
        assert escape_field('the "best"') == '"the ""best"""'

    def test_line_break_forces_quotes(self):
        """Test that CR and LF wrap the field in quotes."""
        assert escape_field("a\nb") == '"a\nb"'
        assert escape_field("a\rb") == '"a\rb"'

    @pytest.mark.parametrize("separator", ["\v", "\f", "\x1c", "\x85", "\u2028", "\u2029"])
    def test_every_row_separator_forces_quotes(self, separator):
        """Test that any character that ends a row is quoted."""
        value = f"a{separator}b"
        assert escape_field(value) == f'"{value}"'


class TestExport:
    """Tests for export_records."""

    def test_header_always_written(self):
        """Test that an empty export is just the header."""
        assert export_records([]) == HEADER + "\n"

    def test_record_line(self):
        """Test the column order and formatting of one record."""
        text = export_records([make_record()])
        lines = text.split("\n")
        assert lines[0] == HEADER
        assert lines[1] == "Lunch,12.50,USD,Outcome,Groceries,,2024-12-31T23:59:59.000Z"
        assert text.endswith("\n")

    def test_timestamp_is_utc_with_milliseconds(self):
        """Test timestamps are normalized to UTC with a Z suffix."""
        from zoneinfo import ZoneInfo
        moment = datetime(2025, 3, 1, 10, 30, 0, 123456, tzinfo=ZoneInfo("Europe/Berlin"))
        assert format_timestamp(moment) == "2025-03-01T09:30:00.123Z"

    def test_income_kind(self):
        """Test type serializes as the Income literal."""
        text = export_records([make_record(kind=TransactionKind.INCOME)])
        assert ",Income," in text

    def test_missing_optional_fields_are_empty(self):
        """Test that absent title, amount and category export as empty strings."""
        text = export_records([make_record(title=None, amount=None, category=None)])
        assert text.split("\n")[1] == ",,USD,Outcome,,,2024-12-31T23:59:59.000Z"

    def test_amount_in_plain_notation(self):
        """Test that exponent decimals are written in plain notation."""
        text = export_records([make_record(amount=Decimal("1E+2"))])
        assert ",100,USD," in text

    def test_no_bom(self):
        """Test that the export never starts with a byte-order mark."""
        assert not export_records([make_record()]).startswith("\ufeff")


class TestParse:
    """Tests for parse_row and parse_csv."""

    def test_parse_row_respects_quotes(self):
        """Test that commas inside quotes stay in the field."""
        assert parse_row('"a, b",c') == ["a, b", "c"]

    def test_parse_row_doubled_quote(self):
        """Test that a doubled quote decodes to one quote."""
        assert parse_row('"say ""hi""",x') == ['say "hi"', "x"]

    def test_parse_row_trailing_empty_field(self):
        """Test that a trailing comma yields an empty last field."""
        assert parse_row("a,b,") == ["a", "b", ""]

    def test_crlf_is_one_separator(self):
        """Test that CRLF, CR and LF all end a row exactly once."""
        rows = parse_rows("a,b\r\nc,d\re,f\ng,h")
        assert rows == [["a", "b"], ["c", "d"], ["e", "f"], ["g", "h"]]

    def test_empty_lines_are_dropped(self):
        """Test that blank lines produce no rows."""
        rows = parse_rows("a,b\n\n\nc,d\n")
        assert rows == [["a", "b"], ["c", "d"]]

    def test_quoted_line_break_stays_in_field(self):
        """Test that a line break inside quotes does not end the row."""
        rows = parse_rows('"first\nsecond",x\ny,z')
        assert rows == [["first\nsecond", "x"], ["y", "z"]]

    def test_unclosed_quote_costs_only_its_line(self):
        """Test that a stray quote does not swallow the following rows."""
        rows = parse_rows(
            '12" pizza,10,USD,Outcome,Food,,2025-08-01\n'
            "Bus,2,USD,Outcome,Transport,,2025-08-02\n"
            "Rent,900,USD,Outcome,Rent,,2025-08-03\n"
        )
        assert len(rows) == 3
        assert rows[0] == ["12 pizza,10,USD,Outcome,Food,,2025-08-01"]
        assert rows[1][0] == "Bus"
        assert rows[2][0] == "Rent"

    def test_unclosed_quote_keeps_earlier_multiline_field(self):
        """Test that rows before the stray quote keep their quoted line breaks."""
        rows = parse_rows('"a\nb",x\nbad"row\r\nc,d')
        assert rows == [["a\nb", "x"], ["badrow"], ["c", "d"]]

    def test_header_detected_case_insensitive(self):
        """Test that the header is matched after trimming and lowercasing."""
        parsed = parse_csv(" Title ,AMOUNT,currency,Type,category,notes,timestamp\nx,1,USD,in,c,n,t\n")
        assert parsed.header_detected
        assert parsed.rows == [["x", "1", "USD", "in", "c", "n", "t"]]

    def test_first_row_is_data_without_header(self):
        """Test that a non-matching first row is kept as data."""
        parsed = parse_csv("x,1,USD,in,c,n,t\n")
        assert not parsed.header_detected
        assert len(parsed.rows) == 1

    def test_bom_is_stripped(self):
        """Test that a leading BOM does not break header detection."""
        parsed = parse_csv("\ufeff" + HEADER + "\n")
        assert parsed.header_detected
        assert parsed.rows == []

    def test_empty_text(self):
        """Test that empty input yields no rows."""
        parsed = parse_csv("")
        assert parsed.rows == []
        assert not parsed.header_detected

    def test_header_idempotence(self):
        """Test that the same data parses to the same rows with or without header."""
        data = "a,1,USD,Outcome,c,,2025-01-01\nb,2,USD,Income,d,,2025-01-02\n"
        with_header = parse_csv(HEADER + "\n" + data)
        without_header = parse_csv(data)
        assert with_header.rows == without_header.rows
        assert len(with_header.rows) == 2


class TestRoundTrip:
    """Tests for export followed by parse."""

    def test_escaped_title_round_trips(self):
        """Test that a title holding a comma, quotes and a newline survives."""
        title = 'Lunch, "best" place\never'
        notes = "line one\r\nline two"
        parsed = parse_csv(export_records([make_record(title=title, notes=notes)]))
        assert parsed.header_detected
        assert len(parsed.rows) == 1
        assert parsed.rows[0][0] == title
        assert parsed.rows[0][5] == notes

    @pytest.mark.parametrize("separator", ["\v", "\f", "\x1c", "\x1d", "\x1e", "\x85", "\u2028", "\u2029"])
    def test_unusual_line_breaks_round_trip(self, separator):
        """Test that titles and notes with any line break read back as one row."""
        title = f"a{separator}b"
        notes = f"x{separator}y"
        parsed = parse_csv(export_records([make_record(title=title, notes=notes)]))
        assert len(parsed.rows) == 1
        assert parsed.rows[0][0] == title
        assert parsed.rows[0][5] == notes

    def test_fields_round_trip(self):
        """Test that every column reads back as written."""
        record = make_record(notes="n")
        parsed = parse_csv(export_records([record]))
        row = dict(zip(COLUMNS, parsed.rows[0]))
        assert row == {
            "title": "Lunch",
            "amount": "12.50",
            "currency": "USD",
            "type": "Outcome",
            "category": "Groceries",
            "notes": "n",
            "timestamp": "2024-12-31T23:59:59.000Z",
        }


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
