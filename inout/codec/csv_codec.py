"""
CSV Codec

Bidirectional conversion between TransactionRecords and CSV text.

Wire format:
    title,amount,currency,type,category,notes,timestamp
    "Lunch, with friends",1234,USD,Outcome,Groceries,"Paid half; great time!",2024-12-31T23:59:59.000Z

The header is always written on export and optional on import (detected by
an exact, case-insensitive match). UTF-8; a leading BOM is tolerated on
import and never written.

DESIGN DECISION: Rows end at any line break outside quotes (CR, LF and
CRLF all count once). Line breaks inside a quoted field belong to the
field, so everything the exporter writes reads back exactly. A quote
left open at the end of the text only costs its own line: the rest is
re-read line by line.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from inout.models.transaction import TransactionRecord


COLUMNS = ("title", "amount", "currency", "type", "category", "notes", "timestamp")

BOM = "\ufeff"

# Everything str.splitlines() treats as a line boundary
_LINE_BREAKS = frozenset("\n\r\v\f\x1c\x1d\x1e\x85\u2028\u2029")

_NEEDS_QUOTING = frozenset(',"') | _LINE_BREAKS


class ParsedCSV(BaseModel):
    """Raw field lists from one CSV document."""

    rows: list[list[str]] = Field(
        default_factory=list,
        description="Data rows, header excluded"
    )
    header_detected: bool = False


# =============================================================================
# EXPORT
# =============================================================================

def escape_field(value: str) -> str:
    """Quote a field iff it holds a comma, quote or line break."""
    if not any(ch in value for ch in _NEEDS_QUOTING):
        return value
    return '"' + value.replace('"', '""') + '"'


def format_timestamp(moment: datetime) -> str:
    """ISO-8601, UTC, millisecond precision: 2024-12-31T23:59:59.000Z"""
    utc = moment.astimezone(timezone.utc)
    return f"{utc:%Y-%m-%dT%H:%M:%S}.{utc.microsecond // 1000:03d}Z"


def format_amount(amount: Optional[Decimal]) -> str:
    # Plain notation: Decimal("1E+2") is written as 100
    return format(amount, "f") if amount is not None else ""


def record_to_row(record: TransactionRecord) -> list[str]:
    return [
        record.title or "",
        format_amount(record.amount),
        record.currency or "",
        record.kind.value,
        record.category or "",
        record.notes or "",
        format_timestamp(record.timestamp),
    ]


def export_records(records: Iterable[TransactionRecord]) -> str:
    """
    Serialize records to CSV text.

    Header first, one line per record, trailing newline. Pure.
    """
    lines = [",".join(COLUMNS)]
    for record in records:
        lines.append(",".join(escape_field(f) for f in record_to_row(record)))
    return "\n".join(lines) + "\n"


# =============================================================================
# PARSE
# =============================================================================

def _scan(text: str, quoted_breaks: bool) -> tuple[list[list[str]], Optional[int]]:
    """
    Tokenize text into rows.

    Returns the rows and, when the text ends inside an open quote, the
    offset where that last row began (None otherwise). With quoted_breaks
    False a line break also closes any open quote.
    """
    rows: list[list[str]] = []
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    row_started = False
    row_start = 0
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if in_quotes and not quoted_breaks and ch in _LINE_BREAKS:
            in_quotes = False
        if in_quotes:
            if ch == '"':
                if i + 1 < n and text[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(ch)
        elif ch in _LINE_BREAKS:
            if ch == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
            if row_started:
                fields.append("".join(current))
                rows.append(fields)
            fields, current, row_started = [], [], False
            row_start = i + 1
        elif ch == ",":
            fields.append("".join(current))
            current = []
            row_started = True
        elif ch == '"':
            in_quotes = True
            row_started = True
        else:
            current.append(ch)
            row_started = True
        i += 1

    if row_started:
        fields.append("".join(current))
        rows.append(fields)
    return rows, (row_start if in_quotes else None)


def parse_rows(text: str) -> list[list[str]]:
    """
    Split CSV text into rows of fields.

    Text between an opening quote and its closing quote is taken literally,
    commas and line breaks included; a doubled quote inside quotes is one
    literal quote. Empty lines produce no row.

    A quote that is never closed does not swallow the rest of the text:
    from the row where it opened, rows are read one line at a time.
    """
    rows, open_at = _scan(text, quoted_breaks=True)
    if open_at is None:
        return rows
    # The last row is the unterminated one
    tail, _ = _scan(text[open_at:], quoted_breaks=False)
    return rows[:-1] + tail


def parse_row(line: str) -> list[str]:
    """Fields of a single CSV line."""
    rows = parse_rows(line)
    return rows[0] if rows else [""]


def matches_header(fields: list[str]) -> bool:
    return tuple(f.strip().lower() for f in fields) == COLUMNS


def parse_csv(text: str) -> ParsedCSV:
    """
    Parse CSV text into raw field lists.

    The first row is consumed as a header only if it matches COLUMNS.
    """
    if text.startswith(BOM):
        text = text[len(BOM):]

    rows = parse_rows(text)
    if not rows:
        return ParsedCSV()

    header_detected = matches_header(rows[0])
    if header_detected:
        rows = rows[1:]

    return ParsedCSV(rows=rows, header_detected=header_detected)
