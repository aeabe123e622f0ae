"""CSV codec and row normalization."""

from inout.codec.csv_codec import (
    COLUMNS,
    ParsedCSV,
    escape_field,
    export_records,
    parse_csv,
    parse_row,
    parse_rows,
)
from inout.codec.normalizer import (
    TIMESTAMP_FORMATS,
    MalformedRowError,
    RowNormalizer,
    normalize_kind,
    parse_amount,
    parse_timestamp,
)

__all__ = [
    # Codec
    "COLUMNS",
    "ParsedCSV",
    "escape_field",
    "export_records",
    "parse_csv",
    "parse_row",
    "parse_rows",
    # Normalizer
    "TIMESTAMP_FORMATS",
    "MalformedRowError",
    "RowNormalizer",
    "normalize_kind",
    "parse_amount",
    "parse_timestamp",
]
