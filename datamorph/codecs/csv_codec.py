"""CSV decoding with type inference, and CSV encoding."""

import csv
import io
import json
import logging
import re
from typing import Any

from datamorph.errors import ParseError

logger = logging.getLogger(__name__)

# Whole-token numbers only: "12", "-3.5", ".5", "1e6". "12abc" stays a string.
NUMBER_PATTERN = re.compile(r"^\s*-?(\d+\.?|\.\d+|\d+\.\d+)([eE][-+]?\d+)?\s*$")
INTEGER_PATTERN = re.compile(r"^\s*-?\d+\s*$")


def infer_value(raw: str, dynamic_typing: bool = True) -> Any:
    """Recover a typed value from a CSV cell.

    Tries, in order: number, boolean (``true``/``false`` exactly), null for an
    empty cell. Anything else is returned unchanged.

    Example:
        >>> infer_value("42"), infer_value("4.5"), infer_value("true")
        (42, 4.5, True)
    """
    if not dynamic_typing:
        return raw

    if NUMBER_PATTERN.match(raw):
        if INTEGER_PATTERN.match(raw):
            return int(raw)
        value = float(raw)
        if value.is_integer() and abs(value) < 2 ** 53 and "e" not in raw.lower():
            # "3.0" is the same number as 3 once it leaves the grid
            return int(value)
        return value

    if raw == "true":
        return True
    if raw == "false":
        return False
    if raw == "":
        return None
    return raw


def dedupe_headers(names: list[str], blank: str = "") -> list[str]:
    """Make header names unique by suffixing repeats with ``_1``, ``_2``...

    Blank names are replaced by ``blank`` first when it is given.
    """
    seen: dict[str, int] = {}
    result = []
    for name in names:
        if blank and name == "":
            name = blank
        base = name
        count = seen.get(base, 0)
        while name in seen:
            count += 1
            name = f"{base}_{count}"
        seen[base] = count
        seen.setdefault(name, 0)
        result.append(name)
    return result


def decode_csv(
    text: str,
    delimiter: str = ",",
    dynamic_typing: bool = True,
) -> list[dict]:
    """Parse CSV text into records keyed by the header row.

    Args:
        text: Raw CSV content
        delimiter: Single-character field separator
        dynamic_typing: Infer numbers, booleans and nulls

    Returns:
        List of records, one per non-empty data row

    Raises:
        ParseError: On malformed quoting or a row whose field count differs
            from the header. No partial result is returned.
    """
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)

    header: list[str] = []
    records: list[dict] = []

    try:
        for row in reader:
            if not row:
                continue

            if not header:
                header = dedupe_headers(row)
                continue

            if len(row) != len(header):
                kind = "few" if len(row) < len(header) else "many"
                raise ParseError(
                    f"Too {kind} fields: expected {len(header)} fields "
                    f"but parsed {len(row)} (row {reader.line_num})",
                    row=reader.line_num,
                )

            records.append(
                {
                    name: infer_value(cell, dynamic_typing)
                    for name, cell in zip(header, row)
                }
            )
    except csv.Error as e:
        raise ParseError(
            f"CSV parsing error: {e} (row {reader.line_num})", row=reader.line_num
        ) from e

    logger.debug(
        f"Decoded {len(records)} CSV records",
        extra={"column_count": len(header), "record_count": len(records)},
    )
    return records


def column_union(records: list[dict]) -> list[str]:
    """All keys across records, in first-seen order."""
    columns: dict[str, None] = {}
    for record in records:
        if isinstance(record, dict):
            for key in record:
                columns.setdefault(key, None)
    return list(columns)


def format_cell(value: Any) -> str:
    """Render one value as CSV cell text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def encode_csv(records: list[dict], delimiter: str = ",") -> str:
    """Serialize records to CSV text with a header row.

    Missing keys and None become empty cells; nested objects and arrays are
    JSON-encoded since the grid is flat text.
    """
    if not records:
        return ""

    columns = column_union(records)
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerow(columns)
    for record in records:
        writer.writerow([format_cell(record.get(column)) for column in columns])

    logger.debug(
        f"Encoded {len(records)} CSV records",
        extra={"column_count": len(columns), "record_count": len(records)},
    )
    return buffer.getvalue()
