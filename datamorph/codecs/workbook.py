"""Workbook (.xlsx) reading and writing with openpyxl.

Each sheet maps to a list of records keyed by that sheet's header row.
"""

import io
import json
import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Optional

import openpyxl
from openpyxl.utils.exceptions import IllegalCharacterError, InvalidFileException

from datamorph.codecs.csv_codec import column_union, dedupe_headers
from datamorph.errors import FormatError

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "Sheet1"
MAX_SHEET_NAME_LENGTH = 31
INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")
BLANK_HEADER = "__EMPTY"


@dataclass
class Sheet:
    """A named record set inside a workbook."""

    name: str
    records: list[dict] = field(default_factory=list)

    @property
    def columns(self) -> list[str]:
        return column_union(self.records)


@dataclass
class Workbook:
    """Ordered collection of uniquely named sheets."""

    sheets: list[Sheet] = field(default_factory=list)

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    def get(self, name: str) -> Optional[Sheet]:
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None

    def first(self) -> Optional[Sheet]:
        return self.sheets[0] if self.sheets else None


def validate_sheet_names(names: Iterable[str]) -> None:
    """Check names against the workbook format's rules.

    Raises:
        FormatError: For empty, too long, duplicate (case-insensitive) names
            or names containing []:*?/\\
    """
    seen = set()
    for name in names:
        if not name or not name.strip():
            raise FormatError("Sheet name cannot be empty")
        if len(name) > MAX_SHEET_NAME_LENGTH:
            raise FormatError(
                f"Sheet name '{name}' is longer than {MAX_SHEET_NAME_LENGTH} characters"
            )
        if INVALID_SHEET_CHARS.search(name):
            raise FormatError(f"Sheet name '{name}' contains an invalid character")
        key = name.lower()
        if key in seen:
            raise FormatError(f"Duplicate sheet name '{name}'")
        seen.add(key)


def _read_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    return value


def _header_name(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(_read_value(value))


def _decode_rows(rows: Iterable[tuple]) -> list[dict]:
    non_blank = [
        list(row) for row in rows
        if any(cell is not None for cell in row)
    ]
    if not non_blank:
        return []

    width = max(
        max(i for i, cell in enumerate(row) if cell is not None) + 1
        for row in non_blank
    )
    header = dedupe_headers(
        [_header_name(cell) for cell in _pad(non_blank[0], width)],
        blank=BLANK_HEADER,
    )

    records = []
    for row in non_blank[1:]:
        cells = _pad(row, width)
        # Missing cells stay as explicit None so "present but empty" survives
        records.append({name: _read_value(cell) for name, cell in zip(header, cells)})
    return records


def _pad(row: list, width: int) -> list:
    if len(row) >= width:
        return row[:width]
    return row + [None] * (width - len(row))


def decode_workbook(data: bytes) -> Workbook:
    """Read every sheet of an .xlsx document.

    Args:
        data: Raw workbook bytes

    Returns:
        Workbook with one Sheet per worksheet, in workbook order

    Raises:
        FormatError: If the bytes are not a readable workbook
    """
    try:
        book = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        raise FormatError(f"Cannot read workbook: {e}") from e

    try:
        sheets = [
            Sheet(name=worksheet.title, records=_decode_rows(worksheet.iter_rows(values_only=True)))
            for worksheet in book.worksheets
        ]
    finally:
        book.close()

    logger.debug(
        f"Decoded workbook with {len(sheets)} sheets",
        extra={"sheets": [s.name for s in sheets]},
    )
    return Workbook(sheets=sheets)


def _write_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return value


def encode_workbook(workbook: Workbook) -> bytes:
    """Write a Workbook as .xlsx bytes.

    A workbook without sheets is written with one empty ``Sheet1`` because
    the format requires at least one visible sheet.

    Raises:
        FormatError: For invalid sheet names or cell content the format
            cannot store
    """
    sheets = workbook.sheets or [Sheet(name=DEFAULT_SHEET_NAME)]
    validate_sheet_names(sheet.name for sheet in sheets)

    book = openpyxl.Workbook()
    book.remove(book.active)

    for sheet in sheets:
        worksheet = book.create_sheet(title=sheet.name)
        columns = sheet.columns
        if not columns:
            continue
        try:
            for col, name in enumerate(columns, start=1):
                _set_cell(worksheet, 1, col, name)
            for row, record in enumerate(sheet.records, start=2):
                for col, name in enumerate(columns, start=1):
                    _set_cell(worksheet, row, col, _write_value(record.get(name)))
        except IllegalCharacterError as e:
            raise FormatError(f"Sheet '{sheet.name}' contains an illegal character: {e}") from e

    buffer = io.BytesIO()
    book.save(buffer)

    logger.debug(
        f"Encoded workbook with {len(sheets)} sheets",
        extra={"sheets": [s.name for s in sheets]},
    )
    return buffer.getvalue()


def _set_cell(worksheet, row: int, col: int, value: Any) -> None:
    if value is None or value == "":
        return
    cell = worksheet.cell(row=row, column=col, value=value)
    if isinstance(value, str) and value.startswith("="):
        # Text that looks like a formula is data, not a formula
        cell.data_type = "s"


def encode_records(records: list[dict], sheet_name: str = DEFAULT_SHEET_NAME) -> bytes:
    """Write a single record set as a one-sheet workbook."""
    return encode_workbook(Workbook(sheets=[Sheet(name=sheet_name, records=records)]))


def first_sheet_records(workbook: Workbook) -> list[dict]:
    """Records of the first sheet by position (empty if there are no sheets)."""
    sheet = workbook.first()
    return list(sheet.records) if sheet else []
