"""Tests for the .xlsx codec."""

import io

import openpyxl
import pytest

from datamorph.codecs.workbook import (
    Sheet,
    Workbook,
    decode_workbook,
    encode_records,
    encode_workbook,
    first_sheet_records,
    validate_sheet_names,
)
from datamorph.errors import FormatError


def _raw_workbook(rows_by_sheet: dict) -> bytes:
    book = openpyxl.Workbook()
    book.remove(book.active)
    for name, rows in rows_by_sheet.items():
        worksheet = book.create_sheet(title=name)
        for row in rows:
            worksheet.append(row)
    buffer = io.BytesIO()
    book.save(buffer)
    return buffer.getvalue()


class TestWorkbookRoundTrip:
    """Tests for encode then decode."""

    def test_names_counts_and_values(self):
        """Sheet names, row counts and scalar values survive."""
        workbook = Workbook(sheets=[
            Sheet(name="People", records=[
                {"name": "Alice", "age": 30, "member": True},
                {"name": "Bob", "age": 25.5, "member": False},
            ]),
            Sheet(name="Empty"),
        ])

        decoded = decode_workbook(encode_workbook(workbook))

        assert decoded.sheet_names == ["People", "Empty"]
        assert decoded.get("People").records == [
            {"name": "Alice", "age": 30, "member": True},
            {"name": "Bob", "age": 25.5, "member": False},
        ]
        assert decoded.get("Empty").records == []

    def test_missing_cells_decode_as_none(self):
        """A key absent from one record is an explicit None."""
        data = encode_records([{"a": 1, "b": 2}, {"a": 3}])
        records = first_sheet_records(decode_workbook(data))
        assert records == [{"a": 1, "b": 2}, {"a": 3, "b": None}]

    def test_nested_values_json_encoded(self):
        """Nested values are written as JSON text."""
        data = encode_records([{"id": 1, "tags": ["x", "y"]}])
        records = first_sheet_records(decode_workbook(data))
        assert records == [{"id": 1, "tags": '["x","y"]'}]

    def test_formula_like_text_stays_text(self):
        """Strings starting with = are not formulas."""
        data = encode_records([{"expr": "=1+1"}])
        records = first_sheet_records(decode_workbook(data))
        assert records == [{"expr": "=1+1"}]

    def test_empty_workbook_gets_default_sheet(self):
        """Zero sheets still writes a valid file."""
        decoded = decode_workbook(encode_workbook(Workbook()))
        assert decoded.sheet_names == ["Sheet1"]
        assert first_sheet_records(decoded) == []


class TestDecodeWorkbook:
    """Tests for decoding hand-built workbooks."""

    def test_blank_and_duplicate_headers(self):
        """Blank headers become __EMPTY, repeats are suffixed."""
        data = _raw_workbook({"S": [["id", None, "id"], [1, "x", 2]]})
        records = first_sheet_records(decode_workbook(data))
        assert records == [{"id": 1, "__EMPTY": "x", "id_1": 2}]

    def test_blank_rows_skipped(self):
        """Fully blank rows do not produce records."""
        data = _raw_workbook({"S": [["a"], [1], [None], [2]]})
        records = first_sheet_records(decode_workbook(data))
        assert records == [{"a": 1}, {"a": 2}]

    def test_dates_are_iso_strings(self):
        """Date cells decode as ISO-8601 text."""
        from datetime import datetime

        data = _raw_workbook({"S": [["when"], [datetime(2024, 1, 15, 10, 30)]]})
        records = first_sheet_records(decode_workbook(data))
        assert records == [{"when": "2024-01-15T10:30:00"}]

    def test_first_sheet_by_position(self):
        """The first sheet is chosen by order, not by name."""
        data = _raw_workbook({"Zeta": [["z"], [1]], "Alpha": [["a"], [2]]})
        assert first_sheet_records(decode_workbook(data)) == [{"z": 1}]

    def test_not_a_workbook(self):
        """Arbitrary bytes are a FormatError."""
        with pytest.raises(FormatError, match="Cannot read workbook"):
            decode_workbook(b"not a zip file")


class TestSheetNames:
    """Tests for sheet name validation."""

    @pytest.mark.parametrize("name", ["", "a" * 32, "bad/name", "what?", "[x]"])
    def test_invalid_names(self, name):
        """Empty, long and special-character names are rejected."""
        with pytest.raises(FormatError):
            validate_sheet_names([name])

    def test_case_insensitive_duplicates(self):
        """Sales and SALES collide."""
        with pytest.raises(FormatError, match="Duplicate"):
            validate_sheet_names(["Sales", "SALES"])

    def test_encode_rejects_bad_name(self):
        """Encoding validates names first."""
        with pytest.raises(FormatError):
            encode_records([{"a": 1}], sheet_name="a:b")
