"""Tests for CSV decoding, type inference and encoding."""

import pytest

from datamorph.codecs.csv_codec import (
    decode_csv,
    dedupe_headers,
    encode_csv,
    format_cell,
    infer_value,
)
from datamorph.errors import ParseError


class TestInferValue:
    """Tests for per-cell type inference."""

    def test_integers_and_decimals(self):
        """Whole-token numbers become int or float."""
        assert infer_value("42") == 42
        assert isinstance(infer_value("42"), int)
        assert infer_value("-3.5") == -3.5
        assert infer_value(".5") == 0.5
        assert infer_value("1e3") == 1000.0

    def test_integral_decimal_becomes_int(self):
        """3.0 is the same number as 3."""
        assert infer_value("3.0") == 3
        assert isinstance(infer_value("3.0"), int)

    def test_partial_numbers_stay_strings(self):
        """12abc is not a number."""
        assert infer_value("12abc") == "12abc"
        assert infer_value("1.2.3") == "1.2.3"

    def test_booleans_are_case_sensitive(self):
        """Only lowercase true/false are booleans."""
        assert infer_value("true") is True
        assert infer_value("false") is False
        assert infer_value("True") == "True"

    def test_empty_cell_is_none(self):
        """Empty cells become None with typing on."""
        assert infer_value("") is None

    def test_no_typing_keeps_text(self):
        """Dynamic typing off returns the raw text."""
        assert infer_value("42", dynamic_typing=False) == "42"
        assert infer_value("true", dynamic_typing=False) == "true"
        assert infer_value("", dynamic_typing=False) == ""


class TestDecodeCsv:
    """Tests for CSV decoding."""

    def test_decode_typed_rows(self):
        """Header row names the fields, cells are typed."""
        records = decode_csv("id,name,active\n1,Alice,true\n2,Bob,false\n")

        assert records == [
            {"id": 1, "name": "Alice", "active": True},
            {"id": 2, "name": "Bob", "active": False},
        ]

    def test_empty_lines_skipped(self):
        """Blank lines produce no records."""
        records = decode_csv("a,b\n\n1,2\n\n3,4\n")
        assert records == [{"a": 1, "b": 2}, {"a": 3, "b": 4}]

    def test_custom_delimiter(self):
        """Semicolon-separated input."""
        records = decode_csv("a;b\nx;y\n", delimiter=";")
        assert records == [{"a": "x", "b": "y"}]

    def test_quoted_fields(self):
        """Quoted cells keep delimiters and newlines."""
        records = decode_csv('name,note\n"Smith, J","line1\nline2"\n')
        assert records == [{"name": "Smith, J", "note": "line1\nline2"}]

    def test_too_few_fields_fails_whole_decode(self):
        """A short row aborts the decode."""
        with pytest.raises(ParseError) as exc_info:
            decode_csv("a,b,c\n1,2,3\n4,5\n")

        assert "Too few fields: expected 3 fields but parsed 2" in str(exc_info.value)
        assert exc_info.value.row == 3

    def test_too_many_fields(self):
        """A long row aborts the decode."""
        with pytest.raises(ParseError, match="Too many fields"):
            decode_csv("a\n1,2\n")

    def test_bad_quoting(self):
        """Stray quote inside an unquoted field."""
        with pytest.raises(ParseError, match="CSV parsing error"):
            decode_csv('a,b\n1,"x"y\n')

    def test_duplicate_headers(self):
        """Repeated header names get suffixes."""
        records = decode_csv("a,a,b\n1,2,3\n")
        assert list(records[0]) == ["a", "a_1", "b"]

    def test_header_only(self):
        """No data rows decode to an empty list."""
        assert decode_csv("a,b\n") == []


class TestDedupeHeaders:
    """Tests for header de-duplication."""

    def test_blank_replacement(self):
        """Blank names are replaced before suffixing."""
        assert dedupe_headers(["", "x", ""], blank="__EMPTY") == ["__EMPTY", "x", "__EMPTY_1"]


class TestEncodeCsv:
    """Tests for CSV encoding."""

    def test_union_of_keys_in_first_seen_order(self):
        """Columns come from every record, missing keys are empty."""
        text = encode_csv([{"a": 1, "b": 2}, {"c": 3, "a": 4}])
        assert text == "a,b,c\n1,2,\n4,,3\n"

    def test_nested_values_json_encoded(self):
        """Objects and arrays become compact JSON cells."""
        text = encode_csv([{"id": 1, "tags": ["x", "y"]}])
        assert text == 'id,tags\n1,"[""x"",""y""]"\n'

    def test_booleans_and_none(self):
        """Booleans are lowercase, None is empty."""
        assert format_cell(True) == "true"
        assert format_cell(None) == ""
        assert format_cell(2.0) == "2"

    def test_empty_input(self):
        """No records encode to empty text."""
        assert encode_csv([]) == ""

    def test_round_trip_scalar_records(self, sample_records):
        """Scalar records survive encode then decode."""
        assert decode_csv(encode_csv(sample_records)) == sample_records
