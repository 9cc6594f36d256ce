"""Tests for preview data."""

import pytest

from datamorph.config import ConversionOptions
from datamorph.errors import FormatError, ParseError
from datamorph.preview import build_preview, build_table


class TestBuildTable:
    """Tests for table rendering."""

    def test_cells_rendered_as_text(self):
        """Cells use the same text as CSV output."""
        table = build_table("t", [{"a": 1, "b": True}, {"a": 2.0, "c": {"x": 1}}])

        assert table.headers == ["a", "b", "c"]
        assert table.rows == [["1", "true", ""], ["2", "", '{"x":1}']]

    def test_truncated(self, sample_records):
        """Rows beyond max_rows are counted but not rendered."""
        table = build_table("t", sample_records, max_rows=2)

        assert len(table.rows) == 2
        assert table.total_rows == 3
        assert table.truncated

    def test_empty(self):
        """No records, no headers."""
        table = build_table("t", [])
        assert table.is_empty
        assert table.headers == []


class TestBuildPreview:
    """Tests for previews per file type."""

    def test_csv_preview(self, csv_file):
        """One table named after the file."""
        preview = build_preview(csv_file)

        assert preview.file_type == "csv"
        assert [t.name for t in preview.tables] == ["users.csv"]
        assert preview.tables[0].headers == ["id", "name", "score", "active"]
        assert preview.tables[0].rows[0] == ["1", "Alice", "9.5", "true"]
        assert not preview.has_tree

    def test_csv_preview_with_delimiter(self, tmp_path):
        """Decode options apply."""
        source = tmp_path / "semi.csv"
        source.write_text("a;b\n1;2\n", encoding="utf-8")

        preview = build_preview(source, ConversionOptions(delimiter=";"))
        assert preview.tables[0].headers == ["a", "b"]

    def test_json_array_preview(self, json_file):
        """Arrays of objects get a table and a tree."""
        preview = build_preview(json_file)

        assert preview.has_tree
        assert preview.tree[0]["address"] == {"city": "Oslo"}
        assert preview.tables[0].rows == [
            ["Alice", "true", '{"city":"Oslo"}'],
            ["Bob", "false", ""],
        ]

    def test_json_object_preview(self, tmp_path):
        """A single object is only a tree."""
        source = tmp_path / "config.json"
        source.write_text('{"a": {"b": 1}}', encoding="utf-8")

        preview = build_preview(source)
        assert preview.tables == []
        assert preview.tree == {"a": {"b": 1}}

    def test_workbook_preview(self, workbook_file):
        """One table per sheet, in order."""
        preview = build_preview(workbook_file)

        assert [t.name for t in preview.tables] == ["Users", "Orders"]
        assert preview.tables[1].rows == [["A-1", "12.5"]]

    def test_invalid_json(self, tmp_path):
        """Parse failures carry the preview prefix."""
        source = tmp_path / "bad.json"
        source.write_text("[1,", encoding="utf-8")
        with pytest.raises(ParseError, match="^Failed to preview JSON: Invalid JSON"):
            build_preview(source)

    def test_unknown_type(self, tmp_path):
        """Unsupported extensions are rejected."""
        source = tmp_path / "a.md"
        source.write_text("# hi", encoding="utf-8")
        with pytest.raises(FormatError, match="Unsupported file type"):
            build_preview(source)
