"""Preview data for a source file (tables and trees, no rendering)."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from datamorph.codecs import decode_csv, decode_json, decode_workbook
from datamorph.codecs.csv_codec import column_union, format_cell
from datamorph.config import ConversionOptions
from datamorph.errors import ConversionError, FormatError
from datamorph.utils import detect_file_type, read_bytes, read_text

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 100
FORMAT_LABELS = {"csv": "CSV", "json": "JSON", "excel": "Excel"}


@dataclass
class TablePreview:
    """Display-ready grid: header names and rows of cell text."""

    name: str
    headers: list[str]
    rows: list[list[str]]
    total_rows: int

    @property
    def truncated(self) -> bool:
        return self.total_rows > len(self.rows)

    @property
    def is_empty(self) -> bool:
        return self.total_rows == 0


@dataclass
class Preview:
    """Everything needed to show a file: its tables and/or a JSON tree."""

    source_path: str
    file_type: str
    tables: list[TablePreview] = field(default_factory=list)
    tree: Optional[Any] = None

    @property
    def has_tree(self) -> bool:
        return self.tree is not None


def build_table(name: str, records: list, max_rows: int = DEFAULT_MAX_ROWS) -> TablePreview:
    """Render the first ``max_rows`` records as cell text."""
    headers = column_union(records)
    rows = [
        [format_cell(record.get(header)) if isinstance(record, dict) else "" for header in headers]
        for record in records[:max_rows]
    ]
    return TablePreview(name=name, headers=headers, rows=rows, total_rows=len(records))


def _is_record_array(data: Any) -> bool:
    return isinstance(data, list) and bool(data) and isinstance(data[0], dict)


def build_preview(
    path: Union[str, Path],
    options: Optional[ConversionOptions] = None,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> Preview:
    """Decode a file for preview.

    CSV files give one table, workbooks one table per sheet, JSON arrays of
    objects a table plus the tree, and any other JSON just the tree.

    Args:
        path: Source file
        options: Decode options (delimiter, type inference)
        max_rows: Row cap per table

    Raises:
        FormatError: For unsupported file types
        ConversionError: ``Failed to preview <FORMAT>: <cause>``
    """
    options = options or ConversionOptions()
    path = Path(path)
    file_type = detect_file_type(path)
    if file_type == "unknown":
        raise FormatError(f"Unsupported file type: {path.suffix or path.name}", file_path=str(path))

    preview = Preview(source_path=str(path), file_type=file_type)
    try:
        if file_type == "csv":
            records = decode_csv(read_text(path), options.delimiter, options.preserve_types)
            preview.tables.append(build_table(path.name, records, max_rows))
        elif file_type == "json":
            data = decode_json(read_text(path))
            if _is_record_array(data):
                preview.tables.append(build_table(path.name, data, max_rows))
            preview.tree = data
        else:
            workbook = decode_workbook(read_bytes(path))
            preview.tables.extend(
                build_table(sheet.name, sheet.records, max_rows) for sheet in workbook.sheets
            )
    except ConversionError as e:
        raise e.with_prefix(f"Failed to preview {FORMAT_LABELS[file_type]}") from e

    logger.debug(
        f"Built preview for {path.name}",
        extra={
            "source": path.name,
            "tables": [table.name for table in preview.tables],
            "has_tree": preview.has_tree,
        },
    )
    return preview
