"""JSON flattening utilities.

Projects tree-shaped JSON onto a rectangular record set for grid formats
(CSV, workbook) and reverses dotted columns back into nested objects.
"""

import json
import logging
from typing import Any

from datamorph.codecs.csv_codec import column_union
from datamorph.errors import FormatError

logger = logging.getLogger(__name__)

SHAPE_ERROR = "Expected an array of objects or a single object."


def flatten_json(
    nested_dict: dict,
    parent_key: str = "",
    separator: str = ".",
    max_depth: int = 10,
) -> dict:
    """Flatten a nested JSON dictionary.

    Args:
        nested_dict: The nested dictionary to flatten
        parent_key: Prefix for flattened keys
        separator: Separator between nested key levels
        max_depth: Maximum nesting depth to flatten

    Returns:
        Flattened dictionary with concatenated keys

    Example:
        >>> flatten_json({"a": {"b": 1, "c": {"d": 2}}})
        {"a.b": 1, "a.c.d": 2}
    """
    items: list[tuple[str, Any]] = []

    for key, value in nested_dict.items():
        new_key = f"{parent_key}{separator}{key}" if parent_key else key

        if isinstance(value, dict) and value and max_depth > 0:
            items.extend(
                flatten_json(
                    value,
                    parent_key=new_key,
                    separator=separator,
                    max_depth=max_depth - 1,
                ).items()
            )
        else:
            # Lists and empty objects stay whole; they become JSON text in the grid
            items.append((new_key, value))

    return dict(items)


def flatten_records(
    records: list[dict],
    separator: str = ".",
    max_depth: int = 10,
) -> list[dict]:
    """Flatten a list of nested JSON records.

    Non-object elements are passed through unchanged.
    """
    flattened = []

    for i, record in enumerate(records):
        if not isinstance(record, dict):
            flattened.append(record)
            continue
        try:
            flattened.append(
                flatten_json(record, separator=separator, max_depth=max_depth)
            )
        except RecursionError as e:
            logger.error(
                f"Error flattening record at index {i}: {e}",
                extra={"record_index": i, "error": str(e)}
            )
            raise FormatError(f"Record {i} is nested too deeply to flatten") from e

    logger.debug(f"Flattened {len(flattened)} records")
    return flattened


def _grid_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return value


def to_flat_records(
    data: Any,
    mode: str = "json",
    separator: str = ".",
) -> list[dict]:
    """Project JSON data onto a rectangular record set.

    The column union is computed over the whole array before any row is
    built, and every row starts with ``""`` for every column. In ``json``
    mode nested objects/arrays are serialized to JSON strings; in ``dotted``
    mode nested objects become ``parent.child`` columns first.

    Args:
        data: A list of objects or a single object
        mode: "json" or "dotted"
        separator: Key separator for dotted mode

    Raises:
        FormatError: If data is neither a list nor an object
    """
    if isinstance(data, dict):
        rows = [data]
    elif isinstance(data, list):
        rows = data
    else:
        raise FormatError(SHAPE_ERROR)

    if mode == "dotted":
        rows = flatten_records(rows, separator=separator)
    elif mode != "json":
        raise FormatError(f"Unknown flatten mode: {mode}")

    columns = column_union(rows)
    flat_rows = []
    for item in rows:
        flat = {column: "" for column in columns}
        if isinstance(item, dict):
            for key, value in item.items():
                flat[key] = _grid_value(value)
        flat_rows.append(flat)

    logger.debug(
        f"Flattened {len(flat_rows)} rows into {len(columns)} columns",
        extra={"mode": mode, "row_count": len(flat_rows), "column_count": len(columns)},
    )
    return flat_rows


def unflatten_record(record: dict, separator: str = ".") -> dict:
    """Rebuild nested objects from dotted column names.

    A column whose path collides with a scalar value (``a`` and ``a.b`` both
    present) is kept flat under its original name.

    Example:
        >>> unflatten_record({"id": 1, "address.city": "Oslo"})
        {"id": 1, "address": {"city": "Oslo"}}
    """
    columns = set(record)
    result: dict = {}

    for key, value in record.items():
        parts = key.split(separator) if separator and separator in key else [key]
        blocked = any(part == "" for part in parts) or any(
            separator.join(parts[:i]) in columns for i in range(1, len(parts))
        )
        if blocked:
            result[key] = value
            continue

        target = result
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = value

    return result


def unflatten_records(records: list[dict], separator: str = ".") -> list[dict]:
    """Apply ``unflatten_record`` to each record."""
    return [
        unflatten_record(record, separator) if isinstance(record, dict) else record
        for record in records
    ]
