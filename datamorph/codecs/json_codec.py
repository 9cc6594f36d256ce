"""JSON parsing and pretty-printing for the pipeline."""

import json
import logging
import math
from datetime import date, datetime, time
from typing import Any

from datamorph.errors import ParseError

logger = logging.getLogger(__name__)


def decode_json(text: str) -> Any:
    """Parse JSON text.

    Raises:
        ParseError: If the text is not valid JSON
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(
            f"Invalid JSON: {e.msg} at line {e.lineno} column {e.colno}",
            row=e.lineno,
        ) from e


def _default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (set, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _sanitize(value: Any) -> Any:
    # NaN and infinities are not JSON; they serialize as null
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    if isinstance(value, dict):
        return {k: _sanitize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_sanitize(v) for v in value]
    return value


def encode_json(data: Any, indentation: int = 2) -> str:
    """Serialize data as JSON with ``indentation`` spaces (0 = compact)."""
    text = json.dumps(
        _sanitize(data),
        indent=indentation if indentation > 0 else None,
        separators=(",", ": ") if indentation > 0 else (",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=_default,
    )
    logger.debug(f"Encoded JSON ({len(text)} chars)")
    return text
