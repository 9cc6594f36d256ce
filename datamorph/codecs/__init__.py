"""Format codecs.

Handles:
- CSV decoding with type inference, CSV encoding
- JSON parsing and pretty-printing
- Workbook (.xlsx) sheets to and from record sets
"""

from .csv_codec import decode_csv, encode_csv, infer_value, column_union
from .json_codec import decode_json, encode_json
from .workbook import (
    Sheet,
    Workbook,
    decode_workbook,
    encode_workbook,
    encode_records,
    first_sheet_records,
)

__all__ = [
    # CSV
    "decode_csv",
    "encode_csv",
    "infer_value",
    "column_union",
    # JSON
    "decode_json",
    "encode_json",
    # Workbook
    "Sheet",
    "Workbook",
    "decode_workbook",
    "encode_workbook",
    "encode_records",
    "first_sheet_records",
]
