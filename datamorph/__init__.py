"""DataMorph: conversion between CSV, JSON and Excel workbooks.

Handles:
- Type-preserving codecs for CSV, JSON and .xlsx
- Flattening of nested JSON for grid formats
- Declarative rule files and scripted transforms
- Single-file, per-sheet and batch conversion
"""

from .config import ConversionOptions, Settings, load_settings
from .convert import ConversionResult, convert_content, convert_file, convert_workbook_sheets
from .batch import BatchControl, BatchUnit, run_batch
from .preview import build_preview
from .errors import (
    ConversionError,
    ParseError,
    FormatError,
    UnsupportedOperationError,
    ValidationError,
    RuntimeTransformError,
    ConversionIOError,
)

__version__ = "0.1.0"

__all__ = [
    "ConversionOptions",
    "Settings",
    "load_settings",
    "ConversionResult",
    "convert_content",
    "convert_file",
    "convert_workbook_sheets",
    "BatchControl",
    "BatchUnit",
    "run_batch",
    "build_preview",
    "ConversionError",
    "ParseError",
    "FormatError",
    "UnsupportedOperationError",
    "ValidationError",
    "RuntimeTransformError",
    "ConversionIOError",
]
