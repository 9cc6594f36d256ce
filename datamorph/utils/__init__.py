"""Utility modules for the pipeline.

Includes:
- Logging configuration
- Structured conversion logging
- File I/O helpers
"""

from .logging_config import JsonFormatter, setup_logging
from .file_io import (
    detect_file_type,
    extension_for,
    output_path_for,
    read_bytes,
    read_text,
    write_bytes,
    write_text,
)
from .pipeline_logger import ConversionLogger

__all__ = [
    "setup_logging",
    "JsonFormatter",
    "detect_file_type",
    "extension_for",
    "output_path_for",
    "read_bytes",
    "read_text",
    "write_bytes",
    "write_text",
    "ConversionLogger",
]
