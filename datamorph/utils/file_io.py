"""File I/O utilities for conversion sources and outputs."""

import logging
import re
from pathlib import Path
from typing import Union

from datamorph.errors import ConversionIOError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

FORMAT_EXTENSIONS = {
    "csv": ".csv",
    "json": ".json",
    "excel": ".xlsx",
}

_SOURCE_EXTENSIONS = {
    ".csv": "csv",
    ".json": "json",
    ".xlsx": "excel",
    ".xls": "excel",
}

_CONVERTIBLE_SUFFIX = re.compile(r"\.(csv|json|xlsx|xls)$", re.IGNORECASE)


def detect_file_type(file_path: PathLike) -> str:
    """Detect the data format from the file extension.

    Returns:
        One of "csv", "json", "excel" or "unknown"
    """
    return _SOURCE_EXTENSIONS.get(Path(file_path).suffix.lower(), "unknown")


def extension_for(target_format: str) -> str:
    """Canonical file extension for a target format."""
    try:
        return FORMAT_EXTENSIONS[target_format]
    except KeyError:
        raise ValueError(f"Unknown target format: {target_format}")


def output_path_for(source_path: PathLike, target_format: str) -> Path:
    """Replace the source extension with the target's canonical extension.

    Example:
        >>> output_path_for("data/users.csv", "excel")
        PosixPath('data/users.xlsx')
    """
    source_path = Path(source_path)
    extension = extension_for(target_format)
    if _CONVERTIBLE_SUFFIX.search(source_path.name):
        name = _CONVERTIBLE_SUFFIX.sub(extension, source_path.name)
    else:
        name = source_path.name + extension
    return source_path.with_name(name)


def read_bytes(file_path: PathLike) -> bytes:
    """Read a file as bytes, wrapping OS errors."""
    try:
        return Path(file_path).read_bytes()
    except OSError as e:
        raise ConversionIOError(
            f"Cannot read {file_path}: {e.strerror or e}", file_path=str(file_path)
        ) from e


def read_text(file_path: PathLike, encoding: str = "utf-8-sig") -> str:
    """Read a text file; a leading UTF-8 BOM is dropped.

    Raises:
        ConversionIOError: If the file cannot be read or decoded
    """
    data = read_bytes(file_path)
    try:
        text = data.decode(encoding)
    except UnicodeDecodeError as e:
        raise ConversionIOError(
            f"Cannot decode {file_path} as {encoding}: {e.reason}",
            file_path=str(file_path),
        ) from e
    logger.debug(f"Read {len(data)} bytes from {file_path}")
    return text


def write_bytes(file_path: PathLike, data: bytes) -> dict:
    """Write bytes to a file, creating parent directories.

    Returns:
        Metadata dict with file info
    """
    output_path = Path(file_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(data)
        size = output_path.stat().st_size
    except OSError as e:
        raise ConversionIOError(
            f"Cannot write {output_path}: {e.strerror or e}",
            file_path=str(output_path),
        ) from e

    metadata = {
        "file_path": str(output_path),
        "file_size_bytes": size,
    }
    logger.debug(f"Wrote {size} bytes to {output_path}", extra=metadata)
    return metadata


def write_text(file_path: PathLike, text: str, encoding: str = "utf-8") -> dict:
    """Write a text file, creating parent directories."""
    return write_bytes(file_path, text.encode(encoding))
