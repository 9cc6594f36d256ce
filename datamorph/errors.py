"""Error taxonomy for the conversion pipeline.

Every error raised to callers derives from ``ConversionError`` and carries a
human-readable message. Stage prefixes ("Failed to convert ...",
"Failed to apply ...", "Custom transformation failed: ...") are added with
``with_prefix`` at the boundary where the stage is known.
"""

from typing import Optional


class ConversionError(Exception):
    """Base class for all pipeline failures."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        self.message = message
        self.file_path = file_path
        super().__init__(message)

    def with_prefix(self, prefix: str) -> "ConversionError":
        """Return the same error type with ``prefix: `` prepended."""
        error = type(self)(f"{prefix}: {self.message}", file_path=self.file_path)
        error.__cause__ = self
        return error


class ParseError(ConversionError):
    """Malformed source content (CSV quoting, invalid JSON)."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        row: Optional[int] = None,
    ):
        self.row = row
        super().__init__(message, file_path=file_path)

    def with_prefix(self, prefix: str) -> "ParseError":
        error = super().with_prefix(prefix)
        error.row = self.row
        return error


class FormatError(ConversionError):
    """Structurally valid input with the wrong shape, or a bad format pairing."""


class UnsupportedOperationError(FormatError):
    """The requested operation is not available for the given format."""


class ValidationError(ConversionError):
    """Bad options, rule documents or script syntax, caught before execution."""


class RuntimeTransformError(ConversionError):
    """An expression or script failed while being evaluated."""


class ConversionIOError(ConversionError):
    """Missing file, permission problem or destination collision."""
