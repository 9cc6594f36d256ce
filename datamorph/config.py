"""Conversion options and environment-backed settings.

Options are always passed explicitly into pipeline entry points. Defaults
that users change per machine (delimiter, indentation, batch size) come from
the environment or a ``.env`` file through ``load_settings``.
"""

import logging
import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from datamorph.errors import ValidationError

logger = logging.getLogger(__name__)

TARGET_FORMATS = ("csv", "json", "excel")
FLATTEN_MODES = ("json", "dotted")


@dataclass(frozen=True)
class ConversionOptions:
    """Options for a single conversion unit."""

    target_format: str = "json"
    preserve_types: bool = True
    overwrite_files: bool = False
    delimiter: str = ","
    indentation: int = 2
    scripted_transform: Optional[str] = None
    rules_file_path: Optional[str] = None
    flatten_mode: str = "json"
    sheet_name: str = "Sheet1"

    @property
    def has_script(self) -> bool:
        return bool(self.scripted_transform and self.scripted_transform.strip())

    @property
    def has_rules(self) -> bool:
        return bool(self.rules_file_path)

    def with_target(self, target_format: str) -> "ConversionOptions":
        return replace(self, target_format=target_format)

    def validate(self) -> None:
        """Check option values and combinations.

        Raises:
            ValidationError: If any option is out of range or two exclusive
                options are both set
        """
        errors = []

        if self.target_format not in TARGET_FORMATS:
            errors.append(
                f"Unknown target format '{self.target_format}' "
                f"(expected one of {', '.join(TARGET_FORMATS)})"
            )
        if len(self.delimiter) != 1:
            errors.append(
                f"CSV delimiter must be a single character, got {self.delimiter!r}"
            )
        elif self.delimiter in ('"', "\n", "\r"):
            errors.append(f"CSV delimiter {self.delimiter!r} is not allowed")
        if isinstance(self.indentation, bool) or not isinstance(self.indentation, int):
            errors.append("JSON indentation must be an integer")
        elif self.indentation < 0:
            errors.append("JSON indentation must be >= 0")
        if self.flatten_mode not in FLATTEN_MODES:
            errors.append(
                f"Unknown flatten mode '{self.flatten_mode}' "
                f"(expected one of {', '.join(FLATTEN_MODES)})"
            )
        if self.has_script and self.has_rules:
            errors.append(
                "A scripted transform and a rules file cannot be used together"
            )

        if errors:
            raise ValidationError("Invalid conversion options: " + "; ".join(errors))


@dataclass(frozen=True)
class Settings:
    """User-facing defaults."""

    preserve_data_types: bool = True
    csv_delimiter: str = ","
    json_indentation: int = 2
    batch_processing_size: int = 5
    flatten_mode: str = "json"
    log_level: str = "INFO"

    def to_options(self, target_format: str, **overrides) -> ConversionOptions:
        """Build ConversionOptions for a target format from these settings."""
        options = ConversionOptions(
            target_format=target_format,
            preserve_types=self.preserve_data_types,
            delimiter=self.csv_delimiter,
            indentation=self.json_indentation,
            flatten_mode=self.flatten_mode,
        )
        if overrides:
            options = replace(options, **overrides)
        return options


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValidationError(f"{name} must be a boolean, got {raw!r}")


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}, got {value}")
    return value


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from environment variables / an optional .env file.

    Args:
        env_file: Path to a .env file (defaults to ``.env`` in the working
            directory, when present)

    Returns:
        Settings built from DATAMORPH_* variables
    """
    load_dotenv(dotenv_path=env_file)

    settings = Settings(
        preserve_data_types=_env_bool("DATAMORPH_PRESERVE_DATA_TYPES", True),
        csv_delimiter=os.getenv("DATAMORPH_CSV_DELIMITER") or ",",
        json_indentation=_env_int("DATAMORPH_JSON_INDENTATION", 2),
        batch_processing_size=_env_int("DATAMORPH_BATCH_SIZE", 5, minimum=1),
        flatten_mode=os.getenv("DATAMORPH_FLATTEN_MODE") or "json",
        log_level=(os.getenv("DATAMORPH_LOG_LEVEL") or "INFO").upper(),
    )

    logger.debug("Settings loaded", extra={"settings": asdict(settings)})
    return settings
