"""Conversion orchestrator: decode, flatten, encode, write, then transform.

Usage:
    from datamorph.config import ConversionOptions
    from datamorph.convert import convert_file

    result = convert_file("data/users.csv", "json", ConversionOptions())
    print(result.status, result.output_path)
"""

import logging
import time
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Union

from datamorph.codecs import (
    decode_csv,
    decode_json,
    decode_workbook,
    encode_csv,
    encode_json,
    encode_records,
    first_sheet_records,
)
from datamorph.config import ConversionOptions
from datamorph.errors import (
    ConversionError,
    FormatError,
    RuntimeTransformError,
    UnsupportedOperationError,
)
from datamorph.transform import (
    apply_rules,
    compile_script,
    load_rules,
    run_script,
    to_flat_records,
    unflatten_records,
)
from datamorph.utils import (
    ConversionLogger,
    detect_file_type,
    extension_for,
    output_path_for,
    read_bytes,
    read_text,
    write_bytes,
    write_text,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Content = Union[str, bytes]

FORMAT_LABELS = {"csv": "CSV", "json": "JSON", "excel": "Excel"}


@dataclass
class ConversionResult:
    """Outcome of one conversion unit."""

    source_path: str
    source_format: str
    target_format: str
    status: str
    output_path: Optional[str] = None
    reason: Optional[str] = None
    record_count: Optional[int] = None
    transform: Optional[str] = None
    duration_ms: Optional[float] = None

    @property
    def converted(self) -> bool:
        return self.status == "converted"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


# ============================================
# Format pairs
# ============================================

def _json_output(records: Any, options: ConversionOptions) -> str:
    if options.flatten_mode == "dotted" and isinstance(records, list):
        records = unflatten_records(records)
    return encode_json(records, options.indentation)


def _csv_to_json(content: str, options: ConversionOptions) -> tuple:
    records = decode_csv(content, options.delimiter, options.preserve_types)
    return _json_output(records, options), len(records)


def _csv_to_excel(content: str, options: ConversionOptions) -> tuple:
    records = decode_csv(content, options.delimiter, options.preserve_types)
    return encode_records(records, options.sheet_name), len(records)


def _json_to_csv(content: str, options: ConversionOptions) -> tuple:
    rows = to_flat_records(decode_json(content), mode=options.flatten_mode)
    return encode_csv(rows, options.delimiter), len(rows)


def _json_to_excel(content: str, options: ConversionOptions) -> tuple:
    rows = to_flat_records(decode_json(content), mode=options.flatten_mode)
    return encode_records(rows, options.sheet_name), len(rows)


def _excel_to_json(content: bytes, options: ConversionOptions) -> tuple:
    records = first_sheet_records(decode_workbook(content))
    return _json_output(records, options), len(records)


def _excel_to_csv(content: bytes, options: ConversionOptions) -> tuple:
    records = first_sheet_records(decode_workbook(content))
    return encode_csv(records, options.delimiter), len(records)


CONVERTERS: dict[tuple[str, str], Callable[[Any, ConversionOptions], tuple]] = {
    ("csv", "json"): _csv_to_json,
    ("csv", "excel"): _csv_to_excel,
    ("json", "csv"): _json_to_csv,
    ("json", "excel"): _json_to_excel,
    ("excel", "json"): _excel_to_json,
    ("excel", "csv"): _excel_to_csv,
}


def _convert(
    content: Content,
    source_format: str,
    target_format: str,
    options: ConversionOptions,
) -> tuple:
    converter = CONVERTERS.get((source_format, target_format))
    if converter is None:
        raise FormatError(f"Unsupported conversion: {source_format} to {target_format}")

    try:
        return converter(content, options)
    except ConversionError as e:
        raise e.with_prefix(
            f"Failed to convert {FORMAT_LABELS[source_format]} "
            f"to {FORMAT_LABELS[target_format]}"
        ) from e


def convert_content(
    content: Content,
    source_format: str,
    target_format: str,
    options: Optional[ConversionOptions] = None,
) -> Content:
    """Convert in-memory content between formats.

    Args:
        content: Text for csv/json sources, bytes for excel sources
        source_format: "csv", "json" or "excel"
        target_format: "csv", "json" or "excel"
        options: Conversion options (defaults apply when omitted)

    Returns:
        Text for csv/json targets, .xlsx bytes for excel targets

    Raises:
        FormatError: For an unsupported pairing or bad data shape
        ParseError: For malformed source content
    """
    options = (options or ConversionOptions()).with_target(target_format)
    options.validate()
    output, _ = _convert(content, source_format, target_format, options)
    return output


# ============================================
# Validation before I/O
# ============================================

def check_transforms(options: ConversionOptions) -> list:
    """Validate transform options for the target format before any I/O.

    Returns:
        The loaded rules when a rule file is configured, else an empty list

    Raises:
        UnsupportedOperationError: Transform requested for an ineligible target
        ValidationError: Script does not compile or rule file is invalid
    """
    if options.target_format == "excel" and (options.has_script or options.has_rules):
        raise UnsupportedOperationError(
            "Custom transformations for Excel files are not supported"
        )
    if options.has_rules and options.target_format != "json":
        raise UnsupportedOperationError("Rule files can only be applied to JSON output")

    if options.has_script:
        compile_script(options.scripted_transform)
        return []
    if options.has_rules:
        return load_rules(options.rules_file_path)
    return []


def _read_source(path: Path, source_format: str) -> Content:
    if source_format == "excel":
        return read_bytes(path)
    return read_text(path)


def _write_output(path: Path, output: Content) -> dict:
    if isinstance(output, bytes):
        return write_bytes(path, output)
    return write_text(path, output)


# ============================================
# Post-conversion transforms
# ============================================

def _apply_post_transform(
    output_path: Path,
    options: ConversionOptions,
    rules: list,
    conversion_logger: ConversionLogger,
) -> Optional[str]:
    """Rewrite the written output through the rule engine or a script.

    The converted file stays in place when the transform fails.
    """
    if not (options.has_rules or options.has_script):
        return None

    start = time.perf_counter()
    text = read_text(output_path)

    if options.has_rules:
        kind = "rules"
        data = decode_json(text)
        result = apply_rules(data, rules)
        write_text(output_path, encode_json(result, options.indentation))
    elif output_path.suffix.lower() == ".json":
        kind = "script"
        data = decode_json(text)
        result = run_script(data, options.scripted_transform)
        write_text(output_path, encode_json(result, options.indentation))
    else:
        kind = "script"
        data = text
        result = run_script(text, options.scripted_transform)
        if not isinstance(result, str):
            raise RuntimeTransformError(
                "Custom transformation failed: script must return a string for CSV output"
            )
        write_text(output_path, result)

    conversion_logger.log_transform(
        kind=kind,
        input_count=len(data) if isinstance(data, list) else None,
        output_count=len(result) if isinstance(result, list) else None,
        duration_ms=(time.perf_counter() - start) * 1000,
    )
    return kind


# ============================================
# File conversion
# ============================================

def _resolve(
    source_path: PathLike,
    target_format: Optional[str],
    options: Optional[ConversionOptions],
) -> tuple:
    options = options or ConversionOptions()
    if target_format is not None:
        options = options.with_target(target_format)
    options.validate()

    source = Path(source_path)
    source_format = detect_file_type(source)
    if source_format == "unknown":
        raise FormatError(
            f"Unsupported file type: {source.suffix or source.name}",
            file_path=str(source),
        )
    return source, source_format, options


def convert_file(
    source_path: PathLike,
    target_format: Optional[str] = None,
    options: Optional[ConversionOptions] = None,
    batch_id: Optional[str] = None,
) -> ConversionResult:
    """Convert one file and write the result next to it.

    Args:
        source_path: Path of a .csv, .json, .xlsx or .xls file
        target_format: Overrides ``options.target_format`` when given
        options: Conversion options
        batch_id: Shared identifier for log correlation

    Returns:
        ConversionResult with status "converted" or "skipped"

    Raises:
        ConversionError: Any validation, I/O, codec or transform failure
    """
    source, source_format, options = _resolve(source_path, target_format, options)
    target = options.target_format
    conversion_logger = ConversionLogger(source.name, batch_id or uuid.uuid4().hex[:12])

    result = ConversionResult(
        source_path=str(source),
        source_format=source_format,
        target_format=target,
        status="skipped",
    )

    if source_format == target:
        result.reason = f"File is already in {FORMAT_LABELS[target]} format"
        conversion_logger.skipped("convert", result.reason)
        return result

    rules = check_transforms(options)

    output_path = output_path_for(source, target)
    result.output_path = str(output_path)
    if output_path.exists() and not options.overwrite_files:
        result.reason = f"Output file already exists: {output_path.name}"
        conversion_logger.skipped("convert", result.reason)
        return result

    conversion_logger.start("convert")
    start = time.perf_counter()
    try:
        content = _read_source(source, source_format)
        output, record_count = _convert(content, source_format, target, options)
        metadata = _write_output(output_path, output)
        conversion_logger.log_write(
            output_path=str(output_path),
            row_count=record_count,
            file_size_bytes=metadata["file_size_bytes"],
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        result.transform = _apply_post_transform(
            output_path, options, rules, conversion_logger
        )
    except ConversionError as e:
        if e.file_path is None:
            e.file_path = str(source)
        conversion_logger.error("convert", e)
        raise

    result.status = "converted"
    result.record_count = record_count
    result.duration_ms = round((time.perf_counter() - start) * 1000, 2)
    conversion_logger.success(
        "convert", output_path=str(output_path), row_count=record_count
    )
    return result


def sheet_output_path(source_path: PathLike, sheet_name: str, target_format: str) -> Path:
    """``<stem>_<sheet>.<ext>`` next to the source workbook."""
    source = Path(source_path)
    return source.with_name(f"{source.stem}_{sheet_name}{extension_for(target_format)}")


def convert_workbook_sheets(
    source_path: PathLike,
    target_format: Optional[str] = None,
    options: Optional[ConversionOptions] = None,
    batch_id: Optional[str] = None,
) -> list[ConversionResult]:
    """Convert every sheet of a workbook into its own csv or json file.

    Each output follows the same overwrite policy as ``convert_file``.

    Raises:
        UnsupportedOperationError: If the source is not a workbook or the
            target is excel
    """
    source, source_format, options = _resolve(source_path, target_format, options)
    target = options.target_format
    if source_format != "excel":
        raise UnsupportedOperationError(
            f"Sheet-by-sheet conversion needs a workbook source, got {source_format}"
        )
    if target == "excel":
        raise UnsupportedOperationError("Sheet-by-sheet conversion targets csv or json")

    rules = check_transforms(options)
    conversion_logger = ConversionLogger(source.name, batch_id or uuid.uuid4().hex[:12])
    label = f"Failed to convert Excel to {FORMAT_LABELS[target]}"

    try:
        workbook = decode_workbook(read_bytes(source))
    except FormatError as e:
        raise e.with_prefix(label) from e

    results = []
    for sheet in workbook.sheets:
        output_path = sheet_output_path(source, sheet.name, target)
        result = ConversionResult(
            source_path=str(source),
            source_format=source_format,
            target_format=target,
            status="skipped",
            output_path=str(output_path),
        )
        if output_path.exists() and not options.overwrite_files:
            result.reason = f"Output file already exists: {output_path.name}"
            conversion_logger.skipped(f"sheet:{sheet.name}", result.reason)
            results.append(result)
            continue

        start = time.perf_counter()
        if target == "json":
            output = _json_output(sheet.records, options)
        else:
            output = encode_csv(sheet.records, options.delimiter)
        metadata = write_text(output_path, output)
        conversion_logger.log_write(
            output_path=str(output_path),
            row_count=len(sheet.records),
            file_size_bytes=metadata["file_size_bytes"],
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        result.transform = _apply_post_transform(output_path, options, rules, conversion_logger)
        result.status = "converted"
        result.record_count = len(sheet.records)
        result.duration_ms = round((time.perf_counter() - start) * 1000, 2)
        results.append(result)

    logger.info(
        f"Converted {sum(r.converted for r in results)} of {len(results)} sheets "
        f"from {source.name}",
        extra={"source": source.name, "sheets": workbook.sheet_names},
    )
    return results
