"""Command-line entrypoint.

Usage:
    datamorph convert data/users.csv --to json
    datamorph convert data/report.xlsx --to csv --sheets
    datamorph convert data/users.csv --to json --rules data-transform.yaml
    datamorph batch data/ --to excel --batch-size 10
    datamorph preview data/users.json --max-rows 20
    datamorph init-rules data/
    datamorph sample data/
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

from datamorph.batch import build_units, run_batch
from datamorph.config import TARGET_FORMATS, FLATTEN_MODES, load_settings
from datamorph.convert import convert_file, convert_workbook_sheets
from datamorph.errors import ConversionError
from datamorph.preview import build_preview
from datamorph.samples import create_sample_workbook, write_rules_template
from datamorph.utils import read_text, setup_logging

logger = logging.getLogger(__name__)


def _add_option_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--to",
        dest="target_format",
        choices=TARGET_FORMATS,
        required=True,
        help="Target format",
    )
    parser.add_argument("--delimiter", default=None, help="CSV delimiter")
    parser.add_argument("--indent", type=int, default=None, help="JSON indentation")
    parser.add_argument(
        "--flatten",
        dest="flatten_mode",
        choices=FLATTEN_MODES,
        default=None,
        help="Nested value handling for grid output (default: json)",
    )
    parser.add_argument("--sheet-name", default=None, help="Sheet name for workbook output")
    parser.add_argument(
        "--no-types",
        action="store_true",
        help="Keep CSV cells as strings instead of inferring numbers/booleans",
    )
    parser.add_argument("--overwrite", action="store_true", help="Replace existing outputs")

    transform = parser.add_mutually_exclusive_group()
    transform.add_argument("--rules", dest="rules_file_path", help="YAML rule file")
    transform.add_argument("--script", help="Transformation function body")
    transform.add_argument("--script-file", help="File holding a transformation function body")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="datamorph",
        description="Convert data between CSV, JSON and Excel workbooks",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default: DATAMORPH_LOG_LEVEL or INFO)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Log as JSON lines")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")

    commands = parser.add_subparsers(dest="command", required=True)

    convert = commands.add_parser("convert", help="Convert one file")
    convert.add_argument("path", help="Source file")
    convert.add_argument(
        "--sheets",
        action="store_true",
        help="Convert every sheet of a workbook to its own file",
    )
    _add_option_arguments(convert)

    batch = commands.add_parser("batch", help="Convert every file in a folder")
    batch.add_argument("folder", help="Folder with source files")
    batch.add_argument("--batch-size", type=int, default=None, help="Units between checkpoints")
    _add_option_arguments(batch)

    preview = commands.add_parser("preview", help="Print preview data as JSON")
    preview.add_argument("path", help="Source file")
    preview.add_argument("--max-rows", type=int, default=100, help="Rows per table")
    preview.add_argument("--delimiter", default=None, help="CSV delimiter")

    init_rules = commands.add_parser("init-rules", help="Write a starter rule file")
    init_rules.add_argument("path", nargs="?", default=".", help="File or folder")
    init_rules.add_argument("--overwrite", action="store_true")

    sample = commands.add_parser("sample", help="Write a sample workbook")
    sample.add_argument("path", nargs="?", default=".", help="File or folder")
    sample.add_argument("--overwrite", action="store_true")

    return parser


def _options_from_args(args, settings):
    overrides = {"overwrite_files": args.overwrite}
    if args.delimiter is not None:
        overrides["delimiter"] = args.delimiter
    if args.indent is not None:
        overrides["indentation"] = args.indent
    if args.flatten_mode is not None:
        overrides["flatten_mode"] = args.flatten_mode
    if args.sheet_name is not None:
        overrides["sheet_name"] = args.sheet_name
    if args.no_types:
        overrides["preserve_types"] = False
    if args.rules_file_path:
        overrides["rules_file_path"] = args.rules_file_path
    if args.script:
        overrides["scripted_transform"] = args.script
    elif args.script_file:
        overrides["scripted_transform"] = read_text(args.script_file)
    return settings.to_options(args.target_format, **overrides)


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _run_convert(args, settings) -> int:
    options = _options_from_args(args, settings)
    if args.sheets:
        results = convert_workbook_sheets(args.path, options=options)
    else:
        results = [convert_file(args.path, options=options)]
    for result in results:
        _print_json(result.to_dict())
    return 0


def _run_batch(args, settings) -> int:
    options = _options_from_args(args, settings)
    batch_size = args.batch_size or settings.batch_processing_size
    report = run_batch(
        build_units(args.folder, options),
        batch_size=batch_size,
        on_progress=lambda progress: logger.info(progress.describe()),
    )
    print(report.summary())
    for error in report.errors:
        print(error, file=sys.stderr)
    return 0 if report.failed == 0 else 1


def _run_preview(args, settings) -> int:
    options = settings.to_options("json")
    if args.delimiter is not None:
        options = settings.to_options("json", delimiter=args.delimiter)
    _print_json(asdict(build_preview(args.path, options, max_rows=args.max_rows)))
    return 0


COMMANDS = {
    "convert": _run_convert,
    "batch": _run_batch,
    "preview": _run_preview,
    "init-rules": lambda args, settings: _print_path(
        write_rules_template(args.path, overwrite=args.overwrite)
    ),
    "sample": lambda args, settings: _print_path(
        create_sample_workbook(args.path, overwrite=args.overwrite)
    ),
}


def _print_path(path) -> int:
    print(path)
    return 0


def main(argv: Optional[list] = None) -> int:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except ConversionError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 2

    setup_logging(level=args.log_level or settings.log_level, json_format=args.json_logs)

    try:
        return COMMANDS[args.command](args, settings)
    except ConversionError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
