"""Tests for the command-line entrypoint."""

import io
import json
import logging

import pytest

from datamorph.cli import main
from datamorph.utils import JsonFormatter, setup_logging


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    """Undo handler changes made by setup_logging."""
    package_logger = logging.getLogger("datamorph")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    propagate = package_logger.propagate
    monkeypatch.delenv("DATAMORPH_LOG_LEVEL", raising=False)
    yield
    package_logger.handlers = handlers
    package_logger.setLevel(level)
    package_logger.propagate = propagate


class TestConvertCommand:
    """Tests for datamorph convert."""

    def test_convert_prints_result(self, csv_file, capsys):
        """Successful conversions print the result as JSON."""
        code = main(["convert", str(csv_file), "--to", "json", "--indent", "0"])

        assert code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["status"] == "converted"
        assert result["record_count"] == 3
        assert csv_file.with_suffix(".json").read_text(encoding="utf-8").startswith('[{"id":1')

    def test_conversion_error_exit_code(self, csv_file, capsys):
        """Pipeline errors print a message and return 1."""
        code = main(["convert", str(csv_file), "--to", "excel", "--script", "return data;"])

        assert code == 1
        assert capsys.readouterr().err.strip().endswith(
            "error: Custom transformations for Excel files are not supported"
        )

    def test_script_file(self, csv_file, tmp_path):
        """Scripts can be read from a file."""
        script = tmp_path / "keep.txt"
        script.write_text("return data.filter(r => r.id > 1);", encoding="utf-8")

        assert main(["convert", str(csv_file), "--to", "json", "--script-file", str(script)]) == 0
        data = json.loads(csv_file.with_suffix(".json").read_text(encoding="utf-8"))
        assert [r["id"] for r in data] == [2, 3]

    def test_rules_and_script_exclusive(self, csv_file, rules_file):
        """argparse rejects both transform flags."""
        with pytest.raises(SystemExit) as exc_info:
            main([
                "convert", str(csv_file), "--to", "json",
                "--rules", str(rules_file), "--script", "return data;",
            ])
        assert exc_info.value.code == 2

    def test_sheets(self, workbook_file, capsys):
        """--sheets prints one result per sheet."""
        assert main(["convert", str(workbook_file), "--to", "csv", "--sheets"]) == 0
        assert (workbook_file.parent / "report_Orders.csv").exists()
        assert capsys.readouterr().out.count('"status": "converted"') == 2


class TestOtherCommands:
    """Tests for batch, preview and generators."""

    def test_batch(self, tmp_path, capsys):
        """Batch prints the summary."""
        (tmp_path / "a.csv").write_text("x\n1\n", encoding="utf-8")
        (tmp_path / "b.csv").write_text("x\n2\n", encoding="utf-8")

        assert main(["batch", str(tmp_path), "--to", "json"]) == 0
        assert "Converted: 2" in capsys.readouterr().out

    def test_batch_with_failures(self, tmp_path, capsys):
        """Failed units give exit code 1 and list errors."""
        (tmp_path / "bad.json").write_text("{", encoding="utf-8")

        assert main(["batch", str(tmp_path), "--to", "csv"]) == 1
        assert "Error converting bad.json" in capsys.readouterr().err

    def test_preview(self, json_file, capsys):
        """Preview data is printed as JSON."""
        assert main(["preview", str(json_file), "--max-rows", "1"]) == 0
        preview = json.loads(capsys.readouterr().out)

        assert preview["file_type"] == "json"
        assert preview["tables"][0]["total_rows"] == 2
        assert len(preview["tables"][0]["rows"]) == 1

    def test_init_rules_and_sample(self, tmp_path):
        """Generators write into a folder."""
        assert main(["init-rules", str(tmp_path)]) == 0
        assert main(["sample", str(tmp_path)]) == 0
        assert (tmp_path / "data-transform.yaml").exists()
        assert (tmp_path / "sample-sales.xlsx").exists()

    def test_bad_settings(self, csv_file, monkeypatch, capsys):
        """Invalid environment settings exit with 2."""
        monkeypatch.setenv("DATAMORPH_JSON_INDENTATION", "wide")

        assert main(["convert", str(csv_file), "--to", "json"]) == 2
        assert "DATAMORPH_JSON_INDENTATION" in capsys.readouterr().err


class TestLogging:
    """Tests for log output."""

    def test_json_logs_include_extra_fields(self):
        """JSON lines carry the extra= context."""
        stream = io.StringIO()
        setup_logging(level="INFO", json_format=True, stream=stream)

        logging.getLogger("datamorph.test").info("hello", extra={"batch_id": "b1"})

        payload = json.loads(stream.getvalue())
        assert payload["message"] == "hello"
        assert payload["batch_id"] == "b1"
        assert payload["logger"] == "datamorph.test"

    def test_formatter_skips_reserved_attributes(self):
        """Standard record attributes are not duplicated."""
        record = logging.LogRecord("datamorph", logging.INFO, __file__, 1, "msg", None, None)
        payload = json.loads(JsonFormatter().format(record))
        assert "lineno" not in payload
        assert payload["level"] == "INFO"
