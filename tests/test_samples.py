"""Tests for the starter rule file and sample workbook."""

import pytest

from datamorph.codecs import decode_workbook
from datamorph.errors import ConversionIOError
from datamorph.samples import (
    DEFAULT_RULES_FILE,
    SAMPLE_INVENTORY,
    SAMPLE_SALES,
    create_sample_workbook,
    write_rules_template,
)
from datamorph.transform.rules import load_rules


class TestRulesTemplate:
    """Tests for the starter rule file."""

    def test_template_is_a_valid_rule_file(self, tmp_path):
        """The generated file loads with one rule of each kind."""
        path = write_rules_template(tmp_path)

        assert path.name == DEFAULT_RULES_FILE
        rules = load_rules(path)
        assert [rule.kind for rule in rules] == ["filter", "mapping", "calculate"]
        assert rules[1].mapping == {"userName": "name", "userEmail": "email"}

    def test_existing_file_kept(self, tmp_path):
        """No silent overwrite."""
        path = tmp_path / "rules.yaml"
        path.write_text("mine", encoding="utf-8")

        with pytest.raises(ConversionIOError, match="already exists"):
            write_rules_template(path)
        assert path.read_text(encoding="utf-8") == "mine"

        write_rules_template(path, overwrite=True)
        assert path.read_text(encoding="utf-8").startswith("# DataMorph")


class TestSampleWorkbook:
    """Tests for the sample workbook."""

    def test_sheets_and_rows(self, tmp_path):
        """Sales and Inventory sheets with their rows."""
        path = create_sample_workbook(tmp_path)
        workbook = decode_workbook(path.read_bytes())

        assert workbook.sheet_names == ["Sales", "Inventory"]
        assert workbook.get("Sales").records == SAMPLE_SALES
        assert workbook.get("Inventory").records == SAMPLE_INVENTORY

    def test_existing_workbook_kept(self, tmp_path):
        """Refuses to replace an existing file."""
        create_sample_workbook(tmp_path)
        with pytest.raises(ConversionIOError):
            create_sample_workbook(tmp_path)
