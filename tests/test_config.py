"""Tests for conversion options and settings."""

import pytest

from datamorph.config import ConversionOptions, Settings, load_settings
from datamorph.errors import ValidationError

ENV_VARS = (
    "DATAMORPH_PRESERVE_DATA_TYPES",
    "DATAMORPH_CSV_DELIMITER",
    "DATAMORPH_JSON_INDENTATION",
    "DATAMORPH_BATCH_SIZE",
    "DATAMORPH_FLATTEN_MODE",
    "DATAMORPH_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start from an empty DATAMORPH_* environment and restore it after."""
    for name in ENV_VARS:
        # setenv first so values loaded from a .env file are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


class TestConversionOptions:
    """Tests for option validation."""

    def test_defaults_are_valid(self):
        """Default options pass validation."""
        options = ConversionOptions()
        options.validate()

        assert options.target_format == "json"
        assert options.delimiter == ","
        assert options.indentation == 2
        assert options.preserve_types is True

    @pytest.mark.parametrize("kwargs, message", [
        ({"target_format": "yaml"}, "Unknown target format"),
        ({"delimiter": ";;"}, "single character"),
        ({"delimiter": ""}, "single character"),
        ({"delimiter": '"'}, "not allowed"),
        ({"indentation": -1}, ">= 0"),
        ({"flatten_mode": "deep"}, "Unknown flatten mode"),
    ])
    def test_invalid_values(self, kwargs, message):
        """Out-of-range options are rejected."""
        with pytest.raises(ValidationError, match=message):
            ConversionOptions(**kwargs).validate()

    def test_script_and_rules_exclusive(self):
        """Only one transform kind per unit."""
        options = ConversionOptions(scripted_transform="return data;", rules_file_path="r.yaml")
        with pytest.raises(ValidationError, match="cannot be used together"):
            options.validate()

    def test_all_problems_reported(self):
        """Every invalid option is listed."""
        with pytest.raises(ValidationError) as exc_info:
            ConversionOptions(target_format="x", indentation=-2).validate()
        assert "Unknown target format" in str(exc_info.value)
        assert "indentation" in str(exc_info.value)

    def test_blank_script_is_no_script(self):
        """Whitespace-only scripts are ignored."""
        assert not ConversionOptions(scripted_transform="  \n").has_script
        assert ConversionOptions(scripted_transform="return data;").has_script

    def test_with_target(self):
        """with_target returns a copy."""
        options = ConversionOptions(delimiter=";")
        csv_options = options.with_target("csv")

        assert csv_options.target_format == "csv"
        assert csv_options.delimiter == ";"
        assert options.target_format == "json"


class TestSettings:
    """Tests for environment-backed settings."""

    def test_defaults(self, tmp_path):
        """No variables means defaults."""
        settings = load_settings(tmp_path / "missing.env")
        assert settings == Settings()

    def test_from_environment(self, monkeypatch, tmp_path):
        """DATAMORPH_* variables override defaults."""
        monkeypatch.setenv("DATAMORPH_CSV_DELIMITER", ";")
        monkeypatch.setenv("DATAMORPH_JSON_INDENTATION", "4")
        monkeypatch.setenv("DATAMORPH_PRESERVE_DATA_TYPES", "false")
        monkeypatch.setenv("DATAMORPH_BATCH_SIZE", "10")
        monkeypatch.setenv("DATAMORPH_LOG_LEVEL", "debug")

        settings = load_settings(tmp_path / "missing.env")

        assert settings.csv_delimiter == ";"
        assert settings.json_indentation == 4
        assert settings.preserve_data_types is False
        assert settings.batch_processing_size == 10
        assert settings.log_level == "DEBUG"

    def test_from_env_file(self, tmp_path):
        """A .env file supplies values."""
        env_file = tmp_path / ".env"
        env_file.write_text("DATAMORPH_JSON_INDENTATION=0\n", encoding="utf-8")

        assert load_settings(env_file).json_indentation == 0

    @pytest.mark.parametrize("name, value, message", [
        ("DATAMORPH_JSON_INDENTATION", "abc", "must be an integer"),
        ("DATAMORPH_PRESERVE_DATA_TYPES", "maybe", "must be a boolean"),
        ("DATAMORPH_BATCH_SIZE", "0", ">= 1"),
    ])
    def test_invalid_environment(self, monkeypatch, tmp_path, name, value, message):
        """Malformed variables are validation errors."""
        monkeypatch.setenv(name, value)
        with pytest.raises(ValidationError, match=message):
            load_settings(tmp_path / "missing.env")

    def test_to_options(self):
        """Settings feed option defaults; overrides win."""
        settings = Settings(csv_delimiter=";", json_indentation=4, preserve_data_types=False)
        options = settings.to_options("csv", overwrite_files=True)

        assert options == ConversionOptions(
            target_format="csv",
            preserve_types=False,
            overwrite_files=True,
            delimiter=";",
            indentation=4,
        )
