"""Tests for configuration loading and settings."""

import pytest
from pydantic import ValidationError

from phpapidoc.core.config import ConfigLoader, LoggingSettings, ParserSettings, Settings
from phpapidoc.core.config.loader import DEFAULT_CONFIG_PATH
from phpapidoc.core.exceptions import ConfigurationError


class TestConfigLoader:
    """Tests for YAML configuration loading."""

    def test_load_and_get(self, temp_dir):
        """Test dotted-key lookups on a loaded file."""
        path = temp_dir / "config.yaml"
        path.write_text("parser:\n  max_workers: 4\n  extensions:\n    - .php\n", encoding="utf-8")

        loader = ConfigLoader(path)
        config = loader.load()

        assert config["parser"]["max_workers"] == 4
        assert loader.get("parser.max_workers") == 4
        assert loader.get("parser.missing", "fallback") == "fallback"
        assert loader.get("parser.extensions") == [".php"]
        assert loader.get("logging.level") is None

    def test_missing_file(self, temp_dir):
        """Test a missing file raises a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader(temp_dir / "missing.yaml").load()

        assert "not found" in exc_info.value.message

    def test_invalid_yaml(self, temp_dir):
        """Test invalid YAML raises a configuration error."""
        path = temp_dir / "broken.yaml"
        path.write_text("parser: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigLoader(path).load()

    def test_non_mapping_root(self, temp_dir):
        """Test a YAML list at the root is rejected."""
        path = temp_dir / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigLoader(path).load()

    def test_non_mapping_section(self, temp_dir):
        """Test a section holding a scalar is rejected."""
        path = temp_dir / "section.yaml"
        path.write_text("parser: 4\n", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader(path).load()

        assert exc_info.value.details["config_key"] == "parser"

    def test_no_path(self):
        """Test loading without a path yields an empty config."""
        assert ConfigLoader().load() == {}

    def test_default_config(self):
        """Test the bundled default configuration loads."""
        assert DEFAULT_CONFIG_PATH.exists()
        loader = ConfigLoader.default()

        assert loader.get("parser.global_namespace") == "__GLOBAL__"


class TestSettings:
    """Tests for pydantic settings models."""

    def test_parser_defaults(self):
        """Test parser defaults."""
        settings = ParserSettings()

        assert settings.extensions == [".php"]
        assert settings.max_workers == 1
        assert settings.global_namespace == "__GLOBAL__"
        assert settings.markdown_extensions == ["fenced_code", "tables"]

    def test_extensions_normalised(self):
        """Test extensions get a leading dot and lowercase."""
        assert ParserSettings(extensions=["PHP", ".Inc"]).extensions == [".php", ".inc"]

    def test_max_workers_bounds(self):
        """Test worker count validation."""
        with pytest.raises(ValidationError):
            ParserSettings(max_workers=0)

    def test_env_override(self, monkeypatch):
        """Test environment variables override defaults."""
        monkeypatch.setenv("PHPAPIDOC_PARSER_MAX_WORKERS", "8")

        assert ParserSettings().max_workers == 8

    def test_logging_level_validation(self):
        """Test log levels are upper-cased and validated."""
        assert LoggingSettings(level="debug").level == "DEBUG"
        with pytest.raises(ValidationError):
            LoggingSettings(level="loud")

    def test_logging_file(self, temp_dir):
        """Test empty log file settings become None."""
        assert LoggingSettings(file="").file is None
        assert LoggingSettings(file=str(temp_dir / "a.log")).file == temp_dir / "a.log"

    def test_from_yaml(self, temp_dir):
        """Test settings built from a YAML file."""
        path = temp_dir / "settings.yaml"
        path.write_text(
            "parser:\n  max_workers: 2\n  encoding: latin-1\nlogging:\n  level: warning\n  use_rich: false\n",
            encoding="utf-8",
        )

        settings = Settings.from_yaml(path)

        assert settings.parser.max_workers == 2
        assert settings.parser.encoding == "latin-1"
        assert settings.logging.level == "WARNING"
        assert settings.logging.use_rich is False

    def test_yaml_overrides_defaults(self, temp_dir):
        """Test YAML values replace field defaults for unset variables."""
        path = temp_dir / "settings.yaml"
        path.write_text("parser:\n  max_file_size: 1024\n", encoding="utf-8")

        settings = Settings.from_yaml(path)

        assert settings.parser.max_file_size == 1024
        assert settings.parser.max_workers == 1
        assert settings.logging.level == "INFO"

    def test_env_overrides_yaml(self, temp_dir, monkeypatch):
        """Test environment variables win over values from the YAML file."""
        path = temp_dir / "settings.yaml"
        path.write_text("parser:\n  max_workers: 2\nlogging:\n  level: warning\n", encoding="utf-8")
        monkeypatch.setenv("PHPAPIDOC_PARSER_MAX_WORKERS", "8")
        monkeypatch.setenv("PHPAPIDOC_LOGGING_LEVEL", "debug")

        settings = Settings.from_yaml(path)

        assert settings.parser.max_workers == 8
        assert settings.logging.level == "DEBUG"

    def test_env_overrides_default_config(self, monkeypatch):
        """Test environment variables win over the bundled configuration."""
        monkeypatch.setenv("PHPAPIDOC_PARSER_MAX_WORKERS", "8")

        assert Settings.load().parser.max_workers == 8

    def test_yaml_only_applies_while_loading(self, temp_dir):
        """Test section settings built directly ignore earlier YAML loads."""
        path = temp_dir / "settings.yaml"
        path.write_text("parser:\n  max_workers: 3\n", encoding="utf-8")

        Settings.from_yaml(path)

        assert ParserSettings().max_workers == 1
