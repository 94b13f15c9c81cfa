"""
Tests for configuration loading and validation.
"""

from pathlib import Path

import pytest
import yaml

from conftest import make_config
from statuskeeper.config import YamlConfigLoader, load_config, parse_config
from statuskeeper.core import ConfigError


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_valid_config(self, tmp_path: Path) -> None:
        """Test loading a valid configuration file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
name: "Acme Status"
check_interval_minutes: 5
data_retention_hours: 12
secret: "not-used-here"
categories:
  - name: "Public"
    description: "Customer facing"
    services:
      - name: "Website"
        description: "Marketing site"
        url: "https://acme.example.com"
        hide_url: true
        expected_response_code: 200
mail:
  enabled: true
  send_from: "status@acme.example.com"
  recipients: ["ops@acme.example.com"]
  smtp:
    host: "smtp.acme.example.com"
    port: 465
""")

        config = load_config(config_file)

        assert config.name == "Acme Status"
        assert config.check_interval_minutes == 5
        assert config.data_retention_hours == 12
        assert len(config.categories) == 1
        service = config.categories[0].services[0]
        assert service.url == "https://acme.example.com"
        assert service.hide_url is True
        assert config.mail.enabled is True
        assert config.mail.smtp.port == 465
        assert config.notifications_enabled is True

    def test_defaults(self) -> None:
        """Test default values for optional sections."""
        config = parse_config({})

        assert config.check_interval_minutes == 15
        assert config.data_retention_hours == 24
        assert config.watch_interval_seconds == 15
        assert config.probe.timeout_seconds == 7
        assert config.alerting.rule.type == "degradation_streak"
        assert config.mail.enabled is False
        assert config.notifications_enabled is False

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        """Test that an empty YAML document is treated as an empty mapping."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        config = load_config(config_file)

        assert config.categories == ()

    def test_load_missing_file(self) -> None:
        """Test that loading a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/config.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that malformed YAML raises a YAML error."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("categories: [unclosed")

        with pytest.raises(yaml.YAMLError):
            load_config(config_file)

    def test_invalid_interval(self) -> None:
        """Test that a non-positive check interval is rejected."""
        with pytest.raises(ConfigError):
            parse_config({"check_interval_minutes": 0})

    def test_non_mapping_root(self) -> None:
        """Test that a list document is rejected."""
        with pytest.raises(ConfigError):
            parse_config(["not", "a", "mapping"])  # type: ignore[arg-type]

    def test_duplicate_urls_rejected(self) -> None:
        """Test that a URL may only be configured once."""
        with pytest.raises(ConfigError, match="Duplicate service url"):
            parse_config({
                "categories": [
                    {"name": "One", "services": [{"name": "A", "url": "https://x.example.com"}]},
                    {"name": "Two", "services": [{"name": "B", "url": "https://x.example.com"}]},
                ]
            })

    def test_config_error_is_value_error(self) -> None:
        """Test that ConfigError can be handled as ValueError."""
        with pytest.raises(ValueError):
            parse_config({"data_retention_hours": -1})


class TestSnapshots:
    """Tests for snapshot immutability and comparison."""

    def test_equal_by_value(self) -> None:
        """Test that two loads of the same document compare equal."""
        assert make_config() == make_config()

    def test_nested_change_detected(self) -> None:
        """Test that a change deep inside a category makes snapshots differ."""
        changed = make_config(categories=[
            {"name": "Web", "services": [{"name": "A", "url": "https://a.example.com", "expected_response_code": 301}]}
        ])

        assert changed != make_config()

    def test_snapshot_is_frozen(self) -> None:
        """Test that snapshots cannot be mutated in place."""
        config = make_config()

        with pytest.raises(Exception):
            config.check_interval_minutes = 1  # type: ignore[misc]

    def test_check_interval_seconds(self) -> None:
        """Test the derived probe period."""
        assert make_config(check_interval_minutes=2).check_interval_seconds == 120


class TestYamlConfigLoader:
    """Tests for YamlConfigLoader."""

    def test_reads_file_on_every_load(self, tmp_path: Path) -> None:
        """Test that each load reflects the current file contents."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("check_interval_minutes: 5\n")
        loader = YamlConfigLoader(config_file)

        first = loader.load()
        config_file.write_text("check_interval_minutes: 10\n")
        second = loader.load()

        assert first.check_interval_minutes == 5
        assert second.check_interval_minutes == 10
