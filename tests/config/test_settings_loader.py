"""
Tests for the YAML settings loader.

Covers:
- Packaged defaults load and validate
- Partial files keep defaults for missing keys
- Unknown keys and wrongly typed values are rejected
- Checksum is deterministic
"""

from decimal import Decimal

import pytest
import yaml

from lumber_config.loader import compute_checksum, load_settings, load_yaml_file, parse_settings
from lumber_config.schema import LumberSettings


class TestLoadSettings:
    def test_packaged_defaults(self):
        settings = load_settings()

        assert settings == LumberSettings()

    def test_partial_file(self, tmp_path):
        path = tmp_path / "lumber.yaml"
        path.write_text(yaml.safe_dump({
            "settings": {"yield_enabled": True, "default_yield_pct": 88.5},
        }))

        settings = load_settings(path)

        assert settings.yield_enabled
        assert settings.default_yield_pct == Decimal("88.5")
        assert settings.fifo_enforced

    def test_top_level_mapping_without_settings_key(self, tmp_path):
        path = tmp_path / "lumber.yaml"
        path.write_text("tally_enabled: true\n")

        assert load_settings(path).tally_enabled

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("settings: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_settings(path)


class TestParseSettings:
    def test_unknown_key(self):
        with pytest.raises(KeyError, match="colour"):
            parse_settings({"colour": "red"})

    def test_string_boolean_rejected(self):
        with pytest.raises(ValueError, match="yield_enabled"):
            parse_settings({"yield_enabled": "yes"})

    def test_boolean_integer_rejected(self):
        with pytest.raises(ValueError, match="bf_precision"):
            parse_settings({"bf_precision": True})

    def test_bad_decimal(self):
        with pytest.raises(ValueError, match="default_width"):
            parse_settings({"default_width": "wide"})

    def test_decimal_from_float_goes_through_str(self):
        assert parse_settings({"default_thickness": 0.75}).default_thickness == Decimal("0.75")


class TestChecksum:
    def test_identical_settings_hash_identically(self):
        assert compute_checksum(LumberSettings()) == compute_checksum(load_settings())

    def test_change_alters_checksum(self):
        assert compute_checksum(LumberSettings()) != compute_checksum(
            LumberSettings(yield_enabled=True)
        )


class TestLoadYamlFile:
    def test_mapping(self, tmp_path):
        path = tmp_path / "lumber.yaml"
        path.write_text("settings:\n  tally_enabled: true\n")

        assert load_yaml_file(path) == {"settings": {"tally_enabled": True}}

    def test_empty_file_is_empty_mapping(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_yaml_file(path) == {}
