"""Tests for oht.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from oht.core.config import (
    DEFAULT_GIT_LOCATION_FILE,
    DEFAULT_OCM_BINARY,
    DEFAULT_VALUES_FILE,
    Config,
    load_config,
    load_config_or_default,
)
from oht.core.result import Err, Ok


class TestConfigDefaults:
    def test_defaults(self) -> None:
        config = Config()
        assert config.ocm.binary == DEFAULT_OCM_BINARY
        assert config.bundle.component_name_prefix is None
        assert config.bundle.provider_name is None
        assert config.unbundle.values_file == DEFAULT_VALUES_FILE
        assert config.unbundle.git_location_file == DEFAULT_GIT_LOCATION_FILE

    def test_frozen(self) -> None:
        config = Config()
        with pytest.raises(AttributeError):
            config.ocm = None  # type: ignore[misc]


class TestConfigFromDict:
    def test_empty_dict_gives_defaults(self) -> None:
        assert Config.from_dict({}) == Config()

    def test_all_sections(self) -> None:
        config = Config.from_dict(
            {
                "ocm": {"binary": "/opt/ocm/bin/ocm"},
                "bundle": {"component_name_prefix": "example.org/", "provider_name": "example"},
                "unbundle": {"values_file": "values-airgap.yaml", "git_location_file": "source.json"},
            }
        )
        assert config.ocm.binary == "/opt/ocm/bin/ocm"
        assert config.bundle.component_name_prefix == "example.org/"
        assert config.bundle.provider_name == "example"
        assert config.unbundle.values_file == "values-airgap.yaml"
        assert config.unbundle.git_location_file == "source.json"

    def test_blank_strings_fall_back(self) -> None:
        config = Config.from_dict({"ocm": {"binary": "  "}, "bundle": {"provider_name": ""}})
        assert config.ocm.binary == DEFAULT_OCM_BINARY
        assert config.bundle.provider_name is None

    def test_wrong_types_are_ignored(self) -> None:
        config = Config.from_dict({"ocm": "not a table", "bundle": {"provider_name": 42}})
        assert config == Config()

    def test_file_names_must_be_plain(self) -> None:
        with pytest.raises(ValueError, match="plain file name"):
            Config.from_dict({"unbundle": {"values_file": "../values.yaml"}})


class TestLoadConfig:
    def test_load_valid(self, tmp_path: Path) -> None:
        path = tmp_path / "oht.toml"
        path.write_text('[bundle]\nprovider_name = "example"\n', encoding="utf-8")

        result = load_config(path)

        assert isinstance(result, Ok)
        assert result.value.bundle.provider_name == "example"

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "missing.toml")
        assert isinstance(result, Err)
        assert "not found" in result.error.message

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "oht.toml"
        path.write_text("[bundle\n", encoding="utf-8")

        result = load_config(path)

        assert isinstance(result, Err)
        assert "Invalid TOML syntax" in result.error.message
        assert result.error.path == path

    def test_invalid_structure(self, tmp_path: Path) -> None:
        path = tmp_path / "oht.toml"
        path.write_text('[unbundle]\nvalues_file = "sub/values.yaml"\n', encoding="utf-8")

        result = load_config(path)

        assert isinstance(result, Err)
        assert "Invalid config structure" in result.error.message


class TestLoadConfigOrDefault:
    def test_missing_file_gives_default(self, tmp_path: Path) -> None:
        assert load_config_or_default(tmp_path / "oht.toml") == Ok(Config())

    def test_existing_invalid_file_is_error(self, tmp_path: Path) -> None:
        path = tmp_path / "oht.toml"
        path.write_text("not toml at all [", encoding="utf-8")
        assert isinstance(load_config_or_default(path), Err)
