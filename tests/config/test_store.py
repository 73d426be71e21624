"""Tests for ConfigStore: config.toml read-modify-write."""

from __future__ import annotations

import tomllib
from pathlib import Path

import pytest

from todoctl.config.models import MarketplaceEntry, PluginEntry, PluginSystemConfig
from todoctl.config.store import ConfigError, ConfigStore


class TestLoad:
    def test_missing_file_yields_defaults(self, tmp_path: Path) -> None:
        config = ConfigStore(tmp_path / "config.toml").load()
        assert config.plugins == {}
        assert config.marketplaces == {}
        assert config.auth.api_token is None

    def test_invalid_toml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("[plugins\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            ConfigStore(path).load()

    def test_non_utf8_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_bytes(b'[auth]\napi_token = "caf\xe9"\n')
        with pytest.raises(ConfigError, match="not UTF-8"):
            ConfigStore(path).load()

    def test_invalid_shape_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text('plugins = "nope"\n', encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            ConfigStore(path).load()

    def test_plugin_specific_keys_are_kept(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text(
            '[plugins.pomodoro]\nsource = "pomodoro@acme"\nwork_minutes = 50\n',
            encoding="utf-8",
        )
        entry = ConfigStore(path).load().plugins["pomodoro"]
        assert entry.enabled is True
        assert entry.marketplace == "acme"
        assert entry.plugin_config() == {"work_minutes": 50}


class TestSave:
    def test_round_trip_keeps_unknown_sections(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text('[ui]\ntheme = "dark"\n', encoding="utf-8")
        store = ConfigStore(path)
        with store.edit() as config:
            config.plugins["hello"] = PluginEntry(source="hello@acme", version="1.0.0")

        data = tomllib.loads(path.read_text(encoding="utf-8"))
        assert data["ui"] == {"theme": "dark"}
        assert data["plugins"]["hello"]["source"] == "hello@acme"

    def test_host_sections_stay_sparse(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        store = ConfigStore(path)
        with store.edit() as config:
            config.marketplaces["acme"] = MarketplaceEntry(source="github:acme/plugins")

        data = tomllib.loads(path.read_text(encoding="utf-8"))
        assert "auth" not in data
        assert "plugin_system" not in data

    def test_overridden_host_values_are_written(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        store = ConfigStore(path)
        with store.edit() as config:
            config.plugin_system = PluginSystemConfig(command_timeout=60)

        data = tomllib.loads(path.read_text(encoding="utf-8"))
        assert data["plugin_system"] == {"command_timeout": 60}

    def test_edit_writes_nothing_on_error(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        store = ConfigStore(path)
        with pytest.raises(RuntimeError), store.edit() as config:
            config.plugins["hello"] = PluginEntry(source="hello@acme")
            raise RuntimeError("boom")
        assert not path.exists()

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        store = ConfigStore(tmp_path / "config.toml")
        with store.edit() as config:
            config.plugins["hello"] = PluginEntry(source="hello@acme")
        assert [p.name for p in tmp_path.iterdir()] == ["config.toml"]
