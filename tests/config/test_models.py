"""Tests for configuration models."""

from __future__ import annotations

from todoctl.config.models import OFFICIAL_MARKETPLACE_SOURCE, PluginEntry, PluginSystemConfig


class TestPluginEntry:
    def test_enabled_defaults_to_true(self) -> None:
        assert PluginEntry(source="x@y").enabled is True

    def test_marketplace_from_source(self) -> None:
        assert PluginEntry(source="pomodoro@acme").marketplace == "acme"

    def test_marketplace_none_without_at(self) -> None:
        assert PluginEntry(source="/some/path").marketplace is None

    def test_marketplace_none_with_trailing_at(self) -> None:
        assert PluginEntry(source="pomodoro@").marketplace is None

    def test_plugin_config_excludes_reserved_keys(self) -> None:
        entry = PluginEntry.model_validate(
            {"source": "a@b", "version": "1", "after": "c", "label": "inbox", "limit": 3}
        )
        assert entry.plugin_config() == {"label": "inbox", "limit": 3}


class TestPluginSystemConfig:
    def test_defaults(self) -> None:
        system = PluginSystemConfig()
        assert system.official_source == OFFICIAL_MARKETPLACE_SOURCE
        assert system.command_timeout is None
        assert system.http_timeout == 30.0
