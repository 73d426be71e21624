"""Tests for PluginService: every operation returns a ServiceResult."""

from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest

from tests.conftest import RecordingRunner, write_marketplace, write_plugin
from todoctl.config.models import OFFICIAL_MARKETPLACE, MarketplaceEntry, PluginEntry
from todoctl.config.settings import TodoSettings
from todoctl.config.store import ConfigStore
from todoctl.plugins.errors import PluginValidationError
from todoctl.services.plugins import PluginService, parse_plugin_spec


@pytest.fixture
def service(
    config_dir: Path,
    official_dir: Path,
    runner: RecordingRunner,
    monkeypatch: pytest.MonkeyPatch,
) -> PluginService:
    monkeypatch.setenv("TODOCTL_PLUGIN_SYSTEM__OFFICIAL_SOURCE", str(official_dir))
    return PluginService(TodoSettings.from_cli(), runner=runner)


class TestParsePluginSpec:
    def test_plain(self) -> None:
        assert parse_plugin_spec("pomodoro") == ("pomodoro", None)

    def test_with_marketplace(self) -> None:
        assert parse_plugin_spec("pomodoro@acme") == ("pomodoro", "acme")

    def test_trailing_at(self) -> None:
        with pytest.raises(PluginValidationError, match="Missing marketplace"):
            parse_plugin_spec("pomodoro@")


class TestPluginOperations:
    def test_list_empty(self, service: PluginService) -> None:
        result = service.list_plugins()
        assert result.ok
        assert result.data == {"plugins": [], "count": 0}

    def test_install_then_list(self, service: PluginService, local_marketplace: Path) -> None:
        installed = service.install("hello@acme")
        assert installed.ok, installed.error
        assert installed.op == "plugin_install"
        assert installed.data["version"] == "1.0.0"
        assert "warnings" not in installed.data

        listed = service.list_plugins()
        assert listed.data["count"] == 1
        assert listed.data["plugins"][0]["marketplace"] == "acme"

    def test_install_not_found(self, service: PluginService, local_marketplace: Path) -> None:
        result = service.install("nope")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"
        assert result.error.detail["alternatives"] == ["hello"]

    def test_install_invalid_name(self, service: PluginService) -> None:
        result = service.install("../../etc")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "INVALID_NAME"

    def test_install_dependency_warning(
        self,
        config_dir: Path,
        official_dir: Path,
        tmp_path: Path,
        store: ConfigStore,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        root = tmp_path / "deps"
        write_plugin(root / "p", "p", requirements="requests\n")
        write_marketplace(root, [{"name": "p", "source": "./p"}])
        with store.edit() as config:
            config.marketplaces["deps"] = MarketplaceEntry(source=str(root))
        monkeypatch.setenv("TODOCTL_PLUGIN_SYSTEM__OFFICIAL_SOURCE", str(official_dir))
        runner = RecordingRunner(fail_on={"uv": "no uv", sys.executable: "no pip"})
        service = PluginService(TodoSettings.from_cli(), runner=runner)

        result = service.install("p")
        assert result.ok
        assert len(result.warnings) == 1
        assert "Failed to install dependencies" in result.warnings[0]

    def test_remove(self, service: PluginService, local_marketplace: Path) -> None:
        service.install("hello")
        result = service.remove("hello")
        assert result.ok
        assert result.data == {"name": "hello", "removed": True}
        assert result.warnings == []

    def test_remove_missing_warns(self, service: PluginService) -> None:
        result = service.remove("ghost")
        assert result.ok
        assert result.data["removed"] is False
        assert result.warnings == ["Plugin 'ghost' was not installed"]

    def test_enable_disable(
        self, service: PluginService, store: ConfigStore, local_marketplace: Path
    ) -> None:
        service.install("hello")
        assert service.disable("hello").data == {"name": "hello", "enabled": False}
        assert store.load().plugins["hello"].enabled is False
        assert service.enable("hello").data == {"name": "hello", "enabled": True}

    def test_enable_unknown(self, service: PluginService) -> None:
        result = service.enable("ghost")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"

    def test_update_single(self, service: PluginService, local_marketplace: Path) -> None:
        service.install("hello")
        result = service.update("hello")
        assert result.ok
        assert result.data["updated"] == 0
        assert result.data["results"][0]["message"] == "Already at latest version"

    def test_update_all(
        self, service: PluginService, store: ConfigStore, local_marketplace: Path
    ) -> None:
        service.install("hello")
        with store.edit() as config:
            config.plugins["stale"] = PluginEntry(source="stale@vanished")
        result = service.update()
        assert result.ok
        assert [r["name"] for r in result.data["results"]] == ["hello", "stale"]

    def test_update_not_installed(self, service: PluginService) -> None:
        result = service.update("ghost")
        assert not result.ok

    def test_discover(self, service: PluginService, local_marketplace: Path) -> None:
        result = service.discover()
        assert result.ok
        assert result.data["count"] == 1
        assert result.data["plugins"][0]["marketplace"] == "acme"

    def test_broken_config_is_a_failure(self, service: PluginService, store: ConfigStore) -> None:
        store.path.write_text("plugins = [", encoding="utf-8")
        result = service.list_plugins()
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "CONFIG_ERROR"


class TestMarketplaceOperations:
    def test_list_official_first(self, service: PluginService, local_marketplace: Path) -> None:
        result = service.marketplace_list()
        names = [m["name"] for m in result.data["marketplaces"]]
        assert names == [OFFICIAL_MARKETPLACE, "acme"]
        assert result.data["marketplaces"][0]["official"] is True

    def test_add_and_remove(self, service: PluginService, store: ConfigStore) -> None:
        added = service.marketplace_add("github:acme/team")
        assert added.data == {"name": "team", "source": "github:acme/team"}
        assert "team" in store.load().marketplaces

        removed = service.marketplace_remove("team")
        assert removed.ok
        assert "team" not in store.load().marketplaces

    def test_add_insecure(self, service: PluginService) -> None:
        result = service.marketplace_add("http://example.com/m.json")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "INSECURE_SOURCE"

    def test_remove_official(self, service: PluginService) -> None:
        result = service.marketplace_remove(OFFICIAL_MARKETPLACE)
        assert result.error is not None
        assert result.error.code == "RESERVED_NAME"

    def test_refresh(
        self, service: PluginService, runner: RecordingRunner, store: ConfigStore
    ) -> None:
        service.marketplace_add("github:acme/team")
        result = service.marketplace_refresh()
        assert result.data == {"refreshed": ["team"]}
        assert runner.programs() == ["git clone"]

    def test_refresh_unknown(self, service: PluginService) -> None:
        result = service.marketplace_refresh("nope")
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"


class TestRemoteMarketplace:
    def test_discover_over_https(
        self,
        config_dir: Path,
        official_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        catalog = {"plugins": [{"name": "remote-one", "source": "github:acme/remote-one"}]}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=catalog))
        monkeypatch.setenv(
            "TODOCTL_PLUGIN_SYSTEM__OFFICIAL_SOURCE", "https://plugins.example.com/marketplace.json"
        )
        service = PluginService(TodoSettings.from_cli(), transport=transport)
        result = service.discover()
        assert [p["name"] for p in result.data["plugins"]] == ["remote-one"]


class TestBundledPlugins:
    @pytest.fixture
    def bundled_service(
        self,
        config_dir: Path,
        official_dir: Path,
        runner: RecordingRunner,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> PluginService:
        shipped = tmp_path / "shipped"
        write_plugin(shipped / "counter", "counter", version="1.0.0")
        monkeypatch.setattr("todoctl.services.plugins.bundled_plugins_dir", lambda: shipped)
        monkeypatch.setenv("TODOCTL_PLUGIN_SYSTEM__OFFICIAL_SOURCE", str(official_dir))
        return PluginService(TodoSettings.from_cli(), runner=runner)

    def test_first_operation_sets_up_bundled(
        self, bundled_service: PluginService, store: ConfigStore
    ) -> None:
        result = bundled_service.list_plugins()
        assert result.ok, result.error
        [plugin] = result.data["plugins"]
        assert plugin["name"] == "counter"
        assert plugin["source"] == "bundled:counter"
        assert plugin["bundled"] is True
        assert plugin["enabled"] is False
        assert store.load().plugins["counter"].enabled is False

    def test_enable_bundled(self, bundled_service: PluginService, store: ConfigStore) -> None:
        assert bundled_service.enable("counter").ok
        assert store.load().plugins["counter"].enabled is True

    def test_update_bundled(self, bundled_service: PluginService) -> None:
        result = bundled_service.update("counter")
        assert result.ok, result.error
        [item] = result.data["results"]
        assert item["message"] == "Already at latest version"

    def test_broken_config_fails_bundled_setup_cleanly(
        self, bundled_service: PluginService, store: ConfigStore
    ) -> None:
        store.path.write_text("plugins = [", encoding="utf-8")
        result = bundled_service.list_plugins()
        assert result.error is not None
        assert result.error.code == "CONFIG_ERROR"
