"""Tests for per-plugin key-value storage."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from todoctl.plugins.storage import MemoryStorage, PluginStorage


@pytest.fixture
def storage(tmp_path: Path) -> Iterator[PluginStorage]:
    s = PluginStorage.for_plugin_dir(tmp_path / "plugins" / "pomodoro")
    try:
        yield s
    finally:
        s.close()


class TestPluginStorage:
    def test_creates_database_under_plugin_dir(self, tmp_path: Path) -> None:
        s = PluginStorage.for_plugin_dir(tmp_path / "p")
        s.close()
        assert (tmp_path / "p" / "data" / "storage.db").is_file()

    def test_set_get_json_values(self, storage: PluginStorage) -> None:
        storage.set("settings", {"minutes": 25, "sounds": ["bell"]})
        storage.set("count", 3)
        assert storage.get("settings") == {"minutes": 25, "sounds": ["bell"]}
        assert storage.get("count") == 3

    def test_get_default(self, storage: PluginStorage) -> None:
        assert storage.get("missing") is None
        assert storage.get("missing", 7) == 7

    def test_set_overwrites(self, storage: PluginStorage) -> None:
        storage.set("k", 1)
        storage.set("k", 2)
        assert storage.get("k") == 2

    def test_delete(self, storage: PluginStorage) -> None:
        storage.set("k", 1)
        storage.delete("k")
        storage.delete("never-set")
        assert storage.get("k") is None

    def test_list_with_prefix(self, storage: PluginStorage) -> None:
        for key in ("timer:a", "timer:b", "stats", "timer_x"):
            storage.set(key, True)
        assert storage.list() == ["stats", "timer:a", "timer:b", "timer_x"]
        assert storage.list("timer:") == ["timer:a", "timer:b"]

    def test_list_prefix_treats_wildcards_literally(self, storage: PluginStorage) -> None:
        storage.set("a%b", 1)
        storage.set("axb", 2)
        assert storage.list("a%") == ["a%b"]

    def test_persists_across_instances(self, tmp_path: Path) -> None:
        first = PluginStorage.for_plugin_dir(tmp_path)
        first.set("k", "v")
        first.close()
        second = PluginStorage.for_plugin_dir(tmp_path)
        try:
            assert second.get("k") == "v"
        finally:
            second.close()


class TestTaskScopedStorage:
    def test_task_data_is_separate_per_task(self, storage: PluginStorage) -> None:
        storage.set_task_data("t1", "pomodoros", 2)
        storage.set_task_data("t2", "pomodoros", 5)
        assert storage.get_task_data("t1", "pomodoros") == 2
        assert storage.get_task_data("t2", "pomodoros") == 5
        assert storage.get("pomodoros") is None

    def test_for_task_view(self, storage: PluginStorage) -> None:
        view = storage.for_task("t1")
        view.set("b", 1)
        view.set("a", {"x": 1})
        assert view.get("a") == {"x": 1}
        assert view.keys() == ["a", "b"]
        view.delete("b")
        assert view.keys() == ["a"]
        assert view.get("b", "gone") == "gone"

    def test_delete_task_data(self, storage: PluginStorage) -> None:
        storage.set_task_data("t1", "k", 1)
        storage.delete_task_data("t1", "k")
        assert storage.task_keys("t1") == []


class TestTransactions:
    def test_commit_on_success(self, storage: PluginStorage) -> None:
        with storage.transaction() as tx:
            tx.set("a", 1)
            tx.set_task_data("t1", "b", 2)
        assert storage.get("a") == 1
        assert storage.get_task_data("t1", "b") == 2

    def test_rollback_on_error(self, storage: PluginStorage) -> None:
        storage.set("a", "before")
        with pytest.raises(RuntimeError), storage.transaction() as tx:
            tx.set("a", "during")
            tx.set("b", "new")
            raise RuntimeError("boom")
        assert storage.get("a") == "before"
        assert storage.get("b") is None

    def test_reads_inside_transaction_see_writes(self, storage: PluginStorage) -> None:
        with storage.transaction() as tx:
            tx.set("a", 1)
            assert tx.get("a") == 1

    def test_nested_transaction_joins_outer(self, storage: PluginStorage) -> None:
        with pytest.raises(RuntimeError), storage.transaction():
            with storage.transaction() as inner:
                inner.set("a", 1)
            raise RuntimeError("boom")
        assert storage.get("a") is None


class TestMemoryStorage:
    def test_values_are_copied(self) -> None:
        storage = MemoryStorage()
        value = {"items": [1]}
        storage.set("k", value)
        value["items"].append(2)
        assert storage.get("k") == {"items": [1]}

    def test_transaction_rollback(self) -> None:
        storage = MemoryStorage()
        storage.set("a", 1)
        with pytest.raises(ValueError), storage.transaction():
            storage.set("a", 2)
            storage.set_task_data("t", "k", 1)
            raise ValueError
        assert storage.get("a") == 1
        assert storage.task_keys("t") == []

    def test_list_and_close(self) -> None:
        storage = MemoryStorage()
        storage.set("b:1", 1)
        storage.set("a:1", 1)
        assert storage.list() == ["a:1", "b:1"]
        assert storage.list("b:") == ["b:1"]
        storage.close()
        assert storage.closed is True
