"""Per-plugin key-value storage.

Each plugin gets its own SQLite file at ``<plugin_dir>/data/storage.db``,
accessed through SQLAlchemy Core. Values are JSON-encoded. Task-scoped data
lives in a second table keyed by ``(task_id, key)``.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import Column, Connection, MetaData, Table, Text, create_engine, delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.engine import Engine

STORAGE_DIRNAME = "data"
STORAGE_FILENAME = "storage.db"

metadata = MetaData()

kv = Table(
    "kv",
    metadata,
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),  # JSON
)

task_data = Table(
    "task_data",
    metadata,
    Column("task_id", Text, primary_key=True),
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),  # JSON
)


class Storage(Protocol):
    """Storage surface handed to plugins as ``ctx.storage``."""

    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...
    def list(self, prefix: str = "") -> list[str]: ...
    def get_task_data(self, task_id: str, key: str, default: Any = None) -> Any: ...
    def set_task_data(self, task_id: str, key: str, value: Any) -> None: ...
    def delete_task_data(self, task_id: str, key: str) -> None: ...
    def task_keys(self, task_id: str) -> list[str]: ...
    def for_task(self, task_id: str) -> TaskStorage: ...
    def transaction(self) -> Any: ...
    def close(self) -> None: ...


class TaskStorage:
    """Storage view scoped to a single task."""

    def __init__(self, storage: Storage, task_id: str) -> None:
        self._storage = storage
        self.task_id = task_id

    def get(self, key: str, default: Any = None) -> Any:
        return self._storage.get_task_data(self.task_id, key, default)

    def set(self, key: str, value: Any) -> None:
        self._storage.set_task_data(self.task_id, key, value)

    def delete(self, key: str) -> None:
        self._storage.delete_task_data(self.task_id, key)

    def keys(self) -> list[str]:
        return self._storage.task_keys(self.task_id)


class PluginStorage:
    """SQLite-backed :class:`Storage`.

    Outside :meth:`transaction` every write commits immediately. Inside it,
    writes share one connection and commit together when the block exits
    (or roll back if it raises).
    """

    def __init__(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.path = db_path
        self._engine: Engine = create_engine(f"sqlite:///{db_path}", echo=False)
        metadata.create_all(self._engine)
        self._conn: Connection | None = None

    @classmethod
    def for_plugin_dir(cls, plugin_dir: Path) -> PluginStorage:
        return cls(plugin_dir / STORAGE_DIRNAME / STORAGE_FILENAME)

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        if self._conn is not None:
            yield self._conn
            return
        with self._engine.begin() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Iterator[PluginStorage]:
        if self._conn is not None:
            yield self
            return
        with self._engine.begin() as conn:
            self._conn = conn
            try:
                yield self
            finally:
                self._conn = None

    # ------------------------------------------------------------------
    # Plugin-wide keys
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        with self._connect() as conn:
            row = conn.execute(select(kv.c.value).where(kv.c.key == key)).first()
        return default if row is None else json.loads(row.value)

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        stmt = insert(kv).values(key=key, value=encoded)
        stmt = stmt.on_conflict_do_update(index_elements=[kv.c.key], set_={"value": encoded})
        with self._connect() as conn:
            conn.execute(stmt)

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute(delete(kv).where(kv.c.key == key))

    def list(self, prefix: str = "") -> list[str]:
        query = select(kv.c.key).order_by(kv.c.key)
        if prefix:
            query = query.where(kv.c.key.startswith(prefix, autoescape=True))
        with self._connect() as conn:
            return [row.key for row in conn.execute(query)]

    # ------------------------------------------------------------------
    # Task-scoped keys
    # ------------------------------------------------------------------

    def get_task_data(self, task_id: str, key: str, default: Any = None) -> Any:
        query = select(task_data.c.value).where(
            task_data.c.task_id == task_id, task_data.c.key == key
        )
        with self._connect() as conn:
            row = conn.execute(query).first()
        return default if row is None else json.loads(row.value)

    def set_task_data(self, task_id: str, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        stmt = insert(task_data).values(task_id=task_id, key=key, value=encoded)
        stmt = stmt.on_conflict_do_update(
            index_elements=[task_data.c.task_id, task_data.c.key], set_={"value": encoded}
        )
        with self._connect() as conn:
            conn.execute(stmt)

    def delete_task_data(self, task_id: str, key: str) -> None:
        stmt = delete(task_data).where(task_data.c.task_id == task_id, task_data.c.key == key)
        with self._connect() as conn:
            conn.execute(stmt)

    def task_keys(self, task_id: str) -> list[str]:
        query = (
            select(task_data.c.key).where(task_data.c.task_id == task_id).order_by(task_data.c.key)
        )
        with self._connect() as conn:
            return [row.key for row in conn.execute(query)]

    def for_task(self, task_id: str) -> TaskStorage:
        return TaskStorage(self, task_id)

    def close(self) -> None:
        self._engine.dispose()


class MemoryStorage:
    """In-memory :class:`Storage` for tests and plugin authors."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.task_data: dict[str, dict[str, Any]] = {}
        self.closed = False

    def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self.data.get(key, default))

    def set(self, key: str, value: Any) -> None:
        self.data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def list(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.data if k.startswith(prefix))

    def get_task_data(self, task_id: str, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self.task_data.get(task_id, {}).get(key, default))

    def set_task_data(self, task_id: str, key: str, value: Any) -> None:
        self.task_data.setdefault(task_id, {})[key] = copy.deepcopy(value)

    def delete_task_data(self, task_id: str, key: str) -> None:
        self.task_data.get(task_id, {}).pop(key, None)

    def task_keys(self, task_id: str) -> list[str]:
        return sorted(self.task_data.get(task_id, {}))

    def for_task(self, task_id: str) -> TaskStorage:
        return TaskStorage(self, task_id)

    @contextmanager
    def transaction(self) -> Iterator[MemoryStorage]:
        snapshot = (copy.deepcopy(self.data), copy.deepcopy(self.task_data))
        try:
            yield self
        except BaseException:
            self.data, self.task_data = snapshot
            raise

    def close(self) -> None:
        self.closed = True
