"""Test doubles for plugin authors.

Usage in a plugin's test suite::

    from todoctl.plugins.testing import make_mock_context

    def test_tags_new_tasks():
        ctx = make_mock_context(config={"label": "inbox"})
        MyPlugin().on_load(ctx)
        ...
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from todoctl.api.client import ApiError
from todoctl.api.types import (
    Comment,
    CreateTaskParams,
    Due,
    Label,
    Project,
    Section,
    Task,
    TaskFilter,
    TodoApi,
    UpdateTaskParams,
)
from todoctl.plugins.api_proxy import HookedApi
from todoctl.plugins.context import NotifyLevel, PluginContext, UiControls
from todoctl.plugins.hooks import EmitResult, HookContext, HookEvent, HookRegistry
from todoctl.plugins.storage import MemoryStorage

M = TypeVar("M", bound=BaseModel)


class MockLogger:
    """Captures log calls as ``(level, event, fields)`` tuples."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str, dict[str, Any]]] = []

    def bind(self, **_fields: Any) -> MockLogger:
        return self

    def _log(self, level: str, event: str, **fields: Any) -> None:
        self.messages.append((level, event, fields))

    def debug(self, event: str, **fields: Any) -> None:
        self._log("debug", event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self._log("info", event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._log("warning", event, **fields)

    warn = warning

    def error(self, event: str, **fields: Any) -> None:
        self._log("error", event, **fields)

    def exception(self, event: str, **fields: Any) -> None:
        self._log("exception", event, **fields)

    def events(self, level: str | None = None) -> list[str]:
        return [event for lvl, event, _ in self.messages if level is None or lvl == level]


class MockUi:
    """:class:`~todoctl.plugins.context.UiControls` that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def set_status(self, message: str) -> None:
        self.calls.append(("set_status", (message,)))

    def notify(self, message: str, level: NotifyLevel = "info") -> None:
        self.calls.append(("notify", (message, level)))

    def navigate(self, view: str) -> None:
        self.calls.append(("navigate", (view,)))

    def open_modal(self, modal_id: str) -> None:
        self.calls.append(("open_modal", (modal_id,)))

    def refresh_tasks(self) -> None:
        self.calls.append(("refresh_tasks", ()))


class RecordingHookRegistry(HookRegistry):
    """:class:`HookRegistry` that also remembers every emission."""

    def __init__(self) -> None:
        super().__init__()
        self.emitted: list[tuple[HookEvent, HookContext]] = []

    def emit(self, event: HookEvent | str, context: HookContext) -> EmitResult:
        self.emitted.append((HookEvent(event), context))
        return super().emit(event, context)

    def events(self) -> list[HookEvent]:
        return [event for event, _ in self.emitted]


class FakeTodoApi:
    """In-memory :class:`~todoctl.api.types.TodoApi`. Every call is recorded in ``calls``."""

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self.tasks: dict[str, Task] = {task.id: task for task in tasks}
        self.projects: dict[str, Project] = {}
        self.labels: dict[str, Label] = {}
        self.sections: dict[str, Section] = {}
        self.comments: dict[str, Comment] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._ids = itertools.count(1)

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))

    def _next_id(self) -> str:
        return f"fake-{next(self._ids)}"

    @staticmethod
    def _lookup(store: dict[str, M], kind: str, ident: str) -> M:
        try:
            return store[ident]
        except KeyError:
            raise ApiError(f"{kind} {ident} not found", status_code=404) from None

    def _create(self, store: dict[str, M], model: type[M], params: dict[str, Any]) -> M:
        item = model.model_validate({**params, "id": self._next_id()})
        store[item.id] = item  # type: ignore[attr-defined]
        return item

    def _update(self, store: dict[str, M], kind: str, ident: str, changes: dict[str, Any]) -> M:
        item = self._lookup(store, kind, ident).model_copy(update=changes)
        store[ident] = item
        return item

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def get_tasks(self, task_filter: TaskFilter | None = None) -> list[Task]:
        self._record("get_tasks", task_filter)
        tasks = [t for t in self.tasks.values() if not t.is_completed]
        if task_filter and task_filter.project_id:
            tasks = [t for t in tasks if t.project_id == task_filter.project_id]
        if task_filter and task_filter.label:
            tasks = [t for t in tasks if task_filter.label in t.labels]
        return tasks

    def get_task(self, task_id: str) -> Task:
        self._record("get_task", task_id)
        return self._lookup(self.tasks, "Task", task_id)

    def create_task(self, params: CreateTaskParams) -> Task:
        self._record("create_task", params)
        fields = params.model_dump(exclude_none=True, exclude={"due_string", "due_date"})
        task = Task.model_validate({**fields, "id": self._next_id(), "due": _due(params)})
        self.tasks[task.id] = task
        return task

    def update_task(self, task_id: str, changes: UpdateTaskParams) -> Task:
        self._record("update_task", task_id, changes)
        update = changes.model_dump(exclude_none=True, exclude={"due_string", "due_date"})
        due = _due(changes)
        if due is not None:
            update["due"] = due
        return self._update(self.tasks, "Task", task_id, update)

    def close_task(self, task_id: str) -> None:
        self._record("close_task", task_id)
        self._update(self.tasks, "Task", task_id, {"is_completed": True})

    def reopen_task(self, task_id: str) -> None:
        self._record("reopen_task", task_id)
        self._update(self.tasks, "Task", task_id, {"is_completed": False})

    def delete_task(self, task_id: str) -> None:
        self._record("delete_task", task_id)
        self._lookup(self.tasks, "Task", task_id)
        del self.tasks[task_id]

    # ------------------------------------------------------------------
    # Projects, labels, sections, comments
    # ------------------------------------------------------------------

    def get_projects(self) -> list[Project]:
        self._record("get_projects")
        return list(self.projects.values())

    def get_project(self, project_id: str) -> Project:
        self._record("get_project", project_id)
        return self._lookup(self.projects, "Project", project_id)

    def create_project(self, params: dict[str, Any]) -> Project:
        self._record("create_project", params)
        return self._create(self.projects, Project, params)

    def update_project(self, project_id: str, changes: dict[str, Any]) -> Project:
        self._record("update_project", project_id, changes)
        return self._update(self.projects, "Project", project_id, changes)

    def delete_project(self, project_id: str) -> None:
        self._record("delete_project", project_id)
        self.projects.pop(project_id, None)

    def get_labels(self) -> list[Label]:
        self._record("get_labels")
        return list(self.labels.values())

    def get_label(self, label_id: str) -> Label:
        self._record("get_label", label_id)
        return self._lookup(self.labels, "Label", label_id)

    def create_label(self, params: dict[str, Any]) -> Label:
        self._record("create_label", params)
        return self._create(self.labels, Label, params)

    def update_label(self, label_id: str, changes: dict[str, Any]) -> Label:
        self._record("update_label", label_id, changes)
        return self._update(self.labels, "Label", label_id, changes)

    def delete_label(self, label_id: str) -> None:
        self._record("delete_label", label_id)
        self.labels.pop(label_id, None)

    def get_sections(self, project_id: str | None = None) -> list[Section]:
        self._record("get_sections", project_id)
        return [s for s in self.sections.values() if project_id in (None, s.project_id)]

    def get_section(self, section_id: str) -> Section:
        self._record("get_section", section_id)
        return self._lookup(self.sections, "Section", section_id)

    def create_section(self, params: dict[str, Any]) -> Section:
        self._record("create_section", params)
        return self._create(self.sections, Section, params)

    def update_section(self, section_id: str, changes: dict[str, Any]) -> Section:
        self._record("update_section", section_id, changes)
        return self._update(self.sections, "Section", section_id, changes)

    def delete_section(self, section_id: str) -> None:
        self._record("delete_section", section_id)
        self.sections.pop(section_id, None)

    def get_comments(self, task_id: str) -> list[Comment]:
        self._record("get_comments", task_id)
        return [c for c in self.comments.values() if c.task_id == task_id]

    def get_comment(self, comment_id: str) -> Comment:
        self._record("get_comment", comment_id)
        return self._lookup(self.comments, "Comment", comment_id)

    def create_comment(self, params: dict[str, Any]) -> Comment:
        self._record("create_comment", params)
        return self._create(self.comments, Comment, params)

    def update_comment(self, comment_id: str, changes: dict[str, Any]) -> Comment:
        self._record("update_comment", comment_id, changes)
        return self._update(self.comments, "Comment", comment_id, changes)

    def delete_comment(self, comment_id: str) -> None:
        self._record("delete_comment", comment_id)
        self.comments.pop(comment_id, None)


def _due(params: CreateTaskParams | UpdateTaskParams) -> Due | None:
    if params.due_date is None and params.due_string is None:
        return None
    return Due(date=params.due_date or "", string=params.due_string or params.due_date or "")


def make_mock_context(
    name: str = "test-plugin",
    *,
    api: TodoApi | None = None,
    hooks: HookRegistry | None = None,
    config: dict[str, Any] | None = None,
    plugin_dir: Path | None = None,
    ui: UiControls | None = None,
) -> PluginContext:
    """A :class:`PluginContext` backed entirely by in-memory doubles.

    When *hooks* is given, ``ctx.api`` emits task hooks through it just as
    it does inside the host.
    """
    backend = api if api is not None else FakeTodoApi()
    return PluginContext(
        name=name,
        api=HookedApi(backend, hooks) if hooks is not None else backend,
        storage=MemoryStorage(),
        plugin_dir=plugin_dir or Path.cwd(),
        log=MockLogger(),
        config=dict(config or {}),
        ui=ui,
    )
