"""Domain API wrapper that runs task writes through the hook bus.

Before-events fire ahead of the underlying call; the waterfalled params or
changes are what reach the service, and a cancellation raises
:class:`~todoctl.plugins.errors.HookCancelledError` without calling it.
After-events fire once the call has succeeded. Everything else passes
through to the wrapped API unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TypeVar, cast

from todoctl.api.types import CreateTaskParams, Task, TaskFilter, TodoApi, UpdateTaskParams
from todoctl.plugins.errors import HookCancelledError
from todoctl.plugins.hooks import (
    EmitResult,
    HookContext,
    HookEvent,
    HookRegistry,
    TaskCompleted,
    TaskCompleting,
    TaskCreated,
    TaskCreating,
    TaskDeleted,
    TaskDeleting,
    TaskUpdated,
    TaskUpdating,
)

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=HookContext)


class HookedApi:
    """:class:`~todoctl.api.types.TodoApi` that emits task hooks.

    A handler that itself calls the API (through ``ctx.api``) does not
    trigger a nested emission; the guard is per proxy instance.
    """

    def __init__(self, api: TodoApi, hooks: HookRegistry) -> None:
        self._api = api
        self._hooks = hooks
        self._emitting = False
        self.messages: list[str] = []

    def __getattr__(self, name: str) -> Any:
        return getattr(self._api, name)

    @contextmanager
    def _guard(self) -> Iterator[bool]:
        if self._emitting:
            yield False
            return
        self._emitting = True
        try:
            yield True
        finally:
            self._emitting = False

    def _emit(self, event: HookEvent, context: HookContext) -> EmitResult | None:
        with self._guard() as active:
            if not active:
                return None
            result = self._hooks.emit(event, context)
        self.messages.extend(result.messages)
        return result

    def _before(self, event: HookEvent, context: C) -> C:
        result = self._emit(event, context)
        if result is None:
            return context
        if result.cancelled:
            logger.debug("%s cancelled: %s", event, result.reason)
            raise HookCancelledError(str(event), result.reason)
        return cast(C, result.context)

    def drain_messages(self) -> list[str]:
        """Return and clear display messages collected from handlers."""
        messages, self.messages = self.messages, []
        return messages

    # ------------------------------------------------------------------
    # Task reads
    # ------------------------------------------------------------------

    def get_tasks(self, task_filter: TaskFilter | None = None) -> list[Task]:
        return self._api.get_tasks(task_filter)

    def get_task(self, task_id: str) -> Task:
        return self._api.get_task(task_id)

    # ------------------------------------------------------------------
    # Task writes
    # ------------------------------------------------------------------

    def create_task(self, params: CreateTaskParams) -> Task:
        before = self._before(HookEvent.TASK_CREATING, TaskCreating(params=params))
        task = self._api.create_task(before.params)
        self._emit(HookEvent.TASK_CREATED, TaskCreated(task=task))
        return task

    def update_task(self, task_id: str, changes: UpdateTaskParams) -> Task:
        task = self._api.get_task(task_id)
        before = self._before(HookEvent.TASK_UPDATING, TaskUpdating(task=task, changes=changes))
        updated = self._api.update_task(task_id, before.changes)
        self._emit(HookEvent.TASK_UPDATED, TaskUpdated(task=updated, changes=before.changes))
        return updated

    def close_task(self, task_id: str) -> None:
        task = self._api.get_task(task_id)
        self._before(HookEvent.TASK_COMPLETING, TaskCompleting(task=task))
        self._api.close_task(task_id)
        self._emit(HookEvent.TASK_COMPLETED, TaskCompleted(task=task))

    def reopen_task(self, task_id: str) -> None:
        self._api.reopen_task(task_id)

    def delete_task(self, task_id: str) -> None:
        task = self._api.get_task(task_id)
        self._before(HookEvent.TASK_DELETING, TaskDeleting(task=task))
        self._api.delete_task(task_id)
        self._emit(HookEvent.TASK_DELETED, TaskDeleted(task=task))
