"""Typed, ordered hook bus with cancellation and parameter waterfalling.

Each :class:`HookEvent` carries one payload model (a tagged union over the
event kind). ``before`` events (``task.creating``, ``task.updating``, ...)
name a *waterfall field*: a handler may return a partial update for it,
which is merged and re-validated before the next handler runs, so handler N
observes handler N-1's edits.

INVARIANT: Handlers run strictly sequentially, in registration order.
INVARIANT: A failing handler contributes nothing and never aborts the chain.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar

from pydantic import BaseModel

from todoctl.api.types import CreateTaskParams, Task, UpdateTaskParams

logger = logging.getLogger(__name__)


class HookEvent(StrEnum):
    TASK_CREATING = "task.creating"
    TASK_CREATED = "task.created"
    TASK_COMPLETING = "task.completing"
    TASK_COMPLETED = "task.completed"
    TASK_UPDATING = "task.updating"
    TASK_UPDATED = "task.updated"
    TASK_DELETING = "task.deleting"
    TASK_DELETED = "task.deleted"


# ── Event payloads ────────────────────────────────────────────────────


class HookContext(BaseModel):
    """Base payload. Subclasses set ``waterfall_field`` for before-events."""

    model_config = {"frozen": True}

    waterfall_field: ClassVar[str | None] = None


class TaskCreating(HookContext):
    waterfall_field: ClassVar[str | None] = "params"

    params: CreateTaskParams


class TaskCreated(HookContext):
    task: Task


class TaskCompleting(HookContext):
    task: Task


class TaskCompleted(HookContext):
    task: Task


class TaskUpdating(HookContext):
    waterfall_field: ClassVar[str | None] = "changes"

    task: Task
    changes: UpdateTaskParams


class TaskUpdated(HookContext):
    task: Task
    changes: UpdateTaskParams


class TaskDeleting(HookContext):
    task: Task


class TaskDeleted(HookContext):
    task: Task


EVENT_CONTEXTS: dict[HookEvent, type[HookContext]] = {
    HookEvent.TASK_CREATING: TaskCreating,
    HookEvent.TASK_CREATED: TaskCreated,
    HookEvent.TASK_COMPLETING: TaskCompleting,
    HookEvent.TASK_COMPLETED: TaskCompleted,
    HookEvent.TASK_UPDATING: TaskUpdating,
    HookEvent.TASK_UPDATED: TaskUpdated,
    HookEvent.TASK_DELETING: TaskDeleting,
    HookEvent.TASK_DELETED: TaskDeleted,
}


# ── Handler results ───────────────────────────────────────────────────


class HookResult(BaseModel):
    """What a handler may hand back. Every field is optional."""

    model_config = {"extra": "forbid"}

    message: str | None = None
    cancel: bool = False
    reason: str | None = None
    params: dict[str, Any] | None = None


HookHandler = Callable[[Any], HookResult | dict[str, Any] | None]


@dataclass
class EmitResult:
    """Outcome of :meth:`HookRegistry.emit`."""

    context: HookContext
    messages: list[str] = field(default_factory=list)
    cancelled: bool = False
    reason: str | None = None

    @property
    def params(self) -> BaseModel | None:
        """Final merged waterfall value (``None`` for after-events)."""
        name = type(self.context).waterfall_field
        return getattr(self.context, name) if name else None


@dataclass(frozen=True)
class HookRegistration:
    event: HookEvent
    handler: HookHandler
    owner: str | None = None


def _coerce_result(raw: Any) -> HookResult:
    if raw is None:
        return HookResult()
    if isinstance(raw, HookResult):
        return raw
    return HookResult.model_validate(raw)


def _merge_params(context: HookContext, partial: dict[str, Any]) -> HookContext:
    name = type(context).waterfall_field
    if name is None:
        logger.debug("Ignoring param update for non-waterfall payload %s", type(context).__name__)
        return context
    current: BaseModel = getattr(context, name)
    merged = type(current).model_validate({**current.model_dump(), **partial})
    return context.model_copy(update={name: merged})


class HookRegistry:
    """Ordered handler lists per event, owned by the host process."""

    def __init__(self) -> None:
        self._handlers: dict[HookEvent, list[HookRegistration]] = {}

    def on(self, event: HookEvent | str, handler: HookHandler, owner: str | None = None) -> None:
        """Append *handler* for *event*. Re-registering the same handler is a no-op."""
        event = HookEvent(event)
        registrations = self._handlers.setdefault(event, [])
        if any(r.handler is handler for r in registrations):
            return
        registrations.append(HookRegistration(event=event, handler=handler, owner=owner))

    def off(self, event: HookEvent | str, handler: HookHandler) -> None:
        event = HookEvent(event)
        registrations = self._handlers.get(event, [])
        self._handlers[event] = [r for r in registrations if r.handler is not handler]

    def remove_all_for_plugin(self, owner: str) -> int:
        """Drop every handler registered by *owner*. Returns how many were removed."""
        removed = 0
        for event, registrations in self._handlers.items():
            kept = [r for r in registrations if r.owner != owner]
            removed += len(registrations) - len(kept)
            self._handlers[event] = kept
        return removed

    def handlers(self, event: HookEvent | str) -> list[HookRegistration]:
        return list(self._handlers.get(HookEvent(event), []))

    def emit(self, event: HookEvent | str, context: HookContext) -> EmitResult:
        """Run handlers for *event* in order and report the combined outcome.

        Raises:
            TypeError: *context* is not the payload type declared for *event*.
        """
        event = HookEvent(event)
        expected = EVENT_CONTEXTS[event]
        if not isinstance(context, expected):
            msg = f"{event} expects {expected.__name__}, got {type(context).__name__}"
            raise TypeError(msg)

        result = EmitResult(context=context)
        for registration in list(self._handlers.get(event, [])):
            try:
                outcome = _coerce_result(registration.handler(result.context))
                merged = (
                    _merge_params(result.context, outcome.params)
                    if outcome.params
                    else result.context
                )
            except Exception:
                logger.warning(
                    "Hook handler for %s failed (plugin: %s)",
                    event,
                    registration.owner or "host",
                    exc_info=True,
                )
                continue

            result.context = merged
            if outcome.message:
                result.messages.append(outcome.message)
            if outcome.cancel:
                result.cancelled = True
                result.reason = outcome.reason
                break
        return result
