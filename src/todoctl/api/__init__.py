"""Domain API seam: models, the :class:`TodoApi` protocol and a REST client."""

from todoctl.api.types import (
    Comment,
    CreateTaskParams,
    Label,
    Project,
    Section,
    Task,
    TaskFilter,
    TodoApi,
    UpdateTaskParams,
)

__all__ = [
    "Comment",
    "CreateTaskParams",
    "Label",
    "Project",
    "Section",
    "Task",
    "TaskFilter",
    "TodoApi",
    "UpdateTaskParams",
]
