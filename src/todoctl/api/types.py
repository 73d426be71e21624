"""Domain models exchanged with the task service and with plugins.

Only the fields the plugin subsystem and plugins commonly read are declared;
unknown fields returned by the service are kept (``extra="allow"``).
"""

from __future__ import annotations

from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

Priority = Literal[1, 2, 3, 4]


class Due(BaseModel):
    model_config = {"extra": "allow"}

    date: str
    string: str = ""
    is_recurring: bool = False
    datetime: str | None = None


class Task(BaseModel):
    model_config = {"extra": "allow"}

    id: str
    content: str
    description: str = ""
    project_id: str = ""
    section_id: str | None = None
    parent_id: str | None = None
    priority: Priority = 1
    due: Due | None = None
    labels: list[str] = Field(default_factory=list)
    is_completed: bool = False


class Project(BaseModel):
    model_config = {"extra": "allow"}

    id: str
    name: str
    color: str = ""
    parent_id: str | None = None
    is_favorite: bool = False


class Label(BaseModel):
    model_config = {"extra": "allow"}

    id: str
    name: str
    color: str = ""
    is_favorite: bool = False


class Section(BaseModel):
    model_config = {"extra": "allow"}

    id: str
    name: str
    project_id: str


class Comment(BaseModel):
    model_config = {"extra": "allow"}

    id: str
    task_id: str
    content: str
    posted_at: str = ""


class CreateTaskParams(BaseModel):
    """Proposed parameters for a new task. Mutable by ``task.creating`` hooks."""

    model_config = {"extra": "forbid"}

    content: str
    description: str | None = None
    project_id: str | None = None
    section_id: str | None = None
    parent_id: str | None = None
    priority: Priority | None = None
    due_string: str | None = None
    due_date: str | None = None
    labels: list[str] | None = None


class UpdateTaskParams(BaseModel):
    """Proposed changes to a task. Mutable by ``task.updating`` hooks."""

    model_config = {"extra": "forbid"}

    content: str | None = None
    description: str | None = None
    project_id: str | None = None
    section_id: str | None = None
    priority: Priority | None = None
    due_string: str | None = None
    due_date: str | None = None
    labels: list[str] | None = None


class TaskFilter(BaseModel):
    project_id: str | None = None
    label: str | None = None
    filter: str | None = None


class TodoApi(Protocol):
    """Domain operations available to the host and, through a proxy, to plugins."""

    def get_tasks(self, task_filter: TaskFilter | None = None) -> list[Task]: ...
    def get_task(self, task_id: str) -> Task: ...
    def create_task(self, params: CreateTaskParams) -> Task: ...
    def update_task(self, task_id: str, changes: UpdateTaskParams) -> Task: ...
    def close_task(self, task_id: str) -> None: ...
    def reopen_task(self, task_id: str) -> None: ...
    def delete_task(self, task_id: str) -> None: ...

    def get_projects(self) -> list[Project]: ...
    def get_project(self, project_id: str) -> Project: ...
    def create_project(self, params: dict[str, Any]) -> Project: ...
    def update_project(self, project_id: str, changes: dict[str, Any]) -> Project: ...
    def delete_project(self, project_id: str) -> None: ...

    def get_labels(self) -> list[Label]: ...
    def get_label(self, label_id: str) -> Label: ...
    def create_label(self, params: dict[str, Any]) -> Label: ...
    def update_label(self, label_id: str, changes: dict[str, Any]) -> Label: ...
    def delete_label(self, label_id: str) -> None: ...

    def get_sections(self, project_id: str | None = None) -> list[Section]: ...
    def get_section(self, section_id: str) -> Section: ...
    def create_section(self, params: dict[str, Any]) -> Section: ...
    def update_section(self, section_id: str, changes: dict[str, Any]) -> Section: ...
    def delete_section(self, section_id: str) -> None: ...

    def get_comments(self, task_id: str) -> list[Comment]: ...
    def get_comment(self, comment_id: str) -> Comment: ...
    def create_comment(self, params: dict[str, Any]) -> Comment: ...
    def update_comment(self, comment_id: str, changes: dict[str, Any]) -> Comment: ...
    def delete_comment(self, comment_id: str) -> None: ...
