"""Thin httpx client for the remote task service.

The host's domain commands own the full API surface; this client covers the
operations exposed to plugins through :class:`~todoctl.api.types.TodoApi`.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel

from todoctl.api.types import (
    Comment,
    CreateTaskParams,
    Label,
    Project,
    Section,
    Task,
    TaskFilter,
    UpdateTaskParams,
)

BASE_URL = "https://api.todoist.com/api/v1"

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class ApiError(Exception):
    """Request to the task service failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RestTodoApi:
    """:class:`~todoctl.api.types.TodoApi` over HTTPS."""

    def __init__(
        self,
        token: str | None,
        *,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._token = token
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        if not self._token:
            msg = (
                "Not authenticated. Set [auth] api_token in config.toml "
                "or TODOCTL_AUTH__API_TOKEN."
            )
            raise ApiError(msg)
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            response = self._client.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as exc:
            msg = f"Network error: could not reach the task service ({exc})"
            raise ApiError(msg) from exc

        if response.status_code == 401:
            raise ApiError("Authentication failed. Check your API token.", status_code=401)
        if response.status_code == 429:
            raise ApiError("Rate limit exceeded. Please wait and try again.", status_code=429)
        if response.is_error:
            msg = f"{method} {path} failed: HTTP {response.status_code} {response.text}"
            raise ApiError(msg, status_code=response.status_code)
        if not response.content:
            return None
        data = response.json()
        # Paginated endpoints wrap their items.
        if isinstance(data, dict) and "results" in data and "next_cursor" in data:
            return data["results"]
        return data

    def _list(self, model: type[M], path: str, params: dict[str, str] | None = None) -> list[M]:
        return [model.model_validate(item) for item in self._request("GET", path, params=params)]

    def _one(self, model: type[M], method: str, path: str, body: dict[str, Any] | None = None) -> M:
        return model.model_validate(self._request(method, path, json=body))

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def get_tasks(self, task_filter: TaskFilter | None = None) -> list[Task]:
        params = task_filter.model_dump(exclude_none=True) if task_filter else None
        return self._list(Task, "/tasks", params)

    def get_task(self, task_id: str) -> Task:
        return self._one(Task, "GET", f"/tasks/{task_id}")

    def create_task(self, params: CreateTaskParams) -> Task:
        return self._one(Task, "POST", "/tasks", params.model_dump(exclude_none=True))

    def update_task(self, task_id: str, changes: UpdateTaskParams) -> Task:
        return self._one(Task, "POST", f"/tasks/{task_id}", changes.model_dump(exclude_none=True))

    def close_task(self, task_id: str) -> None:
        self._request("POST", f"/tasks/{task_id}/close")

    def reopen_task(self, task_id: str) -> None:
        self._request("POST", f"/tasks/{task_id}/reopen")

    def delete_task(self, task_id: str) -> None:
        self._request("DELETE", f"/tasks/{task_id}")

    # ------------------------------------------------------------------
    # Projects, labels, sections, comments
    # ------------------------------------------------------------------

    def get_projects(self) -> list[Project]:
        return self._list(Project, "/projects")

    def get_project(self, project_id: str) -> Project:
        return self._one(Project, "GET", f"/projects/{project_id}")

    def create_project(self, params: dict[str, Any]) -> Project:
        return self._one(Project, "POST", "/projects", params)

    def update_project(self, project_id: str, changes: dict[str, Any]) -> Project:
        return self._one(Project, "POST", f"/projects/{project_id}", changes)

    def delete_project(self, project_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}")

    def get_labels(self) -> list[Label]:
        return self._list(Label, "/labels")

    def get_label(self, label_id: str) -> Label:
        return self._one(Label, "GET", f"/labels/{label_id}")

    def create_label(self, params: dict[str, Any]) -> Label:
        return self._one(Label, "POST", "/labels", params)

    def update_label(self, label_id: str, changes: dict[str, Any]) -> Label:
        return self._one(Label, "POST", f"/labels/{label_id}", changes)

    def delete_label(self, label_id: str) -> None:
        self._request("DELETE", f"/labels/{label_id}")

    def get_sections(self, project_id: str | None = None) -> list[Section]:
        params = {"project_id": project_id} if project_id else None
        return self._list(Section, "/sections", params)

    def get_section(self, section_id: str) -> Section:
        return self._one(Section, "GET", f"/sections/{section_id}")

    def create_section(self, params: dict[str, Any]) -> Section:
        return self._one(Section, "POST", "/sections", params)

    def update_section(self, section_id: str, changes: dict[str, Any]) -> Section:
        return self._one(Section, "POST", f"/sections/{section_id}", changes)

    def delete_section(self, section_id: str) -> None:
        self._request("DELETE", f"/sections/{section_id}")

    def get_comments(self, task_id: str) -> list[Comment]:
        return self._list(Comment, "/comments", {"task_id": task_id})

    def get_comment(self, comment_id: str) -> Comment:
        return self._one(Comment, "GET", f"/comments/{comment_id}")

    def create_comment(self, params: dict[str, Any]) -> Comment:
        return self._one(Comment, "POST", "/comments", params)

    def update_comment(self, comment_id: str, changes: dict[str, Any]) -> Comment:
        return self._one(Comment, "POST", f"/comments/{comment_id}", changes)

    def delete_comment(self, comment_id: str) -> None:
        self._request("DELETE", f"/comments/{comment_id}")
