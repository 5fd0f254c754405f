"""REST repository for the task service."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from ..api import ApiClient, TaskValidationError
from ..models import Task, TaskStatus

logger = logging.getLogger(__name__)


class RemoteTaskRepository:
    """Task backend talking to the ``/api/tasks`` REST endpoints.

    | Operation     | Request                        |
    |---------------|--------------------------------|
    | list_tasks    | GET    /gettasks               |
    | create_task   | POST   /addtasks               |
    | update_status | PATCH  /updatetask/{id}        |
    | delete_task   | DELETE /deletetask/{id}        |
    """

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def list_tasks(self) -> list[Task]:
        data = await self._client.get("/gettasks")
        if not isinstance(data, list):
            raise TaskValidationError(f"Expected a list of tasks, got {type(data).__name__}")
        tasks = [self._parse_task(item) for item in data]
        logger.debug("Loaded %d tasks", len(tasks))
        return tasks

    async def create_task(self, task: Task) -> Task:
        data = await self._client.post("/addtasks", json=task.to_payload())
        return self._parse_task(data)

    async def update_status(self, task_id: str, status: TaskStatus) -> Task:
        data = await self._client.patch(
            f"/updatetask/{_quote_id(task_id)}",
            json={"status": status.value},
        )
        return self._parse_task(data)

    async def delete_task(self, task_id: str) -> None:
        await self._client.delete(f"/deletetask/{_quote_id(task_id)}")

    def _parse_task(self, data: Any) -> Task:
        """Validate a JSON task, wrapping pydantic errors."""
        try:
            return Task.model_validate(data)
        except ValidationError as e:
            logger.error("Malformed task payload: %s", data)
            raise TaskValidationError(f"Malformed task payload: {e}") from e


def _quote_id(task_id: str) -> str:
    """Escape a task id for use as a path segment."""
    return quote(task_id, safe="")
