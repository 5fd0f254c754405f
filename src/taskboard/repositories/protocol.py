"""Backend protocol for task persistence."""

from typing import Protocol

from ..models import Task, TaskStatus


class TaskBackendProtocol(Protocol):
    """Interface for the remote task persistence service.

    Each call is a single request/response round trip. Implementations are
    stateless; they raise ``TaskApiError`` subclasses on failure:
    - TaskNetworkError for transport failures and unexpected responses
    - TaskValidationError for rejected or malformed task payloads
    - TaskNotFoundError when the task id is unknown to the service

    Nothing is idempotent: calling ``create_task`` twice for the same task
    may produce two records on the service.
    """

    async def list_tasks(self) -> list[Task]:
        """Load every task the service knows about."""
        ...

    async def create_task(self, task: Task) -> Task:
        """Persist a new task (with its client-assigned id).

        Returns:
            The task as confirmed by the service.
        """
        ...

    async def update_status(self, task_id: str, status: TaskStatus) -> Task:
        """Move a task to another column.

        Returns:
            The task as confirmed by the service.
        """
        ...

    async def delete_task(self, task_id: str) -> None:
        """Delete a task by id."""
        ...
