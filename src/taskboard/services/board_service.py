"""Service translating board interactions into synchronized operations."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable

from ..api import TaskValidationError
from ..models import Board, SyncResult, Task, TaskStatus, neighbor_status, parse_status
from ..repositories import TaskStore
from .sync_service import SyncService

logger = logging.getLogger(__name__)


def new_task_id() -> str:
    """Generate a fresh client-side task id."""
    return str(uuid.uuid4())


class BoardService:
    """Adapts drag, form and delete input to the sync service."""

    def __init__(
        self,
        sync_service: SyncService,
        id_factory: Callable[[], str] = new_task_id,
    ) -> None:
        self.sync_service = sync_service
        self._id_factory = id_factory

    @property
    def store(self) -> TaskStore:
        return self.sync_service.store

    def board(self) -> Board:
        """Current tasks grouped by column."""
        return self.store.board()

    def get_task(self, task_id: str) -> Task | None:
        return self.store.get_by_id(task_id)

    async def load(self) -> SyncResult:
        """Load the board from the service."""
        return await self.sync_service.refresh()

    async def refresh(self) -> SyncResult:
        return await self.sync_service.refresh()

    async def handle_drag_end(
        self, task_id: str, column_id: str | TaskStatus | None
    ) -> SyncResult | None:
        """Handle a card dropped on a column.

        Args:
            task_id: The dragged task
            column_id: Column the card was dropped on, None if dropped elsewhere

        Returns:
            The sync result, or None if the drop was ignored.
        """
        status = self.resolve_drop(task_id, column_id)
        if status is None:
            return None
        return await self.sync_service.update_status(task_id, status)

    def resolve_drop(
        self, task_id: str, column_id: str | TaskStatus | None
    ) -> TaskStatus | None:
        """Status a drop would move the task to, or None if it is ignored."""
        if column_id is None:
            logger.debug("resolve_drop: %s dropped outside any column", task_id)
            return None

        status = parse_status(column_id)
        if status is None:
            logger.debug("resolve_drop: unknown column: %s", column_id)
            return None

        if self.store.get_by_id(task_id) is None:
            logger.debug("resolve_drop: task not found: %s", task_id)
            return None
        return status

    async def move_task_left(self, task_id: str) -> SyncResult | None:
        """Move task to the previous column (e.g., IN_PROGRESS -> TODO)."""
        return await self._move_by(task_id, -1)

    async def move_task_right(self, task_id: str) -> SyncResult | None:
        """Move task to the next column (e.g., TODO -> IN_PROGRESS)."""
        return await self._move_by(task_id, 1)

    async def submit_form(
        self,
        title: str,
        description: str,
        column_id: str | TaskStatus | None = None,
    ) -> SyncResult:
        """Create a task from the new-task form.

        Raises:
            TaskValidationError: Title or description is blank, or the column
                is unknown. Nothing is sent in that case.
        """
        title = title.strip()
        description = description.strip()
        if not title:
            raise TaskValidationError("Title is required")
        if not description:
            raise TaskValidationError("Description is required")

        if column_id is None:
            status = TaskStatus.TODO
        else:
            status = parse_status(column_id)
            if status is None:
                raise TaskValidationError(f"Unknown column: {column_id}")

        task = Task(
            id=self._id_factory(),
            title=title,
            description=description,
            status=status,
        )
        return await self.sync_service.create_task(task)

    async def delete_task(self, task_id: str) -> SyncResult:
        """Delete a task."""
        return await self.sync_service.delete_task(task_id)

    async def _move_by(self, task_id: str, delta: int) -> SyncResult | None:
        task = self.store.get_by_id(task_id)
        if task is None:
            return None

        new_status = neighbor_status(task.status, delta)
        if new_status is None:
            return None  # Already at the edge

        return await self.sync_service.update_status(task_id, new_status)
