"""In-memory task store."""

from __future__ import annotations

from collections.abc import Iterable

from ..models import Board, Task, TaskStatus


class TaskStore:
    """Current best-known view of all tasks, keyed by id.

    Holds exactly one record per id. Mutations are synchronous and never
    fail; the store does no I/O and assumes a single writer (the sync
    service). Iteration order is insertion order; ``replace`` keeps a task's
    position.
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: dict[str, Task] = {}
        for task in tasks:
            self.insert(task)

    def get_all(self, status: TaskStatus | None = None) -> list[Task]:
        """All tasks, optionally only those in one column."""
        if status is None:
            return list(self._tasks.values())
        return [t for t in self._tasks.values() if t.status == status]

    def get_by_id(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def insert(self, task: Task) -> None:
        """Add a task at the end, dropping any previous record with its id."""
        self._tasks.pop(task.id, None)
        self._tasks[task.id] = task

    def replace(self, task: Task) -> None:
        """Upsert a task by id, keeping its position if it exists."""
        self._tasks[task.id] = task

    def remove(self, task_id: str) -> Task | None:
        """Remove a task; returns the removed record (None if absent)."""
        return self._tasks.pop(task_id, None)

    def board(self) -> Board:
        """Group the current tasks into columns."""
        return Board.from_tasks(self._tasks.values())

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)
