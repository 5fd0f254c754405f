"""Board layout models."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from pydantic import BaseModel, Field

from .task import Task, TaskStatus


class Column(BaseModel):
    """A fixed board column."""

    id: TaskStatus
    title: str = Field(..., min_length=1)

    model_config = {"frozen": True}

    @property
    def css_id(self) -> str:
        """CSS-safe identifier, e.g. "in-progress"."""
        return self.id.value.lower().replace("_", "-")


COLUMNS: tuple[Column, ...] = (
    Column(id=TaskStatus.TODO, title="To Do"),
    Column(id=TaskStatus.IN_PROGRESS, title="In Progress"),
    Column(id=TaskStatus.DONE, title="Done"),
)


def get_column(status: TaskStatus) -> Column:
    """Look up the column definition for a status."""
    for column in COLUMNS:
        if column.id == status:
            return column
    raise KeyError(status)


def parse_status(value: str | TaskStatus | None) -> TaskStatus | None:
    """Resolve a column identifier, returning None for unknown values.

    Accepts the wire value ("IN_PROGRESS") in any case, or the hyphenated
    CSS form ("in-progress").
    """
    if value is None:
        return None
    if isinstance(value, TaskStatus):
        return value
    normalized = value.strip().upper().replace("-", "_")
    try:
        return TaskStatus(normalized)
    except ValueError:
        return None


def neighbor_status(status: TaskStatus, delta: int) -> TaskStatus | None:
    """Column ``delta`` steps away from ``status``, or None past the edges."""
    ids = [col.id for col in COLUMNS]
    idx = ids.index(status) + delta
    if 0 <= idx < len(ids):
        return ids[idx]
    return None


class Board(BaseModel):
    """Tasks grouped by column."""

    columns: dict[TaskStatus, list[Task]] = Field(default_factory=dict)

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> Board:
        """Group tasks into the fixed columns, keeping their relative order."""
        columns: dict[TaskStatus, list[Task]] = {col.id: [] for col in COLUMNS}
        for task in tasks:
            columns[task.status].append(task)
        return cls(columns=columns)

    def get_tasks(self, status: TaskStatus) -> list[Task]:
        """Tasks in one column."""
        return self.columns.get(status, [])

    def iter_columns(self) -> Iterator[tuple[Column, list[Task]]]:
        """Yield (column, tasks) in board order."""
        for column in COLUMNS:
            yield column, self.get_tasks(column.id)

    @property
    def task_count(self) -> int:
        return sum(len(tasks) for tasks in self.columns.values())
