"""Result values for synchronized operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..api.client import TaskApiError
    from .task import Task


class SyncOperation(str, Enum):
    """Kind of synchronized operation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REFRESH = "refresh"


@dataclass
class SyncResult:
    """Outcome of a synchronized operation, once it has settled."""

    operation: SyncOperation
    task_id: str | None = None  # None for refresh
    task: Task | None = None  # Server-confirmed task (create/update)
    error: TaskApiError | None = None
    skipped: bool = False  # No-op, nothing was sent
    stale: bool = False  # Refresh result discarded as out of date

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded (or was a no-op)."""
        return self.error is None

    @property
    def has_errors(self) -> bool:
        """Whether the operation failed."""
        return self.error is not None
