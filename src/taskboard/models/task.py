"""Task domain model."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Column a task lives in. Values are the wire values of the task service."""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class Task(BaseModel):
    """A single task on the board.

    Tasks are immutable; use ``with_status`` or ``model_copy`` to derive a
    changed copy. Extra fields sent by the server are ignored.
    """

    id: str = Field(..., min_length=1)  # Client-generated, never changes
    title: str
    description: str
    status: TaskStatus = TaskStatus.TODO

    model_config = {
        "frozen": True,
        "extra": "ignore",
    }

    def with_status(self, status: TaskStatus) -> "Task":
        """Return a copy of this task in another column."""
        return self.model_copy(update={"status": status})

    def to_payload(self) -> dict[str, Any]:
        """Convert to the JSON body sent to the task service."""
        return self.model_dump(mode="json")
