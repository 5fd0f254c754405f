"""Repository layer for data access."""

from .protocol import TaskBackendProtocol
from .remote import RemoteTaskRepository
from .task_store import TaskStore

__all__ = [
    "RemoteTaskRepository",
    "TaskBackendProtocol",
    "TaskStore",
]
