"""Data models."""

from .board import COLUMNS, Board, Column, get_column, neighbor_status, parse_status
from .sync import SyncOperation, SyncResult
from .task import Task, TaskStatus

__all__ = [
    "COLUMNS",
    "Board",
    "Column",
    "SyncOperation",
    "SyncResult",
    "Task",
    "TaskStatus",
    "get_column",
    "neighbor_status",
    "parse_status",
]
