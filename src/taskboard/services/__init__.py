"""Service layer for business logic."""

from .board_service import BoardService, new_task_id
from .sync_service import SyncService

__all__ = [
    "BoardService",
    "SyncService",
    "new_task_id",
]
