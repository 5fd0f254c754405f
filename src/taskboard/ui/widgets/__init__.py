"""Widget components."""

from .column import EmptyColumnMessage, KanbanColumn
from .delete_modal import DeleteTaskModal
from .task_card import DeleteMarker, TaskCard
from .task_form import TaskFormData, TaskFormModal

__all__ = [
    "DeleteMarker",
    "DeleteTaskModal",
    "EmptyColumnMessage",
    "KanbanColumn",
    "TaskCard",
    "TaskFormData",
    "TaskFormModal",
]
