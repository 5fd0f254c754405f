"""New task form modal."""

from __future__ import annotations

from dataclasses import dataclass

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select

from ...models import COLUMNS, TaskStatus


@dataclass
class TaskFormData:
    """Raw values entered in the form (not yet validated)."""

    title: str
    description: str
    column_id: str


class TaskFormModal(ModalScreen[TaskFormData | None]):
    """Modal for entering a new task's title, description and column.

    Dismisses with None when cancelled. Validation is left to the caller.
    """

    DEFAULT_CSS = """
    TaskFormModal {
        align: center middle;
    }

    TaskFormModal > Vertical {
        width: 60;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: solid $primary;
    }

    TaskFormModal .form-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    TaskFormModal Input, TaskFormModal Select {
        margin-bottom: 1;
    }

    TaskFormModal .buttons {
        width: 100%;
        height: auto;
        align: center middle;
    }

    TaskFormModal Button {
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, default_status: TaskStatus = TaskStatus.TODO) -> None:
        super().__init__()
        self.default_status = default_status

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label("New Task", classes="form-title")
            yield Input(placeholder="Task title", id="task-title")
            yield Input(placeholder="Task description", id="task-description")
            yield Select(
                [(col.title, col.id.value) for col in COLUMNS],
                value=self.default_status.value,
                allow_blank=False,
                id="task-column",
            )
            with Horizontal(classes="buttons"):
                yield Button("Add Task", id="add", variant="primary")
                yield Button("Cancel", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#task-title", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "add":
            self.dismiss(self._collect())
        else:
            self.dismiss(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Enter in the title moves on; enter in the description submits."""
        event.stop()
        if event.input.id == "task-title":
            self.query_one("#task-description", Input).focus()
        else:
            self.dismiss(self._collect())

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _collect(self) -> TaskFormData:
        column = self.query_one("#task-column", Select).value
        return TaskFormData(
            title=self.query_one("#task-title", Input).value,
            description=self.query_one("#task-description", Input).value,
            column_id=str(column) if column != Select.BLANK else TaskStatus.TODO.value,
        )
