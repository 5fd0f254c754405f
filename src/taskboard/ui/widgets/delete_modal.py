"""Delete confirmation dialog."""

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static

from ...models import Task, get_column


class DeleteTaskModal(ModalScreen[bool]):
    """Shows the task about to be deleted; dismisses True when confirmed."""

    DEFAULT_CSS = """
    DeleteTaskModal {
        align: center middle;
    }

    DeleteTaskModal > Vertical {
        width: 56;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $error;
        border-title-color: $error;
    }

    DeleteTaskModal .delete-title {
        text-style: bold;
    }

    DeleteTaskModal .delete-column {
        color: $text-muted;
        margin-bottom: 1;
    }

    DeleteTaskModal Horizontal {
        height: auto;
        align-horizontal: right;
    }

    DeleteTaskModal Button {
        margin-left: 2;
    }
    """

    BINDINGS = [
        Binding("y", "answer(True)", "Delete"),
        Binding("n", "answer(False)", "Keep"),
        Binding("escape", "answer(False)", "Keep", show=False),
    ]

    def __init__(self, task_data: Task) -> None:
        super().__init__()
        self.task_data = task_data

    def compose(self) -> ComposeResult:
        with Vertical() as dialog:
            dialog.border_title = "Delete task?"
            yield Static(self.task_data.title, classes="delete-title")
            yield Static(
                f"in {get_column(self.task_data.status).title}", classes="delete-column"
            )
            with Horizontal():
                yield Button("Keep (n)", id="keep")
                yield Button("Delete (y)", id="delete", variant="error")

    def on_mount(self) -> None:
        self.query_one("#keep", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.dismiss(event.button.id == "delete")

    def action_answer(self, confirmed: bool) -> None:
        self.dismiss(confirmed)
