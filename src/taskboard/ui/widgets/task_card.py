"""Task card widget."""

from __future__ import annotations

from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.errors import NoWidget
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Static

from ...models import Task


class DeleteMarker(Static):
    """Clickable delete marker on a card."""

    def __init__(self, task_id: str, *args, **kwargs) -> None:
        super().__init__("✗", *args, **kwargs)
        self._task_id = task_id

    def on_mouse_down(self, event: events.MouseDown) -> None:
        # Keep the card from starting a drag
        event.stop()

    def on_click(self, event: events.Click) -> None:
        event.stop()
        self.post_message(TaskCard.DeleteRequested(self._task_id))


class TaskCard(Widget, can_focus=True):
    """A task card displayed in a column.

    The card can be dragged with the mouse: press on it, release over a
    column, and a ``DragEnded`` message names the column it landed on.
    """

    class DragEnded(Message):
        """A card was released after a drag."""

        def __init__(self, task_id: str, column_id: str | None) -> None:
            super().__init__()
            self.task_id = task_id
            self.column_id = column_id  # None when dropped outside any column

    class DeleteRequested(Message):
        """The delete marker of a card was clicked."""

        def __init__(self, task_id: str) -> None:
            super().__init__()
            self.task_id = task_id

    def __init__(
        self,
        task_data: Task,
        pending: bool = False,
        *args,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._task_data = task_data
        self._pending = pending
        self._dragging = False

    @property
    def task(self) -> Task:  # pyrefly: ignore[bad-override]
        """Get the task for this card."""
        return self._task_data

    @property
    def is_dragging(self) -> bool:
        return self._dragging

    def compose(self) -> ComposeResult:
        with Horizontal(classes="task-header"):
            yield Static(self._truncate(self._task_data.title, 40), classes="task-title")
            if self._pending:
                yield Static("[dim]saving…[/]", classes="sync-indicator")
            yield DeleteMarker(self._task_data.id, classes="task-delete")
        yield Static(self._truncate(self._task_data.description, 120), classes="task-description")

    def on_mouse_down(self, event: events.MouseDown) -> None:
        if event.button != 1:
            return
        self._dragging = True
        self.add_class("-dragging")
        self.capture_mouse()
        self.focus()

    def on_mouse_up(self, event: events.MouseUp) -> None:
        if not self._dragging:
            return
        self._dragging = False
        self.remove_class("-dragging")
        self.release_mouse()
        column_id = self._column_at(event.screen_x, event.screen_y)
        self.post_message(self.DragEnded(self._task_data.id, column_id))

    def _column_at(self, x: int, y: int) -> str | None:
        """Find the column under a screen position."""
        from .column import KanbanColumn

        try:
            widget, _ = self.screen.get_widget_at(x, y)
        except NoWidget:
            return None
        for node in widget.ancestors_with_self:
            if isinstance(node, KanbanColumn):
                return node.status.value
        return None

    def _truncate(self, text: str, max_len: int) -> str:
        """Truncate text with ellipsis."""
        if len(text) <= max_len:
            return text
        return text[: max_len - 1] + "…"
