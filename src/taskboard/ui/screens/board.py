"""Main kanban board screen."""

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.css.query import NoMatches
from textual.screen import Screen
from textual.widgets import Footer, Header, Static

from ...models import COLUMNS, Board, Task, TaskStatus
from ..widgets.column import KanbanColumn

LOAD_LOADING = "loading"
LOAD_READY = "ready"
LOAD_ERROR = "error"


class BoardScreen(Screen):
    """Main kanban board screen with navigation.

    Until the first successful load the columns are hidden behind a status
    line ("Loading tasks..." or an error).
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._current_column = 0
        self._current_task = 0
        self._current_task_id: str | None = None
        self._load_state = LOAD_LOADING
        self._load_message = "Loading tasks..."

    @property
    def column_count(self) -> int:
        return len(COLUMNS)

    @property
    def load_state(self) -> str:
        return self._load_state

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static(self._load_message, id="board-status")
        with Container(id="board-container"), Horizontal(id="columns"):
            for col in COLUMNS:
                yield KanbanColumn(col, id=f"column-{col.css_id}")
        yield Footer()

    def on_mount(self) -> None:
        self._apply_load_state()
        self.refresh_board()

    def on_screen_resume(self) -> None:
        # Store changes may have landed while a modal was on top
        self.refresh_board()

    def show_loading(self, message: str = "Loading tasks...") -> None:
        self._set_load_state(LOAD_LOADING, message)

    def show_error(self, message: str = "Error loading tasks") -> None:
        """Replace the board with an error message."""
        self._set_load_state(LOAD_ERROR, message)

    def show_board(self) -> None:
        self._set_load_state(LOAD_READY, "")

    def _set_load_state(self, state: str, message: str) -> None:
        self._load_state = state
        self._load_message = message
        if self.is_mounted:
            self._apply_load_state()

    def _apply_load_state(self) -> None:
        try:
            status = self.query_one("#board-status", Static)
            container = self.query_one("#board-container", Container)
        except NoMatches:
            return
        ready = self._load_state == LOAD_READY
        status.update(self._load_message)
        status.display = not ready
        status.set_class(self._load_state == LOAD_ERROR, "-error")
        container.display = ready

    def refresh_board(self, focus_task_id: str | None = None) -> None:
        """
        Re-render all columns from the app's board.

        Args:
            focus_task_id: Task to focus afterwards. Defaults to the task
                focused before the refresh, falling back to its position.
        """
        if not self.is_mounted:
            return
        if focus_task_id is not None:
            self._current_task_id = focus_task_id

        board: Board = self.app.board_service.board()  # pyrefly: ignore[missing-attribute]
        sync_service = self.app.sync_service  # pyrefly: ignore[missing-attribute]
        for column, tasks in board.iter_columns():
            pending = {t.id for t in tasks if sync_service.is_pending(t.id)}
            widget = self._get_column_by_status(column.id)
            if widget is not None:
                widget.set_tasks(tasks, pending)

        # Defer focus until after the columns have rebuilt their cards
        self.call_after_refresh(self._schedule_focus)

    def _schedule_focus(self) -> None:
        self.call_after_refresh(self._restore_focus)

    def _restore_focus(self) -> None:
        if self._current_task_id:
            position = self._find_task_position(self._current_task_id)
            if position:
                self._current_column, self._current_task = position
                self._update_focus()
                return

        # Fallback: keep the previous position, clamped to the column
        column = self._get_column(self._current_column)
        if column and column.task_count > 0:
            self._current_task = min(self._current_task, column.task_count - 1)
        else:
            self._current_task = 0
        self._update_focus()

    def _find_task_position(self, task_id: str) -> tuple[int, int] | None:
        """Return (column_index, task_index) of a task, or None."""
        for col_idx in range(self.column_count):
            column = self._get_column(col_idx)
            if column is None:
                continue
            task_idx = column.index_of(task_id)
            if task_idx >= 0:
                return (col_idx, task_idx)
        return None

    def navigate_column(self, delta: int) -> None:
        """Navigate between columns."""
        new_column = max(0, min(self._current_column + delta, self.column_count - 1))
        if new_column == self._current_column:
            return
        self._current_column = new_column
        column = self._get_column(new_column)
        if column and column.task_count > 0:
            self._current_task = min(self._current_task, column.task_count - 1)
        else:
            self._current_task = 0
        self._update_focus()

    def navigate_task(self, delta: int) -> None:
        """Navigate between tasks in current column."""
        column = self._get_column(self._current_column)
        if column is None or column.task_count == 0:
            return
        new_task = max(0, min(self._current_task + delta, column.task_count - 1))
        if new_task != self._current_task:
            self._current_task = new_task
            self._update_focus()

    def _get_column(self, index: int) -> KanbanColumn | None:
        """Get column widget by index."""
        if index < 0 or index >= self.column_count:
            return None
        return self._get_column_by_status(COLUMNS[index].id)

    def _get_column_by_status(self, status: TaskStatus) -> KanbanColumn | None:
        for column in self.query(KanbanColumn):
            if column.status == status:
                return column
        return None

    def _update_focus(self) -> None:
        column = self._get_column(self._current_column)
        if column is None:
            return
        task = column.get_task(self._current_task)
        self._current_task_id = task.id if task else None
        column.focus_task(self._current_task)

    def get_current_task(self) -> Task | None:
        """Get the currently selected task."""
        column = self._get_column(self._current_column)
        if column:
            return column.get_task(self._current_task)
        return None

    @property
    def current_column_status(self) -> TaskStatus:
        """Status of the selected column."""
        return COLUMNS[self._current_column].id
