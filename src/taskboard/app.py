"""taskboard TUI Application."""

from __future__ import annotations

import logging
from functools import partial

from textual.app import App
from textual.binding import Binding
from textual.screen import ModalScreen

from .api import ApiClient, TaskValidationError
from .config import Settings
from .models import SyncResult, get_column
from .repositories import RemoteTaskRepository, TaskBackendProtocol, TaskStore
from .services import BoardService, SyncService
from .ui.screens import BoardScreen, HelpScreen
from .ui.widgets import DeleteTaskModal, TaskCard, TaskFormData, TaskFormModal

logger = logging.getLogger(__name__)

SYNC_GROUP = "sync"


class TaskboardApp(App):
    """taskboard - Terminal Kanban board."""

    TITLE = "Kanban Board"

    CSS_PATH = "ui/styles.tcss"

    BINDINGS = [
        # Core bindings
        Binding("q", "quit", "Quit", show=True),
        Binding("?", "help", "Help", show=True),
        Binding("r", "refresh", "Refresh", show=True),
        Binding("t", "toggle_theme", "Theme", show=True),
        # Navigation - vim style
        Binding("h", "nav_left", "← Column", show=False),
        Binding("j", "nav_down", "↓ Task", show=False),
        Binding("k", "nav_up", "↑ Task", show=False),
        Binding("l", "nav_right", "→ Column", show=False),
        # Navigation - arrow keys
        Binding("left", "nav_left", "← Column", show=False),
        Binding("down", "nav_down", "↓ Task", show=False),
        Binding("up", "nav_up", "↑ Task", show=False),
        Binding("right", "nav_right", "→ Column", show=False),
        # Task actions
        Binding("n", "new_task", "New", show=True),
        Binding("d", "delete_task", "Delete", show=True),
        Binding("H", "move_task_left", "Move ←", show=False),
        Binding("L", "move_task_right", "Move →", show=False),
        Binding("shift+left", "move_task_left", "Move ←", show=False),
        Binding("shift+right", "move_task_right", "Move →", show=False),
        Binding("escape", "escape", "Back", show=False, priority=True),
    ]

    SCREENS = {
        "board": BoardScreen,
    }

    def __init__(
        self,
        settings: Settings | None = None,
        backend: TaskBackendProtocol | None = None,
    ) -> None:
        super().__init__()
        self.settings = settings or Settings()
        self._init_services(backend)

    def _init_services(self, backend: TaskBackendProtocol | None) -> None:
        """Wire the store, backend and services together."""
        self.api_client: ApiClient | None = None
        if backend is None:
            self.api_client = ApiClient(self.settings.api_url)
            backend = RemoteTaskRepository(self.api_client)

        self.store = TaskStore()
        self.sync_service = SyncService(self.store, backend, on_change=self._on_store_changed)
        self.board_service = BoardService(self.sync_service)
        self._loaded = False

    def on_mount(self) -> None:
        """Show the board and start loading tasks."""
        self.push_screen("board")
        self.run_worker(self.load_board(), group=SYNC_GROUP, name="load")

    async def on_unmount(self) -> None:
        if self.api_client is not None:
            await self.api_client.aclose()

    def _board_screen(self) -> BoardScreen | None:
        """The board screen, even while a modal covers it."""
        try:
            screen = self.get_screen("board")
        except KeyError:
            return None
        if isinstance(screen, BoardScreen):
            return screen
        return None

    def _active_board_screen(self) -> BoardScreen | None:
        """The board screen if it has input focus (no modal on top)."""
        screen = self.screen
        if isinstance(screen, BoardScreen):
            return screen
        return None

    def _on_store_changed(self) -> None:
        """Re-render after any change to the task store."""
        if not self._loaded:
            return
        screen = self._board_screen()
        if screen is not None:
            screen.refresh_board()

    async def load_board(self) -> None:
        """Load tasks; an initial failure blocks the board."""
        screen = self._board_screen()
        if screen is not None and not self._loaded:
            screen.show_loading()

        result = await self.board_service.load()
        if result.has_errors:
            logger.error("Loading tasks failed: %s", result.error)
            if not self._loaded and screen is not None:
                screen.show_error(f"Error loading tasks: {result.error}")
            self.notify("Failed to load tasks", severity="error", timeout=5)
            return
        if result.stale:
            return

        first_load = not self._loaded
        self._loaded = True
        if screen is not None:
            screen.show_board()
            screen.refresh_board()
        if not first_load:
            self.notify("Board refreshed", timeout=1)

    def action_refresh(self) -> None:
        """Reload the board from the server."""
        self.run_worker(self.load_board(), group=SYNC_GROUP, name="refresh")

    def action_help(self) -> None:
        self.push_screen(HelpScreen())

    def action_toggle_theme(self) -> None:
        """Switch between light and dark themes."""
        self.theme = "textual-light" if self.theme != "textual-light" else "textual-dark"

    # Navigation actions
    def action_nav_left(self) -> None:
        screen = self._active_board_screen()
        if screen is not None:
            screen.navigate_column(-1)

    def action_nav_right(self) -> None:
        screen = self._active_board_screen()
        if screen is not None:
            screen.navigate_column(1)

    def action_nav_up(self) -> None:
        screen = self._active_board_screen()
        if screen is not None:
            screen.navigate_task(-1)

    def action_nav_down(self) -> None:
        screen = self._active_board_screen()
        if screen is not None:
            screen.navigate_task(1)

    # Task actions
    def action_new_task(self) -> None:
        """Open the new task form, defaulting to the selected column."""
        screen = self._active_board_screen()
        if screen is None or not self._loaded:
            return
        self.push_screen(  # pyrefly: ignore[no-matching-overload]
            TaskFormModal(screen.current_column_status),
            callback=self._handle_form_result,
        )

    def _handle_form_result(self, data: TaskFormData | None) -> None:
        if data is None:
            return
        self.run_worker(self.create_task(data), group=SYNC_GROUP)

    async def create_task(self, data: TaskFormData) -> None:
        try:
            result = await self.board_service.submit_form(
                data.title, data.description, data.column_id
            )
        except TaskValidationError as e:
            self.notify(str(e), severity="warning", timeout=3)
            return

        if self._report(result, "Failed to save task"):
            screen = self._board_screen()
            if screen is not None:
                screen.refresh_board(focus_task_id=result.task_id)
            self.notify("Task created", timeout=2)

    def action_move_task_left(self) -> None:
        self._move_current_task(-1)

    def action_move_task_right(self) -> None:
        self._move_current_task(1)

    def _move_current_task(self, delta: int) -> None:
        screen = self._active_board_screen()
        if screen is None:
            return
        task = screen.get_current_task()
        if task is None:
            return
        # Focus follows the task to its new column
        screen.refresh_board(focus_task_id=task.id)
        self.run_worker(self.move_task(task.id, delta), group=SYNC_GROUP)

    async def move_task(self, task_id: str, delta: int) -> None:
        if delta < 0:
            result = await self.board_service.move_task_left(task_id)
        else:
            result = await self.board_service.move_task_right(task_id)
        self._report_move(result)

    def on_task_card_drag_ended(self, message: TaskCard.DragEnded) -> None:
        """Handle a card dropped on (or outside) a column.

        A click, or a drop back onto the same column, changes nothing.
        """
        task = self.board_service.get_task(message.task_id)
        status = self.board_service.resolve_drop(message.task_id, message.column_id)
        if task is None or status is None or status == task.status:
            return
        screen = self._active_board_screen()
        if screen is not None:
            # Focus follows the card to its new column
            screen.refresh_board(focus_task_id=message.task_id)
        self.run_worker(
            self.drop_task(message.task_id, message.column_id), group=SYNC_GROUP
        )

    async def drop_task(self, task_id: str, column_id: str | None) -> None:
        result = await self.board_service.handle_drag_end(task_id, column_id)
        self._report_move(result)

    def _report_move(self, result: SyncResult | None) -> None:
        if self._report(result, "Failed to move task") and result.task is not None:
            self.notify(f"Moved to {get_column(result.task.status).title}", timeout=2)

    def action_delete_task(self) -> None:
        """Delete the selected task (with confirmation)."""
        screen = self._active_board_screen()
        if screen is None:
            return
        task = screen.get_current_task()
        if task is not None:
            self._confirm_delete(task.id)

    def on_task_card_delete_requested(self, message: TaskCard.DeleteRequested) -> None:
        self._confirm_delete(message.task_id)

    def _confirm_delete(self, task_id: str) -> None:
        task = self.board_service.get_task(task_id)
        if task is None:
            return
        self.push_screen(  # pyrefly: ignore[no-matching-overload]
            DeleteTaskModal(task),
            callback=partial(self._handle_delete_confirm, task_id),
        )

    def _handle_delete_confirm(self, task_id: str, confirmed: bool) -> None:
        if not confirmed:
            return
        self.run_worker(self.delete_task(task_id), group=SYNC_GROUP)

    async def delete_task(self, task_id: str) -> None:
        result = await self.board_service.delete_task(task_id)
        if self._report(result, "Failed to delete task"):
            self.notify("Task deleted", timeout=2)

    def _report(self, result: SyncResult | None, failure_message: str) -> bool:
        """Notify about a failed result.

        Returns:
            True if the result is a success worth announcing (not None,
            not skipped, no error).
        """
        if result is None or result.skipped:
            return False
        if result.has_errors:
            self.notify(f"{failure_message}: {result.error}", severity="error", timeout=5)
            return False
        return True

    def action_escape(self) -> None:
        """Dismiss the top modal, if any."""
        screen = self.screen
        if isinstance(screen, ModalScreen):
            screen.dismiss()


def run(settings: Settings | None = None) -> None:
    """Run the taskboard application."""
    app = TaskboardApp(settings)
    app.run()
