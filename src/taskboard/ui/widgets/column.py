"""Kanban column widget."""

import asyncio

from textual.actions import SkipAction
from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.css.query import NoMatches
from textual.widget import Widget
from textual.widgets import Static

from ...models import Column, Task, TaskStatus
from .task_card import TaskCard


class TaskListScroll(VerticalScroll):
    """Scroll container for task lists.

    Raises SkipAction for navigation keys so they bubble up to the App
    for task navigation instead of being handled as scroll actions.
    """

    def action_scroll_up(self) -> None:
        raise SkipAction()

    def action_scroll_down(self) -> None:
        raise SkipAction()

    def action_scroll_home(self) -> None:
        raise SkipAction()

    def action_scroll_end(self) -> None:
        raise SkipAction()


class EmptyColumnMessage(Static):
    """Displayed when a column has no tasks."""

    pass


class KanbanColumn(Widget):
    """A single column in the kanban board, and a drop target for cards."""

    def __init__(self, column: Column, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.column = column
        self._tasks: list[Task] = []
        self._pending_ids: set[str] = set()
        self._rebuild_lock = asyncio.Lock()

    @property
    def status(self) -> TaskStatus:
        return self.column.id

    def compose(self) -> ComposeResult:
        css_id = self.column.css_id
        yield Static(self._header_text, classes="column-header", id=f"header-{css_id}")
        yield TaskListScroll(classes="column-content", id=f"content-{css_id}")

    def on_mount(self) -> None:
        self.call_after_refresh(self._refresh_tasks)

    @property
    def _header_text(self) -> str:
        """Header text with styled task count."""
        return f"{self.column.title} [dim]({len(self._tasks)})[/]"

    def set_tasks(self, tasks: list[Task], pending_ids: set[str] | None = None) -> None:
        """Set the tasks for this column.

        Args:
            tasks: Tasks to display, in order
            pending_ids: Ids of tasks with unconfirmed changes
        """
        self._tasks = tasks
        self._pending_ids = pending_ids or set()
        # Use call_after_refresh to ensure DOM is ready
        self.call_after_refresh(self._refresh_tasks)

    async def _refresh_tasks(self) -> None:
        """Rebuild the task cards in this column."""
        async with self._rebuild_lock:
            await self._rebuild_cards()

    async def _rebuild_cards(self) -> None:
        content_id = f"#content-{self.column.css_id}"
        try:
            content = self.query_one(content_id, TaskListScroll)
        except NoMatches as e:
            self.log.error(f"Cannot find {content_id}: {e}")
            return

        await content.remove_children()

        if not self._tasks:
            await content.mount(EmptyColumnMessage(f"No {self.column.title.lower()} tasks"))
        else:
            await content.mount_all(
                TaskCard(task, pending=task.id in self._pending_ids)
                for task in self._tasks
            )

        try:
            header = self.query_one(f"#header-{self.column.css_id}", Static)
            header.update(self._header_text)
        except NoMatches:
            pass

    @property
    def tasks(self) -> list[Task]:
        return self._tasks

    @property
    def task_count(self) -> int:
        return len(self._tasks)

    def focus_task(self, index: int) -> bool:
        """
        Focus the task at the given index.

        Returns:
            True if a task was focused, False otherwise
        """
        if not self._tasks or index < 0 or index >= len(self._tasks):
            return False

        task_id = self._tasks[index].id
        card = next((c for c in self.query(TaskCard) if c.task.id == task_id), None)
        if card is None:
            return False
        card.focus()
        card.scroll_visible()
        return True

    def get_task(self, index: int) -> Task | None:
        """Get task at index."""
        if 0 <= index < len(self._tasks):
            return self._tasks[index]
        return None

    def index_of(self, task_id: str) -> int:
        """Position of a task in this column, or -1."""
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        return -1
