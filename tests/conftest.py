"""Shared fixtures and an in-memory task backend."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from taskboard.api import TaskApiError, TaskNotFoundError
from taskboard.models import Task, TaskStatus


@dataclass
class HeldCall:
    """A backend call waiting to be released by the test."""

    name: str
    args: tuple
    gate: asyncio.Future = field(repr=False)

    def release(self, error: TaskApiError | None = None) -> None:
        """Let the call reach the server (or fail with ``error``)."""
        self.gate.set_result(error)


class FakeBackend:
    """Task service stand-in.

    With ``hold=True`` every call waits until the test releases it, and the
    server applies mutations in release order, so confirmations can be made
    to arrive in any order. List calls answer with the state at request time. ``fail`` queues an error for the next call of an
    operation.
    """

    def __init__(self, tasks: list[Task] | None = None, hold: bool = False) -> None:
        self.server: dict[str, Task] = {t.id: t for t in tasks or []}
        self.hold = hold
        self.calls: list[tuple] = []
        self.held: list[HeldCall] = []
        self._failures: dict[str, list[TaskApiError]] = {}

    def fail(self, name: str, error: TaskApiError) -> None:
        self._failures.setdefault(name, []).append(error)

    def held_call(self, name: str, index: int = 0) -> HeldCall:
        """The ``index``-th still-unreleased call of an operation."""
        waiting = [c for c in self.held if c.name == name and not c.gate.done()]
        return waiting[index]

    async def _enter(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        error = None
        if self._failures.get(name):
            error = self._failures[name].pop(0)
        if self.hold:
            call = HeldCall(name, args, asyncio.get_running_loop().create_future())
            self.held.append(call)
            released_error = await call.gate
            error = error or released_error
        if error is not None:
            raise error

    async def list_tasks(self) -> list[Task]:
        # Answered as of the request; delivery may be held
        snapshot = list(self.server.values())
        await self._enter("list_tasks")
        return snapshot

    async def create_task(self, task: Task) -> Task:
        await self._enter("create_task", task.id)
        self.server[task.id] = task
        return task

    async def update_status(self, task_id: str, status: TaskStatus) -> Task:
        await self._enter("update_status", task_id, status)
        if task_id not in self.server:
            raise TaskNotFoundError(f"Task not found: {task_id}")
        self.server[task_id] = self.server[task_id].with_status(status)
        return self.server[task_id]

    async def delete_task(self, task_id: str) -> None:
        await self._enter("delete_task", task_id)
        if task_id not in self.server:
            raise TaskNotFoundError(f"Task not found: {task_id}")
        del self.server[task_id]

    def remote_calls(self, name: str | None = None) -> list[tuple]:
        """Calls made so far, optionally only one operation."""
        if name is None:
            return list(self.calls)
        return [c for c in self.calls if c[0] == name]


async def drain() -> None:
    """Let scheduled tasks run until they block again."""
    for _ in range(10):
        await asyncio.sleep(0)


def make_task(
    task_id: str = "1",
    status: TaskStatus = TaskStatus.TODO,
    title: str | None = None,
    description: str = "Some details",
) -> Task:
    return Task(
        id=task_id,
        title=title or f"Task {task_id}",
        description=description,
        status=status,
    )


@pytest.fixture
def todo_task() -> Task:
    return make_task("1", TaskStatus.TODO)
