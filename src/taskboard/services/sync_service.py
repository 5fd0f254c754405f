"""Service keeping the task store in sync with the task service."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..api import TaskApiError, TaskNotFoundError, TaskValidationError
from ..models import SyncOperation, SyncResult, Task, TaskStatus
from ..repositories import TaskBackendProtocol, TaskStore

logger = logging.getLogger(__name__)


@dataclass
class _PendingMutation:
    """An optimistic mutation whose remote call has not settled yet."""

    seq: int
    operation: SyncOperation
    target: Task | None  # Optimistic state; None means removed


class SyncService:
    """Applies mutations optimistically and reconciles them with the service.

    Every mutation follows the same steps:
    1. Apply the change to the store immediately.
    2. Issue the remote call.
    3. On success, write the server-confirmed record (unless a newer
       mutation of the same task is still pending).
    4. On failure, roll the task back and return the error.

    A logical clock orders mutations and refreshes. The last optimistic
    intent for a task always wins, whatever order confirmations arrive in,
    and a refresh never overwrites tasks mutated after it started.

    All methods must run on one event loop; the store is never touched from
    another thread.
    """

    def __init__(
        self,
        store: TaskStore,
        backend: TaskBackendProtocol,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.store = store
        self.backend = backend
        self._on_change = on_change
        self._clock = 0
        # task_id -> pending mutations, oldest first
        self._pending: dict[str, list[_PendingMutation]] = {}
        # task_id -> (seq, last server-confirmed state); None state = absent remotely
        self._confirmed: dict[str, tuple[int, Task | None]] = {}
        # task_id -> seq of the newest optimistic mutation
        self._last_mutation: dict[str, int] = {}
        # task_id -> future resolving to True once the create is confirmed
        self._creating: dict[str, asyncio.Future[bool]] = {}
        self._applied_refresh = 0
        self._refreshes_in_flight = 0

    @property
    def pending_count(self) -> int:
        """Number of mutations still waiting for the service."""
        return sum(len(mutations) for mutations in self._pending.values())

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def is_pending(self, task_id: str) -> bool:
        """Whether a task has unconfirmed local changes."""
        return task_id in self._pending

    async def refresh(self) -> SyncResult:
        """Reload the full task list from the service.

        Tasks with mutations in flight when the refresh started, or mutated
        since, keep their local state: the snapshot may predate their
        confirmation. A refresh that resolves after a newer one
        has been applied is discarded.
        """
        stamp = self._tick()
        # Mutations in flight now may settle before the snapshot arrives
        in_flight = set(self._pending)
        logger.debug("Refresh #%d started (%d tasks in flight)", stamp, len(in_flight))
        self._refreshes_in_flight += 1
        try:
            return await self._refresh(stamp, in_flight)
        finally:
            self._refreshes_in_flight -= 1
            if not self._refreshes_in_flight:
                self._prune()

    async def _refresh(self, stamp: int, in_flight: set[str]) -> SyncResult:
        try:
            tasks = await self.backend.list_tasks()
        except TaskApiError as e:
            logger.error("Refresh #%d failed: %s", stamp, e)
            return SyncResult(SyncOperation.REFRESH, error=e)

        if stamp < self._applied_refresh:
            logger.info(
                "Discarding stale refresh #%d (already applied #%d)", stamp, self._applied_refresh
            )
            return SyncResult(SyncOperation.REFRESH, stale=True)
        self._applied_refresh = stamp

        server = {task.id: task for task in tasks}
        local_ids = [task.id for task in self.store.get_all()]
        protected = {
            task_id
            for task_id in set(local_ids) | set(server)
            if task_id in self._pending
            or task_id in in_flight
            or self._last_mutation.get(task_id, 0) > stamp
        }

        removed = 0
        for task_id in local_ids:
            if task_id in protected or task_id in server:
                continue
            self.store.remove(task_id)
            self._confirmed[task_id] = (stamp, None)
            removed += 1

        for task_id, task in server.items():
            if task_id in protected:
                continue
            self.store.replace(task)
            self._confirmed[task_id] = (stamp, task)

        logger.info(
            "Refresh #%d applied: %d tasks, %d removed, %d kept local",
            stamp,
            len(server),
            removed,
            len(protected),
        )
        self._notify()
        return SyncResult(SyncOperation.REFRESH)

    async def create_task(self, task: Task) -> SyncResult:
        """Insert a new task locally and persist it."""
        if task.id in self.store or task.id in self._creating:
            logger.error("create_task: duplicate task id: %s", task.id)
            return SyncResult(
                SyncOperation.CREATE,
                task.id,
                error=TaskValidationError(f"Task id already exists: {task.id}"),
            )

        self._creating[task.id] = asyncio.get_running_loop().create_future()
        mutation = self._apply(task.id, SyncOperation.CREATE, task)
        logger.info("Task created locally: %s (%s)", task.id, task.status.value)

        try:
            confirmed = await self.backend.create_task(task)
        except TaskApiError as e:
            self._fail(task.id, mutation, e)
            self._finish_create(task.id, succeeded=False)
            return SyncResult(SyncOperation.CREATE, task.id, error=e)
        except asyncio.CancelledError:
            self._abandon(task.id, mutation)
            self._finish_create(task.id, succeeded=False)
            raise

        confirmed = self._settle(task.id, mutation, confirmed)
        self._finish_create(task.id, succeeded=True)
        return SyncResult(SyncOperation.CREATE, task.id, task=confirmed)

    async def update_status(self, task_id: str, status: TaskStatus) -> SyncResult:
        """Move a task to another column.

        Moving a task onto the column it is already in does nothing.
        """
        current = self.store.get_by_id(task_id)
        if current is None:
            logger.debug("update_status: task not found: %s", task_id)
            return SyncResult(
                SyncOperation.UPDATE,
                task_id,
                error=TaskNotFoundError(f"Task not found: {task_id}"),
            )
        if current.status == status:
            logger.debug("update_status: %s already in %s", task_id, status.value)
            return SyncResult(SyncOperation.UPDATE, task_id, task=current, skipped=True)

        mutation = self._apply(task_id, SyncOperation.UPDATE, current.with_status(status))
        logger.info("Task moved locally: %s (%s -> %s)", task_id, current.status.value, status.value)

        try:
            if not await self._wait_for_create(task_id):
                raise TaskNotFoundError(f"Task was never created: {task_id}")
            confirmed = await self.backend.update_status(task_id, status)
        except TaskApiError as e:
            self._fail(task_id, mutation, e)
            return SyncResult(SyncOperation.UPDATE, task_id, error=e)
        except asyncio.CancelledError:
            self._abandon(task_id, mutation)
            raise

        confirmed = self._settle(task_id, mutation, confirmed)
        return SyncResult(SyncOperation.UPDATE, task_id, task=confirmed)

    async def delete_task(self, task_id: str) -> SyncResult:
        """Remove a task locally and delete it on the service.

        A task the service no longer has counts as deleted.
        """
        if task_id not in self.store:
            logger.debug("delete_task: task not found: %s", task_id)
            return SyncResult(SyncOperation.DELETE, task_id, skipped=True)

        mutation = self._apply(task_id, SyncOperation.DELETE, None)
        logger.info("Task deleted locally: %s", task_id)

        try:
            if await self._wait_for_create(task_id):
                await self.backend.delete_task(task_id)
            else:
                logger.debug("delete_task: %s was never created remotely", task_id)
        except TaskNotFoundError:
            logger.info("delete_task: %s already absent on the service", task_id)
        except TaskApiError as e:
            self._fail(task_id, mutation, e)
            return SyncResult(SyncOperation.DELETE, task_id, error=e)
        except asyncio.CancelledError:
            self._abandon(task_id, mutation)
            raise

        self._settle(task_id, mutation, None)
        if not self._refreshes_in_flight:
            self._forget(task_id)
        return SyncResult(SyncOperation.DELETE, task_id)

    def _tick(self) -> int:
        self._clock += 1
        return self._clock

    def _apply(
        self, task_id: str, operation: SyncOperation, target: Task | None
    ) -> _PendingMutation:
        """Record a pending mutation and apply its target to the store."""
        if task_id not in self._confirmed and task_id not in self._pending:
            # Task came from outside the sync service; treat what we hold as confirmed
            self._confirmed[task_id] = (0, self.store.get_by_id(task_id))

        mutation = _PendingMutation(self._tick(), operation, target)
        self._pending.setdefault(task_id, []).append(mutation)
        self._last_mutation[task_id] = mutation.seq
        self._write(task_id, target)
        return mutation

    def _settle(
        self, task_id: str, mutation: _PendingMutation, server_state: Task | None
    ) -> Task | None:
        """Reconcile a confirmed mutation with the store."""
        if server_state is not None and server_state.id != task_id:
            logger.warning(
                "Service returned id %s for task %s; keeping client id", server_state.id, task_id
            )
            server_state = server_state.model_copy(update={"id": task_id})

        remaining = self._pop_pending(task_id, mutation)
        confirmed_seq, _ = self._confirmed.get(task_id, (0, None))
        if mutation.seq < confirmed_seq:
            logger.debug(
                "Confirmation #%d for %s is older than #%d; ignored",
                mutation.seq,
                task_id,
                confirmed_seq,
            )
            return server_state
        self._confirmed[task_id] = (mutation.seq, server_state)

        if any(m.seq > mutation.seq for m in remaining):
            logger.debug(
                "Confirmation #%d for %s superseded by a pending change", mutation.seq, task_id
            )
            return server_state

        self._write(task_id, server_state)
        logger.debug("Mutation #%d confirmed: %s %s", mutation.seq, mutation.operation.value, task_id)
        return server_state

    def _fail(self, task_id: str, mutation: _PendingMutation, error: TaskApiError) -> None:
        """Roll back a failed mutation unless a newer one is pending."""
        logger.error(
            "Mutation #%d failed: %s %s: %s", mutation.seq, mutation.operation.value, task_id, error
        )
        remaining = self._pop_pending(task_id, mutation)
        if any(m.seq > mutation.seq for m in remaining):
            logger.info("Not rolling back %s: a newer change is pending", task_id)
            return

        if remaining:
            restore = remaining[-1].target
        else:
            restore = self._confirmed.get(task_id, (0, None))[1]
        logger.info(
            "Rolling back %s to %s",
            task_id,
            restore.status.value if restore is not None else "absent",
        )
        self._write(task_id, restore)

    def _pop_pending(self, task_id: str, mutation: _PendingMutation) -> list[_PendingMutation]:
        """Drop a mutation from the pending list; return what is left."""
        pending = self._pending.get(task_id, [])
        if mutation in pending:
            pending.remove(mutation)
        if not pending:
            self._pending.pop(task_id, None)
        return pending

    def _abandon(self, task_id: str, mutation: _PendingMutation) -> None:
        """Drop a cancelled mutation; the store keeps its optimistic state."""
        logger.warning(
            "Mutation #%d cancelled: %s %s", mutation.seq, mutation.operation.value, task_id
        )
        self._pop_pending(task_id, mutation)

    def _forget(self, task_id: str) -> None:
        """Drop bookkeeping for a task that is gone locally and remotely."""
        if task_id in self._pending or task_id in self._creating or task_id in self.store:
            return
        confirmed = self._confirmed.get(task_id)
        if confirmed is not None and confirmed[1] is not None:
            return
        self._confirmed.pop(task_id, None)
        self._last_mutation.pop(task_id, None)

    def _prune(self) -> None:
        for task_id in [t for t, (_, state) in self._confirmed.items() if state is None]:
            self._forget(task_id)

    async def _wait_for_create(self, task_id: str) -> bool:
        """Wait for an in-flight create of this task.

        Returns:
            False if the create failed, True otherwise.
        """
        creation = self._creating.get(task_id)
        if creation is None:
            return True
        logger.debug("Waiting for create of %s to settle", task_id)
        return await creation

    def _finish_create(self, task_id: str, succeeded: bool) -> None:
        """Release mutations waiting on a create."""
        creation = self._creating.pop(task_id, None)
        if creation is not None and not creation.done():
            creation.set_result(succeeded)

    def _write(self, task_id: str, state: Task | None) -> None:
        """Make the store hold ``state`` for ``task_id``."""
        if state is None:
            self.store.remove(task_id)
        elif task_id in self.store:
            self.store.replace(state)
        else:
            self.store.insert(state)
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
