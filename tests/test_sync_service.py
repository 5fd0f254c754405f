"""Tests for SyncService optimistic updates and reconciliation."""

import asyncio

import pytest
from conftest import FakeBackend, drain, make_task

from taskboard.api import TaskNetworkError, TaskNotFoundError, TaskValidationError
from taskboard.models import SyncOperation, TaskStatus
from taskboard.repositories import TaskStore
from taskboard.services import SyncService


def run(coro):
    return asyncio.run(coro)


async def release_all(backend: FakeBackend) -> None:
    """Release held calls in the order they were made until none are left."""
    await drain()
    while True:
        waiting = [c for c in backend.held if not c.gate.done()]
        if not waiting:
            return
        waiting[0].release()
        await drain()


@pytest.fixture
def store() -> TaskStore:
    return TaskStore([make_task("1", TaskStatus.TODO)])


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend([make_task("1", TaskStatus.TODO)], hold=True)


@pytest.fixture
def sync(store: TaskStore, backend: FakeBackend) -> SyncService:
    return SyncService(store, backend)


class TestUpdateStatus:
    """Tests for status changes (drag between columns)."""

    def test_optimistic_update_before_response(self, sync, store, backend):
        """The store changes before the service answers, then is confirmed."""

        async def scenario():
            pending = asyncio.create_task(sync.update_status("1", TaskStatus.IN_PROGRESS))
            await drain()
            assert store.get_by_id("1").status == TaskStatus.IN_PROGRESS
            assert sync.is_pending("1")
            assert sync.pending_count == 1
            backend.held_call("update_status").release()
            return await pending

        result = run(scenario())

        assert result.ok
        assert result.operation == SyncOperation.UPDATE
        assert result.task.status == TaskStatus.IN_PROGRESS
        assert store.get_by_id("1").status == TaskStatus.IN_PROGRESS
        assert not sync.has_pending

    def test_failure_reverts_and_reports_error(self, sync, store, backend):
        """A failed move puts the task back in its column and returns the error."""

        async def scenario():
            pending = asyncio.create_task(sync.update_status("1", TaskStatus.IN_PROGRESS))
            await drain()
            assert store.get_by_id("1").status == TaskStatus.IN_PROGRESS
            backend.held_call("update_status").release(TaskNetworkError("connection refused"))
            return await pending

        result = run(scenario())

        assert result.has_errors
        assert isinstance(result.error, TaskNetworkError)
        assert store.get_by_id("1").status == TaskStatus.TODO
        assert not sync.has_pending

    def test_same_column_is_noop(self):
        """Dropping a task on its own column sends nothing and changes nothing."""
        store = TaskStore([make_task("1", TaskStatus.DONE)])
        backend = FakeBackend([make_task("1", TaskStatus.DONE)])
        sync = SyncService(store, backend)
        before = store.get_all()

        result = run(sync.update_status("1", TaskStatus.DONE))

        assert result.skipped
        assert result.ok
        assert backend.remote_calls() == []
        assert store.get_all() == before

    def test_unknown_task_returns_not_found(self, sync, backend):
        """Moving a task the store does not hold fails without a remote call."""
        result = run(sync.update_status("missing", TaskStatus.DONE))

        assert isinstance(result.error, TaskNotFoundError)
        assert backend.remote_calls() == []

    def test_double_move_confirmations_out_of_order(self, sync, store, backend):
        """The latest move wins even if the first confirmation arrives last."""

        async def scenario():
            first = asyncio.create_task(sync.update_status("1", TaskStatus.IN_PROGRESS))
            await drain()
            second = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await drain()
            assert store.get_by_id("1").status == TaskStatus.DONE

            # Second confirmation first, then the first one
            backend.held_call("update_status", 1).release()
            await drain()
            assert store.get_by_id("1").status == TaskStatus.DONE
            backend.held_call("update_status", 0).release()
            return await asyncio.gather(first, second)

        first_result, second_result = run(scenario())

        assert first_result.ok
        assert second_result.ok
        assert store.get_by_id("1").status == TaskStatus.DONE

    def test_double_move_confirmations_in_order(self, sync, store, backend):
        """In-order confirmations end on the last move too."""

        async def scenario():
            first = asyncio.create_task(sync.update_status("1", TaskStatus.IN_PROGRESS))
            await drain()
            second = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await drain()
            backend.held_call("update_status", 0).release()
            await drain()
            # First confirmation must not drag the card back
            assert store.get_by_id("1").status == TaskStatus.DONE
            backend.held_call("update_status", 0).release()
            await asyncio.gather(first, second)

        run(scenario())

        assert store.get_by_id("1").status == TaskStatus.DONE
        assert backend.server["1"].status == TaskStatus.DONE

    def test_older_failure_does_not_undo_newer_move(self, sync, store, backend):
        """A failure of a superseded move leaves the newer intent in place."""

        async def scenario():
            first = asyncio.create_task(sync.update_status("1", TaskStatus.IN_PROGRESS))
            await drain()
            second = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await drain()
            backend.held_call("update_status", 0).release(TaskNetworkError("timeout"))
            await drain()
            assert store.get_by_id("1").status == TaskStatus.DONE
            backend.held_call("update_status", 0).release()
            return await asyncio.gather(first, second)

        first_result, second_result = run(scenario())

        assert first_result.has_errors
        assert second_result.ok
        assert store.get_by_id("1").status == TaskStatus.DONE

    def test_newer_failure_reverts_to_confirmed_older_move(self, sync, store, backend):
        """If the last move fails, the task falls back to the last confirmed state."""

        async def scenario():
            first = asyncio.create_task(sync.update_status("1", TaskStatus.IN_PROGRESS))
            await drain()
            second = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await drain()
            backend.held_call("update_status", 0).release()
            await drain()
            backend.held_call("update_status", 0).release(TaskNetworkError("HTTP 500"))
            return await asyncio.gather(first, second)

        run(scenario())

        assert store.get_by_id("1").status == TaskStatus.IN_PROGRESS
        assert backend.server["1"].status == TaskStatus.IN_PROGRESS

    def test_newer_failure_reverts_to_older_pending_intent(self, sync, store, backend):
        """If the last move fails while an older one is in flight, show the older intent."""

        async def scenario():
            first = asyncio.create_task(sync.update_status("1", TaskStatus.IN_PROGRESS))
            await drain()
            second = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await drain()
            backend.held_call("update_status", 1).release(TaskNetworkError("HTTP 500"))
            await drain()
            assert store.get_by_id("1").status == TaskStatus.IN_PROGRESS
            backend.held_call("update_status", 0).release()
            return await asyncio.gather(first, second)

        run(scenario())

        assert store.get_by_id("1").status == TaskStatus.IN_PROGRESS

    def test_server_normalized_record_replaces_local(self):
        """The confirmed record from the service is what ends up in the store."""

        class NormalizingBackend(FakeBackend):
            async def update_status(self, task_id, status):
                task = await super().update_status(task_id, status)
                return task.model_copy(update={"title": task.title.upper()})

        store = TaskStore([make_task("1", title="write docs")])
        sync = SyncService(store, NormalizingBackend([make_task("1", title="write docs")]))

        run(sync.update_status("1", TaskStatus.DONE))

        assert store.get_by_id("1").title == "WRITE DOCS"

    def test_server_id_mismatch_keeps_client_id(self):
        """A confirmed record with a different id is stored under the client id."""

        class RenamingBackend(FakeBackend):
            async def update_status(self, task_id, status):
                task = await super().update_status(task_id, status)
                return task.model_copy(update={"id": "server-id"})

        store = TaskStore([make_task("1")])
        sync = SyncService(store, RenamingBackend([make_task("1")]))

        run(sync.update_status("1", TaskStatus.DONE))

        assert store.get_by_id("1").status == TaskStatus.DONE
        assert store.get_by_id("server-id") is None
        assert len(store) == 1


class TestCreateTask:
    """Tests for task creation."""

    def test_create_inserts_optimistically(self, backend):
        """A new task shows up before the service confirms it."""
        store = TaskStore()
        sync = SyncService(store, backend)
        task = make_task("new", TaskStatus.IN_PROGRESS)

        async def scenario():
            pending = asyncio.create_task(sync.create_task(task))
            await drain()
            assert store.get_by_id("new") == task
            backend.held_call("create_task").release()
            return await pending

        result = run(scenario())

        assert result.ok
        assert result.task == task
        assert backend.server["new"] == task

    def test_create_failure_removes_task(self, backend):
        """A rejected create leaves no trace in the store."""
        store = TaskStore()
        sync = SyncService(store, backend)

        async def scenario():
            pending = asyncio.create_task(sync.create_task(make_task("new")))
            await drain()
            backend.held_call("create_task").release(TaskValidationError("bad title"))
            return await pending

        result = run(scenario())

        assert isinstance(result.error, TaskValidationError)
        assert "new" not in store

    def test_duplicate_id_rejected_without_remote_call(self, sync, backend):
        """Creating a task with an id already on the board fails locally."""
        result = run(sync.create_task(make_task("1")))

        assert isinstance(result.error, TaskValidationError)
        assert backend.remote_calls() == []

    def test_create_then_delete_before_confirmation(self, backend):
        """Deleting a task whose create is in flight leaves it absent everywhere."""
        store = TaskStore()
        sync = SyncService(store, backend)

        async def scenario():
            create = asyncio.create_task(sync.create_task(make_task("x")))
            await drain()
            delete = asyncio.create_task(sync.delete_task("x"))
            await drain()
            assert "x" not in store
            # Delete waits for the create to reach the service
            assert backend.remote_calls("delete_task") == []

            backend.held_call("create_task").release()
            await drain()
            assert "x" not in store
            backend.held_call("delete_task").release()
            return await asyncio.gather(create, delete)

        create_result, delete_result = run(scenario())

        assert create_result.ok
        assert delete_result.ok
        assert "x" not in store
        assert "x" not in backend.server

    def test_create_fails_then_pending_delete_skips_remote(self, backend):
        """A delete queued behind a failed create needs no remote call."""
        store = TaskStore()
        sync = SyncService(store, backend)

        async def scenario():
            create = asyncio.create_task(sync.create_task(make_task("x")))
            await drain()
            delete = asyncio.create_task(sync.delete_task("x"))
            await drain()
            backend.held_call("create_task").release(TaskNetworkError("offline"))
            return await asyncio.gather(create, delete)

        create_result, delete_result = run(scenario())

        assert create_result.has_errors
        assert delete_result.ok
        assert backend.remote_calls("delete_task") == []
        assert "x" not in store

    def test_move_waits_for_create(self, backend):
        """A move of a task being created is sent after the create settles."""
        store = TaskStore()
        sync = SyncService(store, backend)

        async def scenario():
            create = asyncio.create_task(sync.create_task(make_task("x")))
            await drain()
            move = asyncio.create_task(sync.update_status("x", TaskStatus.DONE))
            await drain()
            assert backend.remote_calls("update_status") == []
            assert store.get_by_id("x").status == TaskStatus.DONE

            backend.held_call("create_task").release()
            await drain()
            # Create confirmation must not undo the pending move
            assert store.get_by_id("x").status == TaskStatus.DONE
            backend.held_call("update_status").release()
            return await asyncio.gather(create, move)

        run(scenario())

        assert store.get_by_id("x").status == TaskStatus.DONE
        assert backend.server["x"].status == TaskStatus.DONE

    def test_move_after_failed_create_fails(self, backend):
        """A move queued behind a failed create fails and the task disappears."""
        store = TaskStore()
        sync = SyncService(store, backend)

        async def scenario():
            create = asyncio.create_task(sync.create_task(make_task("x")))
            await drain()
            move = asyncio.create_task(sync.update_status("x", TaskStatus.DONE))
            await drain()
            backend.held_call("create_task").release(TaskNetworkError("offline"))
            return await asyncio.gather(create, move)

        _, move_result = run(scenario())

        assert isinstance(move_result.error, TaskNotFoundError)
        assert backend.remote_calls("update_status") == []
        assert "x" not in store


class TestDeleteTask:
    """Tests for task deletion."""

    def test_delete_removes_optimistically(self, sync, store, backend):
        """The task disappears before the service confirms."""

        async def scenario():
            pending = asyncio.create_task(sync.delete_task("1"))
            await drain()
            assert "1" not in store
            backend.held_call("delete_task").release()
            return await pending

        result = run(scenario())

        assert result.ok
        assert "1" not in backend.server

    def test_delete_failure_restores_task(self, sync, store, backend):
        """A failed delete brings the task back."""
        original = store.get_by_id("1")

        async def scenario():
            pending = asyncio.create_task(sync.delete_task("1"))
            await drain()
            backend.held_call("delete_task").release(TaskNetworkError("HTTP 503"))
            return await pending

        result = run(scenario())

        assert result.has_errors
        assert store.get_by_id("1") == original

    def test_delete_not_found_counts_as_deleted(self):
        """The service not knowing the task is the outcome we wanted."""
        store = TaskStore([make_task("1")])
        backend = FakeBackend([])
        sync = SyncService(store, backend)

        result = run(sync.delete_task("1"))

        assert result.ok
        assert "1" not in store
        assert backend.remote_calls("delete_task") == [("delete_task", "1")]

    def test_delete_unknown_task_is_skipped(self, sync, backend):
        result = run(sync.delete_task("missing"))

        assert result.skipped
        assert backend.remote_calls() == []

    def test_move_then_delete(self, sync, store, backend):
        """Deleting right after a move removes the task once both settle."""

        async def scenario():
            move = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await drain()
            delete = asyncio.create_task(sync.delete_task("1"))
            await drain()
            backend.held_call("update_status").release()
            await drain()
            assert "1" not in store
            backend.held_call("delete_task").release()
            await asyncio.gather(move, delete)

        run(scenario())

        assert "1" not in store
        assert backend.server == {}


class TestRefresh:
    """Tests for full reloads from the service."""

    def test_refresh_loads_server_view(self):
        """Refresh adds new tasks and drops ones the service no longer has."""
        store = TaskStore([make_task("gone")])
        backend = FakeBackend([make_task("1"), make_task("2", TaskStatus.DONE)])
        sync = SyncService(store, backend)

        result = run(sync.refresh())

        assert result.ok
        assert result.operation == SyncOperation.REFRESH
        assert {t.id for t in store.get_all()} == {"1", "2"}
        assert store.get_by_id("2").status == TaskStatus.DONE

    def test_refresh_failure_leaves_store_unchanged(self):
        store = TaskStore([make_task("1")])
        backend = FakeBackend([])
        backend.fail("list_tasks", TaskNetworkError("offline"))
        sync = SyncService(store, backend)

        result = run(sync.refresh())

        assert isinstance(result.error, TaskNetworkError)
        assert "1" in store

    def test_refresh_started_before_mutation_does_not_clobber(self, sync, store, backend):
        """A refresh that answers late keeps tasks changed after it started."""
        backend.server["2"] = make_task("2")

        async def scenario():
            refresh = asyncio.create_task(sync.refresh())
            await drain()
            move = asyncio.create_task(sync.update_status("1", TaskStatus.IN_PROGRESS))
            await drain()

            # Refresh answers with the pre-move view
            backend.held_call("list_tasks").release()
            await drain()
            assert store.get_by_id("1").status == TaskStatus.IN_PROGRESS
            assert "2" in store

            backend.held_call("update_status").release()
            await asyncio.gather(refresh, move)

        run(scenario())

        assert store.get_by_id("1").status == TaskStatus.IN_PROGRESS

    def test_refresh_keeps_settled_mutation_newer_than_refresh(self, sync, store, backend):
        """A move that settled while the refresh was in flight is not undone."""

        async def scenario():
            refresh = asyncio.create_task(sync.refresh())
            await drain()
            move = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await drain()
            backend.held_call("update_status").release()
            await move
            backend.held_call("list_tasks").release()
            await refresh

        run(scenario())

        assert store.get_by_id("1").status == TaskStatus.DONE

    def test_refresh_keeps_create_confirmed_while_it_was_in_flight(self, sync, store, backend):
        """A create issued before the refresh and confirmed before it answers survives."""

        async def scenario():
            create = asyncio.create_task(sync.create_task(make_task("x")))
            await drain()
            # Snapshot is taken now, without "x"
            refresh = asyncio.create_task(sync.refresh())
            await drain()
            backend.held_call("create_task").release()
            await create
            backend.held_call("list_tasks").release()
            await refresh

        run(scenario())

        assert "x" in backend.server
        assert store.get_by_id("x") == backend.server["x"]

    def test_refresh_keeps_move_confirmed_while_it_was_in_flight(self, sync, store, backend):
        """A move issued before the refresh and confirmed before it answers survives."""

        async def scenario():
            move = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await drain()
            # Snapshot is taken now, with "1" still in TODO
            refresh = asyncio.create_task(sync.refresh())
            await drain()
            backend.held_call("update_status").release()
            await move
            backend.held_call("list_tasks").release()
            await refresh

        run(scenario())

        assert backend.server["1"].status == TaskStatus.DONE
        assert store.get_by_id("1").status == TaskStatus.DONE

    def test_next_refresh_applies_server_view_again(self, sync, store, backend):
        """Protection only lasts for the refresh that overlapped the mutation."""

        async def scenario():
            move = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await drain()
            refresh = asyncio.create_task(sync.refresh())
            await drain()
            backend.held_call("update_status").release()
            await move
            backend.held_call("list_tasks").release()
            await refresh

            backend.server["1"] = make_task("1", TaskStatus.IN_PROGRESS)
            later = asyncio.create_task(sync.refresh())
            await release_all(backend)
            await later

        run(scenario())

        assert store.get_by_id("1").status == TaskStatus.IN_PROGRESS

    def test_stale_refresh_is_discarded(self, sync, store, backend):
        """An older refresh answering after a newer one is ignored."""

        async def scenario():
            older = asyncio.create_task(sync.refresh())
            await drain()
            backend.server["1"] = make_task("1", TaskStatus.DONE)
            newer = asyncio.create_task(sync.refresh())
            await drain()

            backend.held_call("list_tasks", 1).release()
            await drain()
            assert store.get_by_id("1").status == TaskStatus.DONE

            backend.held_call("list_tasks", 0).release()
            return await asyncio.gather(older, newer)

        older_result, newer_result = run(scenario())

        assert older_result.stale
        assert newer_result.ok and not newer_result.stale
        assert store.get_by_id("1").status == TaskStatus.DONE


class TestConvergence:
    """After everything settles the store matches the service."""

    def test_store_matches_service_after_mixed_operations(self):
        store = TaskStore()
        backend = FakeBackend(
            [make_task("1"), make_task("2", TaskStatus.IN_PROGRESS), make_task("3")],
            hold=True,
        )
        sync = SyncService(store, backend)

        async def scenario():
            load = asyncio.create_task(sync.refresh())
            await release_all(backend)
            await load

            ops = [
                sync.create_task(make_task("a")),
                sync.update_status("1", TaskStatus.DONE),
                sync.delete_task("2"),
                sync.create_task(make_task("b", TaskStatus.DONE)),
            ]
            tasks = []
            for op in ops:
                tasks.append(asyncio.create_task(op))
                await drain()
            tasks.append(asyncio.create_task(sync.update_status("a", TaskStatus.IN_PROGRESS)))
            await drain()
            tasks.append(asyncio.create_task(sync.delete_task("b")))
            await drain()
            tasks.append(asyncio.create_task(sync.update_status("1", TaskStatus.TODO)))
            await release_all(backend)
            return await asyncio.gather(*tasks)

        results = run(scenario())

        assert all(r.ok for r in results)
        assert not sync.has_pending
        assert {t.id: t for t in store.get_all()} == backend.server
        assert store.get_by_id("a").status == TaskStatus.IN_PROGRESS
        assert store.get_by_id("1").status == TaskStatus.TODO

    def test_on_change_called_for_each_store_change(self):
        changes = []
        store = TaskStore()
        backend = FakeBackend([make_task("1")])
        sync = SyncService(store, backend, on_change=lambda: changes.append(len(store)))

        async def scenario():
            await sync.refresh()
            await sync.update_status("1", TaskStatus.DONE)

        run(scenario())

        # refresh, optimistic move, confirmation
        assert changes == [1, 1, 1]


class TestBookkeeping:
    """Tests for tracking state kept per task."""

    def test_settled_delete_is_forgotten(self, sync, backend):
        async def scenario():
            delete = asyncio.create_task(sync.delete_task("1"))
            await release_all(backend)
            await delete

        run(scenario())

        assert "1" not in sync._confirmed
        assert "1" not in sync._last_mutation

    def test_delete_during_refresh_forgotten_after_refresh(self, sync, store, backend):
        """Tracking survives until the overlapping refresh has been applied."""

        async def scenario():
            refresh = asyncio.create_task(sync.refresh())
            await drain()
            delete = asyncio.create_task(sync.delete_task("1"))
            await drain()
            backend.held_call("delete_task").release()
            await delete
            assert "1" in sync._last_mutation

            # Snapshot predates the delete and still lists "1"
            backend.held_call("list_tasks").release()
            await refresh

        run(scenario())

        assert "1" not in store
        assert "1" not in sync._confirmed
        assert "1" not in sync._last_mutation

    def test_confirmed_tasks_stay_tracked(self, sync, backend):
        async def scenario():
            move = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await release_all(backend)
            await move

        run(scenario())

        assert sync._confirmed["1"][1].status == TaskStatus.DONE


class TestCancellation:
    """A cancelled operation must not stay pending."""

    @pytest.mark.parametrize(
        "start",
        [
            lambda sync: sync.update_status("1", TaskStatus.DONE),
            lambda sync: sync.delete_task("1"),
            lambda sync: sync.create_task(make_task("x")),
        ],
        ids=["update", "delete", "create"],
    )
    def test_cancelled_mutation_is_dropped(self, sync, backend, start):
        async def scenario():
            operation = asyncio.create_task(start(sync))
            await drain()
            assert sync.has_pending
            operation.cancel()
            with pytest.raises(asyncio.CancelledError):
                await operation

        run(scenario())

        assert not sync.has_pending
        assert sync.pending_count == 0

    def test_refresh_reconciles_after_cancelled_move(self, sync, store, backend):
        """With nothing pending, the next refresh restores the service view."""

        async def scenario():
            move = asyncio.create_task(sync.update_status("1", TaskStatus.DONE))
            await drain()
            move.cancel()
            with pytest.raises(asyncio.CancelledError):
                await move
            assert store.get_by_id("1").status == TaskStatus.DONE

            refresh = asyncio.create_task(sync.refresh())
            await drain()
            backend.held_call("list_tasks").release()
            await refresh

        run(scenario())

        assert store.get_by_id("1").status == TaskStatus.TODO
