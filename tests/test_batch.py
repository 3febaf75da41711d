from datetime import timedelta

import pytest

from pomotask.core.batch import BatchOperations
from pomotask.core.errors import NotFoundError, ValidationError
from pomotask.core.session_context import SessionContext, StaticIdentity
from pomotask.data.models import Priority, TaskStatus
from pomotask.data.repositories import FocusLogRepository, TaskRepository

from conftest import NOW


def test_batch_complete_skips_done_tasks(ctx, clock) -> None:
    tasks = TaskRepository(ctx)
    ids = [tasks.create(f"Task {i}").id for i in range(3)]
    tasks.complete(ids[0])
    clock.now = NOW + timedelta(hours=2)

    assert BatchOperations(ctx).complete_tasks(ids) == 2

    for task_id in ids[1:]:
        task = tasks.get(task_id)
        assert task.status == TaskStatus.COMPLETED
        assert task.completed_at == NOW + timedelta(hours=2)
    assert tasks.get(ids[0]).completed_at == NOW


def test_batch_update_priority_and_status(ctx) -> None:
    tasks = TaskRepository(ctx)
    ids = [tasks.create(f"Task {i}").id for i in range(2)]
    batch = BatchOperations(ctx)

    assert batch.update_priority(ids, "high") == 2
    assert {tasks.get(task_id).priority for task_id in ids} == {Priority.HIGH}

    batch.update_status(ids, "completed")
    assert all(tasks.get(task_id).completed_at is not None for task_id in ids)
    batch.update_status(ids, "pending")
    assert all(tasks.get(task_id).completed_at is None for task_id in ids)


def test_batch_rejects_bad_input(ctx) -> None:
    batch = BatchOperations(ctx)
    with pytest.raises(ValidationError):
        batch.delete_tasks([])
    with pytest.raises(ValidationError):
        batch.update_priority(["x"], "urgent")
    with pytest.raises(NotFoundError):
        batch.delete_tasks(["missing"])


def test_batch_only_touches_own_tasks(ctx, store, local) -> None:
    mine = TaskRepository(ctx).create("Mine").id
    other_ctx = SessionContext(identity=StaticIdentity("owner-2"), store=store, local=local, clock=ctx.clock)
    theirs = TaskRepository(other_ctx).create("Theirs").id

    assert BatchOperations(ctx).delete_tasks([mine, theirs]) == 1
    assert TaskRepository(other_ctx).get(theirs).title == "Theirs"
    with pytest.raises(NotFoundError):
        TaskRepository(ctx).get(mine)


def test_cleanup_completed_tasks(ctx, clock) -> None:
    tasks = TaskRepository(ctx)
    clock.now = NOW - timedelta(days=45)
    old = tasks.create("Old")
    tasks.complete(old.id)
    stale_open = tasks.create("Still open")
    clock.now = NOW - timedelta(days=5)
    recent = tasks.create("Recent")
    tasks.complete(recent.id)
    clock.now = NOW

    assert BatchOperations(ctx).cleanup_completed_tasks() == 1
    assert {task.id for task in tasks.list()} == {stale_open.id, recent.id}


def test_cleanup_old_pomodoros(ctx) -> None:
    logs = FocusLogRepository(ctx)
    for days_ago in (100, 91, 10):
        start = NOW - timedelta(days=days_ago)
        logs.create(None, "", 25, start, start + timedelta(minutes=25))

    assert BatchOperations(ctx).cleanup_old_pomodoros() == 2
    assert len(logs.list()) == 1
    assert BatchOperations(ctx).cleanup_old_pomodoros(days_to_keep=5) == 1
