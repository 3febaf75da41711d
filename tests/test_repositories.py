from datetime import datetime, timedelta

import pytest

from pomotask.core.errors import NotFoundError, UnauthenticatedError, ValidationError
from pomotask.core.session_context import LocalIdentity, SessionContext, StaticIdentity
from pomotask.data.models import Priority, TaskStatus, UserSettings
from pomotask.data.repositories import FocusLogRepository, SettingsRepository, TaskRepository, UserRepository

from conftest import NOW


class SpyStore:
    def __init__(self) -> None:
        self.calls = []

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append(name)
            return None

        return record


def test_create_task_with_defaults(ctx) -> None:
    task = TaskRepository(ctx).create("  Write report  ", tags=["work", " ", "urgent"])

    assert task.title == "Write report"
    assert task.priority == Priority.MEDIUM
    assert task.status == TaskStatus.PENDING
    assert task.tags == ("work", "urgent")
    assert task.pomodoro_target == 1
    assert task.pomodoro_completed == 0
    assert task.created_at == NOW
    assert task.completed_at is None


def test_empty_title_is_rejected_before_any_write(local) -> None:
    spy = SpyStore()
    ctx = SessionContext(identity=StaticIdentity("owner-1"), store=spy, local=local)

    with pytest.raises(ValidationError):
        TaskRepository(ctx).create("   ")

    assert spy.calls == []


def test_task_field_limits(ctx) -> None:
    tasks = TaskRepository(ctx)
    with pytest.raises(ValidationError):
        tasks.create("x" * 101)
    with pytest.raises(ValidationError):
        tasks.create("Too many", pomodoro_target=101)
    with pytest.raises(ValidationError):
        tasks.create("Bad priority", priority="urgent")

    task = tasks.create("Long notes", description="d" * 600, tags=[f"t{i}" for i in range(15)])
    assert len(task.description) == 500
    assert len(task.tags) == 10


def test_completed_at_follows_status(ctx, clock) -> None:
    tasks = TaskRepository(ctx)
    task = tasks.create("Write report")

    clock.now = NOW + timedelta(hours=1)
    done = tasks.complete(task.id)
    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at == NOW + timedelta(hours=1)

    reopened = tasks.uncomplete(task.id)
    assert reopened.status == TaskStatus.IN_PROGRESS
    assert reopened.completed_at is None

    via_update = tasks.update(task.id, status="completed")
    assert via_update.completed_at is not None
    assert tasks.update(task.id, status="pending").completed_at is None


def test_update_rejects_unknown_fields(ctx) -> None:
    tasks = TaskRepository(ctx)
    task = tasks.create("Write report")

    with pytest.raises(ValidationError):
        tasks.update(task.id, pomodoro_completed=99)

    updated = tasks.update(task.id, title="Edit report", priority="high")
    assert updated.title == "Edit report"
    assert updated.priority == Priority.HIGH


def test_missing_and_foreign_tasks_are_not_found(ctx, store, local) -> None:
    tasks = TaskRepository(ctx)
    task = tasks.create("Mine")
    other = TaskRepository(SessionContext(identity=StaticIdentity("owner-2"), store=store, local=local))

    with pytest.raises(NotFoundError):
        other.get(task.id)
    with pytest.raises(NotFoundError):
        other.delete(task.id)
    with pytest.raises(NotFoundError):
        other.increment_pomodoro(task.id)
    assert tasks.get(task.id).title == "Mine"


def test_increment_pomodoro(ctx) -> None:
    tasks = TaskRepository(ctx)
    task = tasks.create("Write report", pomodoro_target=3)

    tasks.increment_pomodoro(task.id)
    tasks.increment_pomodoro(task.id)

    assert tasks.get(task.id).pomodoro_completed == 2


def test_list_filters_by_status(ctx) -> None:
    tasks = TaskRepository(ctx)
    first = tasks.create("First")
    tasks.create("Second")
    tasks.complete(first.id)

    assert [task.title for task in tasks.list(status="completed")] == ["First"]
    assert tasks.count() == 2
    assert tasks.count(TaskStatus.PENDING) == 1


def test_unauthenticated_calls_raise(store, local) -> None:
    ctx = SessionContext(identity=StaticIdentity(None), store=store, local=local)

    with pytest.raises(UnauthenticatedError):
        TaskRepository(ctx).list()
    with pytest.raises(UnauthenticatedError):
        SettingsRepository(ctx).get()


def test_local_identity_is_stable(local) -> None:
    identity = LocalIdentity(local)
    owner_id = identity.get_current_owner_id()

    assert owner_id
    assert LocalIdentity(local).get_current_owner_id() == owner_id
    identity.sign_out()
    assert identity.get_current_owner_id() != owner_id


def test_focus_log_create_and_edit(ctx) -> None:
    logs = FocusLogRepository(ctx)
    session = logs.create(None, "", 25, NOW - timedelta(minutes=25), NOW)

    assert session.is_independent
    assert session.completed is True

    edited = logs.edit(session.id, note="deep work", task_title="Reading")
    assert edited.note == "deep work"
    assert edited.task_title == "Reading"
    assert edited.duration == 25


def test_focus_log_rejects_bad_times(ctx) -> None:
    logs = FocusLogRepository(ctx)
    with pytest.raises(ValidationError):
        logs.create(None, "", 25, NOW, NOW - timedelta(minutes=1))
    with pytest.raises(ValidationError):
        logs.create(None, "", -1, NOW, NOW)


def test_focus_log_ranges(ctx) -> None:
    logs = FocusLogRepository(ctx)
    for day in range(3):
        start = datetime(2026, 10, 17 + day, 9)
        logs.create(None, "", 25, start, start + timedelta(minutes=25))

    day = datetime(2026, 10, 18)
    assert logs.count_between(day, day + timedelta(days=1)) == 1
    assert [s.started_at.day for s in logs.list()] == [19, 18, 17]
    assert [s.started_at.day for s in logs.completed()] == [17, 18, 19]


def test_settings_defaults_and_update(ctx) -> None:
    settings = SettingsRepository(ctx)

    assert settings.get() == UserSettings()
    updated = settings.update(pomodoro_duration=50, auto_start_break=1, unknown="x")

    assert updated.pomodoro_duration == 50
    assert updated.auto_start_break is True
    assert settings.get().pomodoro_duration == 50


def test_settings_ranges(ctx) -> None:
    settings = SettingsRepository(ctx)
    with pytest.raises(ValidationError):
        settings.update(pomodoro_duration=0)
    with pytest.raises(ValidationError):
        settings.update(short_break=181)
    with pytest.raises(ValidationError):
        settings.update(long_break_interval=13)


def test_settings_toggles_parse_text(ctx) -> None:
    settings = SettingsRepository(ctx)

    updated = settings.update(sound_enabled="false", auto_start_pomodoro=" True ")

    assert updated.sound_enabled is False
    assert updated.auto_start_pomodoro is True
    with pytest.raises(ValidationError):
        settings.update(sound_enabled="maybe")
    with pytest.raises(ValidationError):
        settings.update(auto_start_break=2)
    assert settings.get().sound_enabled is False


def test_user_profile(ctx) -> None:
    users = UserRepository(ctx)
    assert users.get() is None

    user = users.ensure()
    assert user.created_at == NOW
    assert users.ensure().id == user.id

    assert users.update_profile(nick_name=" Sam ").nick_name == "Sam"
    with pytest.raises(ValidationError):
        users.update_profile(nick_name="  ")
