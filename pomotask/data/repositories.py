from __future__ import annotations

"""Owner-scoped CRUD over tasks, pomodoro logs, settings and users."""

from datetime import datetime
from typing import Any

from loguru import logger

from pomotask.core import config
from pomotask.core.errors import NotFoundError, ValidationError
from pomotask.core.session_context import SessionContext
from pomotask.data import validators
from pomotask.data.models import FocusSession, Task, TaskStatus, UserProfile, UserSettings
from pomotask.data.query import SortOrder, query

_TASK_FIELDS = {"title", "description", "priority", "status", "pomodoro_target", "due_date", "tags"}
_SYSTEM_FIELDS = {"id", "owner_id", "created_at", "updated_at"}


class TaskRepository:
    def __init__(self, ctx: SessionContext) -> None:
        self.ctx = ctx

    def list(
        self,
        status: TaskStatus | str | None = None,
        order_by: str = "created_at",
        order: SortOrder = "desc",
    ) -> list[Task]:
        q = query(config.TASKS, self.ctx.require_owner()).sorted_by(order_by, order)
        if status:
            q = q.where(status=validators.validate_status(status))
        return [Task.from_record(record) for record in self.ctx.store.query(q)]

    def find(self, task_id: str) -> Task | None:
        if not task_id or not isinstance(task_id, str):
            raise ValidationError("Invalid task id")
        record = self.ctx.store.get(config.TASKS, task_id, self.ctx.require_owner())
        return Task.from_record(record) if record else None

    def get(self, task_id: str) -> Task:
        task = self.find(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        return task

    def count(self, status: TaskStatus | str | None = None) -> int:
        q = query(config.TASKS, self.ctx.require_owner())
        if status:
            q = q.where(status=validators.validate_status(status))
        return self.ctx.store.count(q)

    def completed_between(self, start: datetime, end: datetime) -> list[Task]:
        q = (
            query(config.TASKS, self.ctx.require_owner())
            .where(status=TaskStatus.COMPLETED)
            .between("completed_at", gte=start, lte=end)
        )
        return [Task.from_record(record) for record in self.ctx.store.query(q)]

    def create(
        self,
        title: str,
        description: str = "",
        priority: str = "medium",
        pomodoro_target: int = 1,
        due_date: Any = None,
        tags: list[str] | None = None,
    ) -> Task:
        fields = {
            "title": validators.validate_title(title),
            "description": validators.clean_description(description),
            "priority": validators.validate_priority(priority or "medium"),
            "tags": validators.clean_tags(tags or []),
            "status": TaskStatus.PENDING,
            "pomodoro_target": validators.validate_pomodoro_target(pomodoro_target or 1),
            "pomodoro_completed": 0,
            "due_date": validators.validate_due_date(due_date),
            "completed_at": None,
        }
        owner_id = self.ctx.require_owner()
        now = self.ctx.now()
        task_id = self.ctx.store.create(config.TASKS, owner_id, {**fields, "created_at": now, "updated_at": now})
        logger.info(f"[TASKS] Created task {task_id}: {fields['title']!r}")
        return self.get(task_id)

    def update(self, task_id: str, **changes: Any) -> Task:
        unknown = set(changes) - _TASK_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        fields: dict[str, Any] = {}
        if "title" in changes:
            fields["title"] = validators.validate_title(changes["title"])
        if "description" in changes:
            fields["description"] = validators.clean_description(changes["description"])
        if "priority" in changes:
            fields["priority"] = validators.validate_priority(changes["priority"])
        if "pomodoro_target" in changes:
            fields["pomodoro_target"] = validators.validate_pomodoro_target(changes["pomodoro_target"])
        if "due_date" in changes:
            fields["due_date"] = validators.validate_due_date(changes["due_date"])
        if "tags" in changes and isinstance(changes["tags"], (list, tuple)):
            fields["tags"] = validators.clean_tags(changes["tags"])
        now = self.ctx.now()
        if "status" in changes:
            status = validators.validate_status(changes["status"])
            fields["status"] = status
            fields["completed_at"] = now if status == TaskStatus.COMPLETED else None
        return self._write(task_id, {**fields, "updated_at": now})

    def delete(self, task_id: str) -> None:
        """Delete a task; its pomodoro logs stay and keep their title snapshot."""
        if not task_id:
            raise ValidationError("Task id cannot be empty")
        if not self.ctx.store.delete(config.TASKS, task_id, self.ctx.require_owner()):
            raise NotFoundError(f"Task {task_id} not found")
        logger.info(f"[TASKS] Deleted task {task_id}")

    def complete(self, task_id: str) -> Task:
        now = self.ctx.now()
        return self._write(task_id, {"status": TaskStatus.COMPLETED, "completed_at": now, "updated_at": now})

    def uncomplete(self, task_id: str, original_status: str = TaskStatus.IN_PROGRESS.value) -> Task:
        status = validators.validate_status(original_status)
        if status == TaskStatus.COMPLETED:
            raise ValidationError("Cannot restore a task to completed")
        return self._write(task_id, {"status": status, "completed_at": None, "updated_at": self.ctx.now()})

    def start_progress(self, task_id: str) -> Task:
        return self._write(task_id, {"status": TaskStatus.IN_PROGRESS, "updated_at": self.ctx.now()})

    def increment_pomodoro(self, task_id: str) -> None:
        done = self.ctx.store.increment(
            config.TASKS,
            task_id,
            self.ctx.require_owner(),
            "pomodoro_completed",
            1,
            extra={"updated_at": self.ctx.now()},
        )
        if not done:
            raise NotFoundError(f"Task {task_id} not found")

    def _write(self, task_id: str, fields: dict[str, Any]) -> Task:
        if not task_id:
            raise ValidationError("Task id cannot be empty")
        if not self.ctx.store.update(config.TASKS, task_id, self.ctx.require_owner(), fields):
            raise NotFoundError(f"Task {task_id} not found")
        return self.get(task_id)


class FocusLogRepository:
    def __init__(self, ctx: SessionContext) -> None:
        self.ctx = ctx

    def create(
        self,
        task_id: str | None,
        task_title: str,
        duration: int,
        started_at: datetime,
        ended_at: datetime,
        note: str = "",
    ) -> FocusSession:
        if duration < 0:
            raise ValidationError("Duration cannot be negative")
        if ended_at < started_at:
            raise ValidationError("A session cannot end before it starts")
        owner_id = self.ctx.require_owner()
        fields = {
            "task_id": task_id or None,
            "task_title": task_title or "",
            "duration": int(duration),
            "started_at": started_at,
            "ended_at": ended_at,
            "completed": True,
            "note": note or "",
        }
        session_id = self.ctx.store.create(config.POMODORO_LOGS, owner_id, fields)
        logger.info(f"[LOGS] Recorded {duration} min pomodoro {session_id} (task={task_id})")
        return self.get(session_id)

    def get(self, session_id: str) -> FocusSession:
        record = self.ctx.store.get(config.POMODORO_LOGS, session_id, self.ctx.require_owner())
        if record is None:
            raise NotFoundError(f"Pomodoro log {session_id} not found")
        return FocusSession.from_record(record)

    def list(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        task_id: str | None = None,
    ) -> list[FocusSession]:
        """Logs newest first, optionally within an inclusive start-time range."""
        q = query(config.POMODORO_LOGS, self.ctx.require_owner()).sorted_by("started_at", "desc")
        if start is not None or end is not None:
            q = q.between("started_at", gte=start, lte=end)
        if task_id:
            q = q.where(task_id=task_id)
        return [FocusSession.from_record(record) for record in self.ctx.store.query(q)]

    def completed(self, start: datetime | None = None, end: datetime | None = None) -> list[FocusSession]:
        q = (
            query(config.POMODORO_LOGS, self.ctx.require_owner())
            .where(completed=True)
            .sorted_by("started_at", "asc")
        )
        if start is not None or end is not None:
            q = q.between("started_at", gte=start, lte=end)
        return [FocusSession.from_record(record) for record in self.ctx.store.query(q)]

    def count_between(self, start: datetime, end: datetime) -> int:
        q = (
            query(config.POMODORO_LOGS, self.ctx.require_owner())
            .where(completed=True)
            .between("started_at", gte=start, lte=end)
        )
        return self.ctx.store.count(q)

    def edit(self, session_id: str, note: str | None = None, task_title: str | None = None) -> FocusSession:
        """Only the note and the task title snapshot of a log may change."""
        fields: dict[str, Any] = {}
        if note is not None:
            fields["note"] = validators.clean_description(note)
        if task_title is not None:
            fields["task_title"] = task_title.strip()[: config.TITLE_MAX_LENGTH]
        if not fields:
            return self.get(session_id)
        if not self.ctx.store.update(config.POMODORO_LOGS, session_id, self.ctx.require_owner(), fields):
            raise NotFoundError(f"Pomodoro log {session_id} not found")
        return self.get(session_id)


class SettingsRepository:
    def __init__(self, ctx: SessionContext) -> None:
        self.ctx = ctx

    def get(self) -> UserSettings:
        """Return the owner's settings, creating the defaults on first access."""
        record = self._find()
        if record is None:
            now = self.ctx.now()
            self.ctx.store.create(
                config.USER_SETTINGS,
                self.ctx.require_owner(),
                {**UserSettings().to_dict(), "created_at": now, "updated_at": now},
            )
            logger.info("[SETTINGS] Created default settings")
            return UserSettings()
        return UserSettings.from_record(record)

    def update(self, **changes: Any) -> UserSettings:
        clean = validators.validate_settings({k: v for k, v in changes.items() if k not in _SYSTEM_FIELDS})
        current = self.get()
        record = self._find()
        if clean and record is not None:
            self.ctx.store.update(
                config.USER_SETTINGS,
                record["id"],
                self.ctx.require_owner(),
                {**clean, "updated_at": self.ctx.now()},
            )
            logger.info(f"[SETTINGS] Updated {sorted(clean)}")
        return UserSettings.from_record({**current.to_dict(), **clean})

    def _find(self) -> dict[str, Any] | None:
        q = query(config.USER_SETTINGS, self.ctx.require_owner()).limited(1)
        records = self.ctx.store.query(q)
        return records[0] if records else None


class UserRepository:
    def __init__(self, ctx: SessionContext) -> None:
        self.ctx = ctx

    def get(self) -> UserProfile | None:
        q = query(config.USERS, self.ctx.require_owner()).limited(1)
        records = self.ctx.store.query(q)
        return UserProfile.from_record(records[0]) if records else None

    def ensure(self) -> UserProfile:
        user = self.get()
        if user is not None:
            return user
        now = self.ctx.now()
        self.ctx.store.create(config.USERS, self.ctx.require_owner(), {"created_at": now, "updated_at": now})
        logger.info("[USERS] Registered new user")
        return self.get()

    def update_profile(self, nick_name: str | None = None, avatar_url: str | None = None) -> UserProfile:
        user = self.get()
        if user is None:
            raise NotFoundError("User profile does not exist")
        fields: dict[str, Any] = {"updated_at": self.ctx.now()}
        if nick_name is not None:
            if not nick_name.strip():
                raise ValidationError("Nickname cannot be empty")
            fields["nick_name"] = nick_name.strip()
        if avatar_url is not None:
            fields["avatar_url"] = avatar_url
        self.ctx.store.update(config.USERS, user.id, self.ctx.require_owner(), fields)
        return self.get()
