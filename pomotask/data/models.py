from __future__ import annotations

"""Record types stored in the document store."""

from dataclasses import dataclass, fields
from datetime import date, datetime
from enum import Enum
from typing import Any

from pomotask.core import config


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class Task:
    id: str
    owner_id: str
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    tags: tuple[str, ...] = ()
    pomodoro_target: int = 1
    pomodoro_completed: int = 0
    due_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Task:
        return cls(
            id=record["id"],
            owner_id=record["owner_id"],
            title=record["title"],
            description=record.get("description") or "",
            priority=Priority(record.get("priority") or Priority.MEDIUM.value),
            status=TaskStatus(record.get("status") or TaskStatus.PENDING.value),
            tags=tuple(record.get("tags") or ()),
            pomodoro_target=int(record.get("pomodoro_target", 1)),
            pomodoro_completed=int(record.get("pomodoro_completed", 0)),
            due_date=parse_date(record.get("due_date")),
            created_at=parse_datetime(record.get("created_at")),
            updated_at=parse_datetime(record.get("updated_at")),
            completed_at=parse_datetime(record.get("completed_at")),
        )


@dataclass(frozen=True)
class FocusSession:
    """One completed Pomodoro (a pomodoro log entry)."""

    id: str
    owner_id: str
    task_id: str | None
    task_title: str
    duration: int
    started_at: datetime
    ended_at: datetime
    completed: bool = True
    note: str = ""

    @property
    def is_independent(self) -> bool:
        return not self.task_id

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> FocusSession:
        return cls(
            id=record["id"],
            owner_id=record["owner_id"],
            task_id=record.get("task_id") or None,
            task_title=record.get("task_title") or "",
            duration=int(record.get("duration") or 0),
            started_at=parse_datetime(record["started_at"]),
            ended_at=parse_datetime(record["ended_at"]),
            completed=bool(record.get("completed", True)),
            note=record.get("note") or "",
        )


@dataclass(frozen=True)
class UserSettings:
    pomodoro_duration: int = config.DEFAULT_SETTINGS["pomodoro_duration"]
    short_break: int = config.DEFAULT_SETTINGS["short_break"]
    long_break: int = config.DEFAULT_SETTINGS["long_break"]
    long_break_interval: int = config.DEFAULT_SETTINGS["long_break_interval"]
    sound_enabled: bool = config.DEFAULT_SETTINGS["sound_enabled"]
    vibration_enabled: bool = config.DEFAULT_SETTINGS["vibration_enabled"]
    auto_start_break: bool = config.DEFAULT_SETTINGS["auto_start_break"]
    auto_start_pomodoro: bool = config.DEFAULT_SETTINGS["auto_start_pomodoro"]

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> UserSettings:
        known = cls.field_names()
        return cls(**{key: value for key, value in record.items() if key in known})

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in sorted(self.field_names())}

    def break_minutes(self, is_long: bool) -> int:
        return self.long_break if is_long else self.short_break


@dataclass(frozen=True)
class UserProfile:
    id: str
    owner_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    nick_name: str = ""
    avatar_url: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> UserProfile:
        return cls(
            id=record["id"],
            owner_id=record["owner_id"],
            created_at=parse_datetime(record.get("created_at")),
            updated_at=parse_datetime(record.get("updated_at")),
            nick_name=record.get("nick_name") or "",
            avatar_url=record.get("avatar_url") or "",
        )
