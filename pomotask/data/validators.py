from __future__ import annotations

"""Field checks applied before anything reaches the record store."""

from datetime import date, datetime
from typing import Any

from pomotask.core import config
from pomotask.core.errors import ValidationError
from pomotask.data.models import Priority, TaskStatus, UserSettings, parse_date


def validate_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Task title cannot be empty")
    clean = title.strip()
    if len(clean) > config.TITLE_MAX_LENGTH:
        raise ValidationError(f"Task title cannot exceed {config.TITLE_MAX_LENGTH} characters")
    return clean


def clean_description(description: Any) -> str:
    if description is None:
        return ""
    return str(description).strip()[: config.DESCRIPTION_MAX_LENGTH]


def validate_priority(priority: Any) -> Priority:
    try:
        return Priority(priority)
    except ValueError:
        raise ValidationError(f"Invalid priority: {priority!r}") from None


def validate_status(status: Any) -> TaskStatus:
    try:
        return TaskStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid task status: {status!r}") from None


def validate_pomodoro_target(target: Any) -> int:
    try:
        value = int(target)
    except (TypeError, ValueError):
        raise ValidationError("Pomodoro target must be a number") from None
    if value < config.POMODORO_TARGET_MIN:
        raise ValidationError("Pomodoro target must be at least 1")
    if value > config.POMODORO_TARGET_MAX:
        raise ValidationError(f"Pomodoro target cannot exceed {config.POMODORO_TARGET_MAX}")
    return value


def clean_tags(tags: Any) -> list[str]:
    if not isinstance(tags, (list, tuple)):
        return []
    return [str(tag).strip() for tag in tags if str(tag).strip()][: config.MAX_TAGS]


def validate_due_date(due_date: Any) -> date | None:
    if due_date is None or due_date == "":
        return None
    if isinstance(due_date, datetime):
        return due_date.date()
    try:
        return parse_date(due_date)
    except ValueError:
        raise ValidationError(f"Invalid due date: {due_date!r}") from None


def validate_task_ids(task_ids: Any) -> list[str]:
    if not isinstance(task_ids, (list, tuple)) or not task_ids:
        raise ValidationError("Task id list cannot be empty")
    return [str(task_id) for task_id in task_ids]


_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off"}


def _parse_toggle(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValidationError(f"{key} must be true or false")


def validate_settings(changes: dict[str, Any]) -> dict[str, Any]:
    """Keep known settings fields and check their ranges."""
    known = UserSettings.field_names()
    clean: dict[str, Any] = {}
    for key, value in changes.items():
        if key not in known:
            continue
        if key.endswith("_enabled") or key.startswith("auto_start"):
            clean[key] = _parse_toggle(key, value)
            continue
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{key} must be a whole number") from None
        upper = config.LONG_BREAK_INTERVAL_MAX if key == "long_break_interval" else config.DURATION_MAX
        if not config.DURATION_MIN <= number <= upper:
            raise ValidationError(f"{key} must be between {config.DURATION_MIN} and {upper}")
        clean[key] = number
    return clean
