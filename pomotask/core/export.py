from __future__ import annotations

"""Export the owner's data as JSON or CSV text."""

import csv
import io
import json
from dataclasses import dataclass
from typing import Any

from loguru import logger

from pomotask.core import config
from pomotask.core.errors import ValidationError
from pomotask.core.session_context import SessionContext
from pomotask.data.models import Priority, TaskStatus
from pomotask.data.query import query

EXPORT_KINDS = ("all", "tasks", "pomodoros", "statistics")
EXPORT_FORMATS = ("json", "csv")

TASK_COLUMNS = [
    ("Title", "title"),
    ("Description", "description"),
    ("Priority", "priority"),
    ("Status", "status"),
    ("Target Pomodoros", "pomodoro_target"),
    ("Completed Pomodoros", "pomodoro_completed"),
    ("Created At", "created_at"),
    ("Completed At", "completed_at"),
]
POMODORO_COLUMNS = [
    ("Task Title", "task_title"),
    ("Duration (min)", "duration"),
    ("Started At", "started_at"),
    ("Ended At", "ended_at"),
    ("Completed", "completed"),
]
INDEPENDENT_TITLE = "Independent Pomodoro"


@dataclass(frozen=True)
class ExportResult:
    data: str
    format: str
    exported_at: str


class DataExporter:
    def __init__(self, ctx: SessionContext) -> None:
        self.ctx = ctx

    def export(self, kind: str, fmt: str = "json") -> ExportResult:
        if kind not in EXPORT_KINDS:
            raise ValidationError(f"Invalid export type: {kind!r}")
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"Invalid export format: {fmt!r}")

        payload = getattr(self, f"_collect_{kind}")()
        if fmt == "csv" and kind == "tasks":
            text = _to_csv(payload, TASK_COLUMNS)
        elif fmt == "csv" and kind == "pomodoros":
            text = _to_csv(payload, POMODORO_COLUMNS, blank_title=INDEPENDENT_TITLE)
        else:
            text = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
        logger.info(f"[EXPORT] Exported {kind} as {fmt}")
        return ExportResult(data=text, format=fmt, exported_at=self.ctx.now().isoformat())

    def _records(self, collection: str, order_by: str | None = None) -> list[dict[str, Any]]:
        q = query(collection, self.ctx.require_owner())
        if order_by:
            q = q.sorted_by(order_by, "desc")
        return self.ctx.store.query(q)

    def _collect_all(self) -> dict[str, Any]:
        users = self._records(config.USERS)
        settings = self._records(config.USER_SETTINGS)
        return {
            "user": users[0] if users else None,
            "tasks": self._collect_tasks(),
            "pomodoros": self._collect_pomodoros(),
            "settings": settings[0] if settings else None,
        }

    def _collect_tasks(self) -> list[dict[str, Any]]:
        return self._records(config.TASKS, "created_at")

    def _collect_pomodoros(self) -> list[dict[str, Any]]:
        return self._records(config.POMODORO_LOGS, "started_at")

    def _collect_statistics(self) -> dict[str, Any]:
        tasks = self._collect_tasks()
        logs = [log for log in self._collect_pomodoros() if log.get("completed", True)]
        total_minutes = sum(int(log.get("duration") or 0) for log in logs)
        by_status = {status.value: 0 for status in TaskStatus}
        by_priority = {priority.value: 0 for priority in Priority}
        for task in tasks:
            by_status[task.get("status", TaskStatus.PENDING.value)] += 1
            by_priority[task.get("priority", Priority.MEDIUM.value)] += 1
        return {
            "summary": {
                "total_pomodoros": len(logs),
                "total_hours": round(total_minutes / 60, 2),
                "total_tasks": len(tasks),
                "completed_tasks": by_status[TaskStatus.COMPLETED.value],
                "in_progress_tasks": by_status[TaskStatus.IN_PROGRESS.value],
                "pending_tasks": by_status[TaskStatus.PENDING.value],
            },
            "priority": by_priority,
            "generated_at": self.ctx.now().isoformat(),
        }


def _to_csv(rows: list[dict[str, Any]], columns: list[tuple[str, str]], blank_title: str = "") -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([header for header, _ in columns])
    for row in rows:
        values = []
        for _, key in columns:
            value = row.get(key)
            if key == "task_title" and not value:
                value = blank_title
            elif key == "completed":
                value = "yes" if value else "no"
            values.append("" if value is None else value)
        writer.writerow(values)
    return buffer.getvalue()
