from __future__ import annotations

"""Bulk task updates and retention cleanup for one owner."""

from datetime import timedelta
from typing import Any

from loguru import logger

from pomotask.core import config
from pomotask.core.errors import NotFoundError
from pomotask.core.session_context import SessionContext
from pomotask.data import validators
from pomotask.data.models import TaskStatus
from pomotask.data.query import Query, query


class BatchOperations:
    def __init__(self, ctx: SessionContext) -> None:
        self.ctx = ctx

    def delete_tasks(self, task_ids: list[str]) -> int:
        ids = validators.validate_task_ids(task_ids)
        records = self._owned_tasks(ids)
        if not records:
            raise NotFoundError("No matching tasks to delete")
        owner_id = self.ctx.require_owner()
        deleted = sum(1 for record in records if self.ctx.store.delete(config.TASKS, record["id"], owner_id))
        logger.info(f"[BATCH] Deleted {deleted} tasks")
        return deleted

    def complete_tasks(self, task_ids: list[str]) -> int:
        ids = validators.validate_task_ids(task_ids)
        records = [r for r in self._owned_tasks(ids) if r.get("status") != TaskStatus.COMPLETED.value]
        if not records:
            raise NotFoundError("No matching tasks to complete")
        now = self.ctx.now()
        return self._update_all(records, {"status": TaskStatus.COMPLETED, "completed_at": now, "updated_at": now})

    def update_priority(self, task_ids: list[str], priority: str) -> int:
        ids = validators.validate_task_ids(task_ids)
        fields = {"priority": validators.validate_priority(priority), "updated_at": self.ctx.now()}
        records = self._owned_tasks(ids)
        if not records:
            raise NotFoundError("No matching tasks to update")
        return self._update_all(records, fields)

    def update_status(self, task_ids: list[str], status: str) -> int:
        ids = validators.validate_task_ids(task_ids)
        clean = validators.validate_status(status)
        now = self.ctx.now()
        fields = {
            "status": clean,
            "completed_at": now if clean == TaskStatus.COMPLETED else None,
            "updated_at": now,
        }
        records = self._owned_tasks(ids)
        if not records:
            raise NotFoundError("No matching tasks to update")
        return self._update_all(records, fields)

    def cleanup_completed_tasks(self, days_to_keep: int = config.KEEP_COMPLETED_TASKS_DAYS) -> int:
        """Delete tasks completed more than `days_to_keep` days ago."""
        cutoff = self.ctx.now() - timedelta(days=days_to_keep)
        owner_id = self.ctx.require_owner()
        q = query(config.TASKS, owner_id).where(status=TaskStatus.COMPLETED).before("completed_at", cutoff)
        return self._delete_matching(config.TASKS, q)

    def cleanup_old_pomodoros(self, days_to_keep: int = config.KEEP_POMODOROS_DAYS) -> int:
        cutoff = self.ctx.now() - timedelta(days=days_to_keep)
        q = query(config.POMODORO_LOGS, self.ctx.require_owner()).before("started_at", cutoff)
        return self._delete_matching(config.POMODORO_LOGS, q)

    def _owned_tasks(self, ids: list[str]) -> list[dict[str, Any]]:
        return self.ctx.store.query(query(config.TASKS, self.ctx.require_owner()).with_ids(ids))

    def _update_all(self, records: list[dict[str, Any]], fields: dict[str, Any]) -> int:
        owner_id = self.ctx.require_owner()
        updated = sum(1 for record in records if self.ctx.store.update(config.TASKS, record["id"], owner_id, fields))
        logger.info(f"[BATCH] Updated {updated} tasks: {sorted(fields)}")
        return updated

    def _delete_matching(self, collection: str, q: Query) -> int:
        owner_id = self.ctx.require_owner()
        records = self.ctx.store.query(q)
        deleted = sum(1 for record in records if self.ctx.store.delete(collection, record["id"], owner_id))
        logger.info(f"[BATCH] Cleaned up {deleted} records from {collection}")
        return deleted
