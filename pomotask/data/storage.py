from __future__ import annotations

"""SQLite-backed document store and device-local key-value slots."""

import json
import re
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from pomotask.core.errors import PermissionDeniedError, StoreError, ValidationError
from pomotask.data.query import Query


SCHEMA_VERSION = 1
_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_COLUMN_FIELDS = {"id", "owner_id"}
_PERMISSION_MARKERS = ("readonly", "read-only", "permission", "not authorized", "access denied")


def encode_value(value: Any) -> Any:
    """Normalize a field value into its JSON form.

    Datetimes are stored as naive local ISO strings with a fixed precision so
    that stored values compare correctly as text.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return value.isoformat(timespec="microseconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    return value


def _encode_param(value: Any) -> Any:
    value = encode_value(value)
    if isinstance(value, bool):
        return int(value)
    return value


def _field_expr(name: str) -> str:
    if not _FIELD_RE.match(name):
        raise ValidationError(f"Invalid field name: {name!r}")
    if name in _COLUMN_FIELDS:
        return name
    return f"json_extract(data, '$.{name}')"


@contextmanager
def _guard(operation: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        message = str(exc)
        logger.error(f"[STORE] {operation} failed: {message}")
        if any(marker in message.lower() for marker in _PERMISSION_MARKERS):
            raise PermissionDeniedError(operation, message) from exc
        raise StoreError(operation, message) from exc


class _SqliteFile:
    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode = WAL;")
        except sqlite3.DatabaseError:
            pass
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _reading(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()


class RecordStore(_SqliteFile):
    """Per-collection, per-owner JSON document store."""

    def init_db(self) -> None:
        with _guard("init records"), self._transaction() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if not row:
                conn.execute("INSERT INTO schema_version(version) VALUES (?)", (SCHEMA_VERSION,))
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records(
                    id TEXT PRIMARY KEY,
                    collection TEXT NOT NULL,
                    owner_id TEXT NOT NULL,
                    data TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_records_owner ON records(collection, owner_id)"
            )
        logger.info(f"[STORE] Record store initialized: {self.db_path}")

    def create(self, collection: str, owner_id: str, fields: dict[str, Any]) -> str:
        record_id = uuid.uuid4().hex
        payload = {key: encode_value(value) for key, value in fields.items() if key not in _COLUMN_FIELDS}
        with _guard(f"create {collection}"), self._transaction() as conn:
            conn.execute(
                "INSERT INTO records(id, collection, owner_id, data) VALUES (?, ?, ?, ?)",
                (record_id, collection, owner_id, json.dumps(payload)),
            )
        logger.debug(f"[STORE] Created {collection}/{record_id}")
        return record_id

    def get(self, collection: str, record_id: str, owner_id: str) -> dict[str, Any] | None:
        """Return the record, or None when absent or owned by someone else."""
        with _guard(f"get {collection}"), self._reading() as conn:
            row = conn.execute(
                "SELECT id, owner_id, data FROM records WHERE collection = ? AND id = ? AND owner_id = ?",
                (collection, record_id, owner_id),
            ).fetchone()
        return self._to_record(row) if row else None

    def query(self, q: Query) -> list[dict[str, Any]]:
        where, params = self._where(q)
        sql = f"SELECT id, owner_id, data FROM records WHERE {where}"
        if q.order_by:
            direction = "DESC" if q.order == "desc" else "ASC"
            sql += f" ORDER BY {_field_expr(q.order_by)} {direction}, id {direction}"
        if q.limit is not None:
            sql += " LIMIT ?"
            params.append(q.limit)
        with _guard(f"query {q.collection}"), self._reading() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._to_record(row) for row in rows]

    def count(self, q: Query) -> int:
        where, params = self._where(q)
        with _guard(f"count {q.collection}"), self._reading() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS c FROM records WHERE {where}", params).fetchone()
        return int(row["c"] if row else 0)

    def update(self, collection: str, record_id: str, owner_id: str, fields: dict[str, Any]) -> bool:
        with _guard(f"update {collection}"), self._transaction() as conn:
            row = conn.execute(
                "SELECT data FROM records WHERE collection = ? AND id = ? AND owner_id = ?",
                (collection, record_id, owner_id),
            ).fetchone()
            if not row:
                return False
            data = json.loads(row["data"])
            data.update({key: encode_value(value) for key, value in fields.items() if key not in _COLUMN_FIELDS})
            conn.execute("UPDATE records SET data = ? WHERE id = ?", (json.dumps(data), record_id))
        logger.debug(f"[STORE] Updated {collection}/{record_id}: {sorted(fields)}")
        return True

    def increment(
        self,
        collection: str,
        record_id: str,
        owner_id: str,
        field_name: str,
        by: int = 1,
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """Atomically add `by` to a numeric field, optionally setting other fields."""
        path = _field_expr(field_name)
        sql = f"json_set(data, '$.{field_name}', COALESCE({path}, 0) + ?"
        params: list[Any] = [by]
        for key, value in (extra or {}).items():
            _field_expr(key)
            sql += f", '$.{key}', ?"
            params.append(_encode_param(value))
        sql += ")"
        with _guard(f"increment {collection}.{field_name}"), self._transaction() as conn:
            cursor = conn.execute(
                f"UPDATE records SET data = {sql} WHERE collection = ? AND id = ? AND owner_id = ?",
                (*params, collection, record_id, owner_id),
            )
            return cursor.rowcount == 1

    def delete(self, collection: str, record_id: str, owner_id: str) -> bool:
        """Delete one record; nothing happens unless `owner_id` owns it."""
        with _guard(f"delete {collection}"), self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM records WHERE collection = ? AND id = ? AND owner_id = ?",
                (collection, record_id, owner_id),
            )
            deleted = cursor.rowcount == 1
        if deleted:
            logger.debug(f"[STORE] Deleted {collection}/{record_id}")
        return deleted

    def _where(self, q: Query) -> tuple[str, list[Any]]:
        if not q.owner_id:
            raise ValidationError("Queries must be scoped to an owner")
        clauses = ["collection = ?", "owner_id = ?"]
        params: list[Any] = [q.collection, q.owner_id]
        for name, value in q.filters:
            if value is None:
                clauses.append(f"{_field_expr(name)} IS NULL")
            else:
                clauses.append(f"{_field_expr(name)} = ?")
                params.append(_encode_param(value))
        if q.ids is not None:
            if not q.ids:
                clauses.append("0")
            else:
                clauses.append(f"id IN ({', '.join('?' for _ in q.ids)})")
                params.extend(q.ids)
        for bound in q.ranges:
            expr = _field_expr(bound.field)
            for op, value in ((">=", bound.gte), ("<=", bound.lte), ("<", bound.lt)):
                if value is not None:
                    clauses.append(f"{expr} {op} ?")
                    params.append(_encode_param(value))
        return " AND ".join(clauses), params

    @staticmethod
    def _to_record(row: sqlite3.Row) -> dict[str, Any]:
        record = json.loads(row["data"])
        record["id"] = row["id"]
        record["owner_id"] = row["owner_id"]
        return record


class LocalStorage(_SqliteFile):
    """Device-local key-value slots (the running timer, the local identity)."""

    def init_db(self) -> None:
        with _guard("init local storage"), self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv(
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
                """
            )

    def get(self, key: str, default: Any = None) -> Any:
        with _guard(f"read {key}"), self._reading() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if not row:
            return default
        raw = row["value"]
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return raw

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(encode_value(value))
        with _guard(f"write {key}"), self._transaction() as conn:
            conn.execute(
                "INSERT INTO kv(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (key, payload),
            )

    def remove(self, key: str) -> None:
        with _guard(f"remove {key}"), self._transaction() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
