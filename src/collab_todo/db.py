from __future__ import annotations

import json
import logging
import os
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generator, List, Mapping, Optional, Sequence, cast

from .codec import decode_todo, encode_new, encode_patch
from .errors import StoreUnavailable
from .models import NewTodo, TodoEntity
from .repositories import MonotonicClock, Repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    schema_version: str = "schema_version"
    title: str = "title"
    description: str = "description"
    status: str = "status"
    priority: str = "priority"
    created_by_uid: str = "created_by_uid"
    owner_uid: str = "owner_uid"
    assignee_uids: str = "assignee_uids"
    position: str = "position"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()

# stored document key -> column
_KEY_TO_COL: Dict[str, str] = {
    "schemaVersion": _COLS.schema_version,
    "title": _COLS.title,
    "description": _COLS.description,
    "status": _COLS.status,
    "priority": _COLS.priority,
    "createdByUid": _COLS.created_by_uid,
    "ownerUid": _COLS.owner_uid,
    "assigneeUids": _COLS.assignee_uids,
    "position": _COLS.position,
    "createdAt": _COLS.created_at,
    "updatedAt": _COLS.updated_at,
}


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.

    Columns added by later schema versions are nullable so that older rows
    decode through the same legacy defaults as any other backend.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._clock = MonotonicClock()
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            logger.error("Cannot open SQLite database %s: %s", self._db_path, exc)
            raise StoreUnavailable("Todo store is unavailable") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("SQLite operation failed: %s", exc)
            raise StoreUnavailable("Todo store is unavailable") from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} TEXT PRIMARY KEY,
                    {_COLS.schema_version} INTEGER NULL,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.description} TEXT NULL,
                    {_COLS.status} TEXT NULL,
                    {_COLS.priority} TEXT NULL,
                    {_COLS.created_by_uid} TEXT NULL,
                    {_COLS.owner_uid} TEXT NOT NULL,
                    {_COLS.assignee_uids} TEXT NOT NULL DEFAULT '[]',
                    {_COLS.position} INTEGER NULL,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_owner_uid ON {_COLS.table}({_COLS.owner_uid})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        doc: Dict[str, Any] = {key: row[col] for key, col in _KEY_TO_COL.items()}
        doc["assigneeUids"] = json.loads(doc["assigneeUids"] or "[]")
        return decode_todo(row[_COLS.id], doc)

    def _to_params(self, doc: Mapping[str, Any]) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        for key, value in doc.items():
            if key == "assigneeUids":
                value = json.dumps(list(value))
            elif key in ("createdAt", "updatedAt") and isinstance(value, datetime):
                value = value.isoformat()
            params[_KEY_TO_COL[key]] = value
        return params

    def _select_one(self, conn: sqlite3.Connection, todo_id: str) -> Optional[sqlite3.Row]:
        return conn.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (todo_id,)).fetchone()

    def seed(self, todo_id: str, doc: Mapping[str, Any]) -> None:
        """Insert a raw stored document (missing keys stay NULL), e.g. a legacy record."""
        full = {"assigneeUids": [], "updatedAt": doc["createdAt"], **doc}
        params = self._to_params(full)
        params[_COLS.id] = todo_id
        cols = ", ".join(params)
        marks = ", ".join("?" for _ in params)
        with self._conn() as conn:
            conn.execute(f"INSERT INTO {_COLS.table} ({cols}) VALUES ({marks})", list(params.values()))

    def list_visible_to(self, uid: str) -> List[TodoEntity]:
        with self._conn() as conn:
            owned = conn.execute(
                f"SELECT * FROM {_COLS.table} WHERE {_COLS.owner_uid} = ?", (uid,)
            ).fetchall()
            assigned = conn.execute(
                f"""
                SELECT {_COLS.table}.* FROM {_COLS.table}, json_each({_COLS.table}.{_COLS.assignee_uids})
                WHERE json_each.value = ?
                """,
                (uid,),
            ).fetchall()
            merged: Dict[str, TodoEntity] = {}
            for row in [*owned, *assigned]:
                merged[row[_COLS.id]] = self._row_to_entity(row)
            return list(merged.values())

    def create(self, data: NewTodo) -> TodoEntity:
        todo_id = uuid.uuid4().hex
        params = self._to_params(encode_new(data, self._clock.now(), self._clock.next_position()))
        params[_COLS.id] = todo_id
        cols = ", ".join(params)
        marks = ", ".join("?" for _ in params)
        with self._conn() as conn:
            conn.execute(f"INSERT INTO {_COLS.table} ({cols}) VALUES ({marks})", list(params.values()))
            return self._row_to_entity(cast(sqlite3.Row, self._select_one(conn, todo_id)))

    def get(self, todo_id: str) -> Optional[TodoEntity]:
        with self._conn() as conn:
            row = self._select_one(conn, todo_id)
            return self._row_to_entity(row) if row else None

    def get_many(self, todo_ids: Sequence[str]) -> List[Optional[TodoEntity]]:
        if not todo_ids:
            return []
        marks = ", ".join("?" for _ in todo_ids)
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} IN ({marks})", list(todo_ids)
            ).fetchall()
        found = {row[_COLS.id]: self._row_to_entity(row) for row in rows}
        return [found.get(i) for i in todo_ids]

    def update(self, todo_id: str, fields: Mapping[str, Any]) -> Optional[TodoEntity]:
        patch = encode_patch(fields)
        patch["updatedAt"] = self._clock.now()
        params = self._to_params(patch)
        assignments = ", ".join(f"{col} = ?" for col in params)
        with self._conn() as conn:
            cur = conn.execute(
                f"UPDATE {_COLS.table} SET {assignments} WHERE {_COLS.id} = ?",
                [*params.values(), todo_id],
            )
            if cur.rowcount == 0:
                return None
            return self._row_to_entity(cast(sqlite3.Row, self._select_one(conn, todo_id)))

    def delete(self, todo_id: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (todo_id,))
            return cur.rowcount > 0

    def commit_reorder(self, ordered_ids: Sequence[str]) -> bool:
        now = self._clock.now().isoformat()
        with self._conn() as conn:
            # One write transaction for the whole batch
            conn.execute("BEGIN IMMEDIATE")
            for index, todo_id in enumerate(ordered_ids):
                cur = conn.execute(
                    f"UPDATE {_COLS.table} SET {_COLS.position} = ?, {_COLS.updated_at} = ? WHERE {_COLS.id} = ?",
                    (index, now, todo_id),
                )
                if cur.rowcount == 0:
                    conn.rollback()
                    return False
            return True
