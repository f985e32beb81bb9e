from __future__ import annotations

import logging
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .codec import decode_todo, encode_new, encode_patch
from .models import NewTodo, TodoEntity
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract repository contract for todo storage backends.

    Every method may raise StoreUnavailable on infrastructure faults.
    """

    @abstractmethod
    def list_visible_to(self, uid: str) -> List[TodoEntity]:
        """
        Return todos owned by uid merged with todos assigned to uid, each exactly once.
        Order is unspecified.
        """

    @abstractmethod
    def create(self, data: NewTodo) -> TodoEntity:
        """Insert a todo with server timestamps and a creation-time position; return it."""

    @abstractmethod
    def get(self, todo_id: str) -> Optional[TodoEntity]:
        """Return a TodoEntity by id, or None if not found."""

    @abstractmethod
    def get_many(self, todo_ids: Sequence[str]) -> List[Optional[TodoEntity]]:
        """Point-load several todos. The result is aligned with todo_ids; None marks an absent id."""

    @abstractmethod
    def update(self, todo_id: str, fields: Mapping[str, Any]) -> Optional[TodoEntity]:
        """
        Apply a partial update of entity fields plus a fresh updated_at.
        Keys absent from `fields` are left untouched. Return the re-read entity or None if not found.
        """

    @abstractmethod
    def delete(self, todo_id: str) -> bool:
        """Delete a todo by id. Return True if deleted, False if not found."""

    @abstractmethod
    def commit_reorder(self, ordered_ids: Sequence[str]) -> bool:
        """
        Atomically set position = index (0-based) and refresh updated_at for every id.
        If any id no longer exists nothing is written and False is returned.
        """


class MonotonicClock:
    """
    Server-side clock for one repository instance. Timestamps and creation
    positions never repeat or go backwards, even within the same tick.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._last_now: Optional[datetime] = None
        self._last_position = 0

    def now(self) -> datetime:
        with self._lock:
            now = datetime.now(timezone.utc)
            if self._last_now is not None and now <= self._last_now:
                now = self._last_now + timedelta(microseconds=1)
            self._last_now = now
            return now

    def next_position(self) -> int:
        """Creation-time position: epoch milliseconds, bumped to stay strictly increasing."""
        with self._lock:
            position = max(time.time_ns() // 1_000_000, self._last_position + 1)
            self._last_position = position
            return position


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.

    Documents are kept in their stored (camelCase) form and decoded on every
    read, so legacy records can be seeded and exercised like real data.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._clock = MonotonicClock()

    def _decode(self, todo_id: str) -> Optional[TodoEntity]:
        doc = self._docs.get(todo_id)
        return None if doc is None else decode_todo(todo_id, doc)

    def seed(self, todo_id: str, doc: Mapping[str, Any]) -> None:
        """Insert a raw stored document as-is (e.g. a record written by an older schema)."""
        with self._lock:
            self._docs[todo_id] = dict(doc)

    def list_visible_to(self, uid: str) -> List[TodoEntity]:
        with self._lock:
            owned = {i for i, d in self._docs.items() if d.get("ownerUid") == uid}
            assigned = {i for i, d in self._docs.items() if uid in (d.get("assigneeUids") or [])}
            return [decode_todo(i, self._docs[i]) for i in owned | assigned]

    def create(self, data: NewTodo) -> TodoEntity:
        todo_id = uuid.uuid4().hex
        doc = encode_new(data, self._clock.now(), self._clock.next_position())
        with self._lock:
            self._docs[todo_id] = doc
            return decode_todo(todo_id, doc)

    def get(self, todo_id: str) -> Optional[TodoEntity]:
        with self._lock:
            return self._decode(todo_id)

    def get_many(self, todo_ids: Sequence[str]) -> List[Optional[TodoEntity]]:
        with self._lock:
            return [self._decode(i) for i in todo_ids]

    def update(self, todo_id: str, fields: Mapping[str, Any]) -> Optional[TodoEntity]:
        with self._lock:
            existing = self._docs.get(todo_id)
            if existing is None:
                return None
            updated = dict(existing)
            updated.update(encode_patch(fields))
            updated["updatedAt"] = self._clock.now()
            self._docs[todo_id] = updated
            return decode_todo(todo_id, updated)

    def delete(self, todo_id: str) -> bool:
        with self._lock:
            return self._docs.pop(todo_id, None) is not None

    def commit_reorder(self, ordered_ids: Sequence[str]) -> bool:
        with self._lock:
            if any(i not in self._docs for i in ordered_ids):
                return False
            now = self._clock.now()
            for index, todo_id in enumerate(ordered_ids):
                doc = dict(self._docs[todo_id])
                doc["position"] = index
                doc["updatedAt"] = now
                self._docs[todo_id] = doc
            return True


# PUBLIC_INTERFACE
def get_repository(settings: Optional[Settings] = None) -> Repository:
    """
    Factory to return the configured repository based on settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository (standard library sqlite3)
    - firestore: FirestoreRepository (requires the 'firebase' extra)
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        logger.info("Using SQLite repository at %s", settings.sqlite_db_path)
        return SQLiteRepository(settings.sqlite_db_path)
    if settings.persistence_backend == "firestore":
        from .firestore import FirestoreRepository

        logger.info("Using Firestore collection %r", settings.firestore_collection)
        return FirestoreRepository.from_settings(settings)
    logger.info("Using in-memory repository")
    return InMemoryRepository()
