from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Mapping, Optional, Sequence

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from .codec import decode_todo, encode_new, encode_patch
from .errors import StoreUnavailable
from .firebase import get_firebase_app
from .models import NewTodo, TodoEntity
from .repositories import MonotonicClock, Repository
from .settings import Settings

logger = logging.getLogger(__name__)


@contextmanager
def _store_call(operation: str) -> Generator[None, None, None]:
    try:
        yield
    except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as exc:
        logger.error("Firestore %s failed: %s", operation, exc)
        raise StoreUnavailable("Todo store is unavailable") from exc


class FirestoreRepository(Repository):
    """
    Repository backed by a Cloud Firestore collection.

    Timestamps are assigned by the server; reorders are a single write batch,
    which Firestore commits atomically.
    """

    def __init__(self, client: Any, collection: str = "todos") -> None:
        self._client = client
        self._collection = client.collection(collection)
        self._clock = MonotonicClock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirestoreRepository":
        app = get_firebase_app(settings.firebase_project_id)
        return cls(firestore.client(app), settings.firestore_collection)

    def _decode(self, snap: Any) -> TodoEntity:
        return decode_todo(snap.id, snap.to_dict())

    def list_visible_to(self, uid: str) -> List[TodoEntity]:
        with _store_call("list"):
            owned = self._collection.where(filter=FieldFilter("ownerUid", "==", uid)).stream()
            assigned = self._collection.where(filter=FieldFilter("assigneeUids", "array_contains", uid)).stream()
            merged: Dict[str, TodoEntity] = {}
            for snap in [*owned, *assigned]:
                merged[snap.id] = self._decode(snap)
        return list(merged.values())

    def create(self, data: NewTodo) -> TodoEntity:
        doc = encode_new(data, firestore.SERVER_TIMESTAMP, self._clock.next_position())
        with _store_call("create"):
            _, ref = self._collection.add(doc)
            return self._decode(ref.get())

    def get(self, todo_id: str) -> Optional[TodoEntity]:
        with _store_call("get"):
            snap = self._collection.document(todo_id).get()
        return self._decode(snap) if snap.exists else None

    def get_many(self, todo_ids: Sequence[str]) -> List[Optional[TodoEntity]]:
        refs = [self._collection.document(i) for i in todo_ids]
        with _store_call("get_all"):
            # get_all does not preserve request order
            found = {snap.id: self._decode(snap) for snap in self._client.get_all(refs) if snap.exists}
        return [found.get(i) for i in todo_ids]

    def update(self, todo_id: str, fields: Mapping[str, Any]) -> Optional[TodoEntity]:
        patch = encode_patch(fields)
        patch["updatedAt"] = firestore.SERVER_TIMESTAMP
        ref = self._collection.document(todo_id)
        with _store_call("update"):
            try:
                ref.update(patch)
            except google_exceptions.NotFound:
                return None
            return self._decode(ref.get())

    def delete(self, todo_id: str) -> bool:
        ref = self._collection.document(todo_id)
        with _store_call("delete"):
            if not ref.get().exists:
                return False
            ref.delete()
        return True

    def commit_reorder(self, ordered_ids: Sequence[str]) -> bool:
        batch = self._client.batch()
        for index, todo_id in enumerate(ordered_ids):
            batch.update(
                self._collection.document(todo_id),
                {"position": index, "updatedAt": firestore.SERVER_TIMESTAMP},
            )
        with _store_call("reorder batch"):
            try:
                batch.commit()
            except google_exceptions.NotFound:
                # A document vanished; the batch was rejected as a whole
                return False
        return True
