"""
Translation between stored todo documents and TodoEntity values.

Stored documents use camelCase keys and may predate fields that were added
later (schema version 1 lacks position, priority, description and
createdByUid). Decoding always yields a complete entity; encoding always
writes the current schema version.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping

from .models import NewTodo, TodoEntity
from .utils import unique_in_order

SCHEMA_VERSION = 2

# entity field -> stored key
STORED_KEYS: Dict[str, str] = {
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "created_by_uid": "createdByUid",
    "owner_uid": "ownerUid",
    "assignee_uids": "assigneeUids",
    "position": "position",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


def to_utc(value: Any) -> datetime:
    """
    Normalize a stored timestamp into an aware UTC datetime.
    Accepts datetime objects (naive values are treated as UTC) and ISO8601 text,
    including the trailing 'Z' form.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def epoch_millis(dt: datetime) -> int:
    return int(to_utc(dt).timestamp() * 1000)


# PUBLIC_INTERFACE
def isoformat_utc(dt: datetime) -> str:
    """Render a timestamp as ISO8601 UTC with millisecond precision, e.g. 2025-01-31T13:45:00.000Z."""
    return to_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# Defaults applied to version-1 documents, evaluated against the partially decoded entity.
_LEGACY_DEFAULTS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "description": lambda e: None,
    "status": lambda e: "active",
    "priority": lambda e: "medium",
    "created_by_uid": lambda e: e["owner_uid"],
    "assignee_uids": lambda e: [],
    "position": lambda e: epoch_millis(e["created_at"]),
}


# PUBLIC_INTERFACE
def decode_todo(todo_id: str, doc: Mapping[str, Any]) -> TodoEntity:
    """
    Decode a stored document into a complete TodoEntity.

    Missing (or null) optional fields get their defined defaults:
    description -> None, status -> 'active', priority -> 'medium',
    createdByUid -> ownerUid, assigneeUids -> [], position -> createdAt in epoch ms.
    """
    entity: Dict[str, Any] = {
        "id": str(todo_id),
        "title": doc["title"],
        "owner_uid": doc["ownerUid"],
        "created_at": to_utc(doc["createdAt"]),
        "updated_at": to_utc(doc.get("updatedAt") or doc["createdAt"]),
    }
    for field, default in _LEGACY_DEFAULTS.items():
        value = doc.get(STORED_KEYS[field])
        entity[field] = default(entity) if value is None else value

    entity["position"] = int(entity["position"])
    entity["assignee_uids"] = unique_in_order(entity["assignee_uids"])
    return entity  # type: ignore[return-value]


# PUBLIC_INTERFACE
def encode_new(todo: NewTodo, now: Any, position: int) -> Dict[str, Any]:
    """
    Build a complete stored document for insertion. `now` is whatever the
    backend uses for timestamps (a datetime, ISO text or a server sentinel).
    """
    return {
        "schemaVersion": SCHEMA_VERSION,
        "title": todo["title"],
        "description": todo["description"],
        "status": "active",
        "priority": todo["priority"],
        "createdByUid": todo["created_by_uid"],
        "ownerUid": todo["owner_uid"],
        "assigneeUids": list(todo["assignee_uids"]),
        "position": position,
        "createdAt": now,
        "updatedAt": now,
    }


# PUBLIC_INTERFACE
def encode_patch(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Map a partial entity-field update onto stored keys, leaving other keys untouched."""
    unknown = set(fields) - set(STORED_KEYS)
    if unknown:
        raise ValueError(f"Unknown todo fields: {sorted(unknown)}")
    return {STORED_KEYS[k]: (list(v) if k == "assignee_uids" else v) for k, v in fields.items()}
