from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Tuple, TypedDict

TodoStatus = Literal["active", "done"]
TodoPriority = Literal["low", "medium", "high"]

TODO_STATUSES: Tuple[str, ...] = ("active", "done")
TODO_PRIORITIES: Tuple[str, ...] = ("low", "medium", "high")

# Fields any member of a todo's visibility set may change
MUTABLE_FIELDS: Tuple[str, ...] = ("title", "description", "status", "priority", "assignee_uids")


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a Todo item, independent of the
    storage backend that produced it.

    Fields:
    - id: Opaque store-assigned identifier
    - title: Short title (trimmed, never empty)
    - description: Optional detailed description
    - status: 'active' or 'done'
    - priority: 'low', 'medium' or 'high'
    - created_by_uid: Subject that created the todo (always equal to owner at creation)
    - owner_uid: Subject that owns the todo; the only one allowed to delete it
    - assignee_uids: Subjects the todo is shared with, without duplicates
    - position: Display ordering rank
    - created_at: UTC creation timestamp (datetime)
    - updated_at: UTC last update timestamp (datetime)
    """

    id: str
    title: str
    description: Optional[str]
    status: TodoStatus
    priority: TodoPriority
    created_by_uid: str
    owner_uid: str
    assignee_uids: List[str]
    position: int
    created_at: datetime
    updated_at: datetime


class NewTodo(TypedDict):
    """Normalized fields for a todo about to be inserted."""

    title: str
    description: Optional[str]
    priority: TodoPriority
    owner_uid: str
    created_by_uid: str
    assignee_uids: List[str]


# PUBLIC_INTERFACE
def display_sort_key(todo: TodoEntity) -> Tuple[int, datetime, str]:
    """Total display order: position, then creation time, then id."""
    return (todo["position"], todo["created_at"], todo["id"])
