"""Authorization predicates over (todo, uid). Pure functions, no I/O."""
from __future__ import annotations

from .models import TodoEntity


# PUBLIC_INTERFACE
def is_in_visibility_set(todo: TodoEntity, uid: str) -> bool:
    """True when uid owns the todo or is one of its assignees."""
    return uid == todo["owner_uid"] or uid in todo["assignee_uids"]


# PUBLIC_INTERFACE
def can_read(todo: TodoEntity, uid: str) -> bool:
    return is_in_visibility_set(todo, uid)


# PUBLIC_INTERFACE
def can_mutate_fields(todo: TodoEntity, uid: str) -> bool:
    """Owner and assignees may change title, description, status, priority and assignees."""
    return is_in_visibility_set(todo, uid)


# PUBLIC_INTERFACE
def can_delete(todo: TodoEntity, uid: str) -> bool:
    """Only the owner may delete."""
    return uid == todo["owner_uid"]
