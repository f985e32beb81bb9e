"""
Todo domain service.

Orchestrates repository calls under the authorization rules in `policy`.
Expected failures (validation, missing todos, authorization) are returned as
ServiceError values; StoreUnavailable raised by the repository propagates
unchanged.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, cast

from .errors import Result, ServiceError
from .models import MUTABLE_FIELDS, TODO_PRIORITIES, TODO_STATUSES, NewTodo, TodoEntity, display_sort_key
from .policy import can_delete, can_mutate_fields
from .repositories import Repository
from .utils import clean_text, clean_uids

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 200


def _validate_title(title: Optional[str]) -> Optional[ServiceError]:
    if not title:
        return ServiceError.validation("title must not be empty")
    if len(title) > TITLE_MAX_LENGTH:
        return ServiceError.validation(f"title must be at most {TITLE_MAX_LENGTH} characters")
    return None


# PUBLIC_INTERFACE
class TodoService:
    """Todo operations on behalf of an authenticated subject (uid)."""

    def __init__(self, repository: Repository) -> None:
        self._repo = repository

    # PUBLIC_INTERFACE
    def list_for(self, uid: str) -> List[TodoEntity]:
        """Todos visible to uid, sorted by position, then created_at, then id."""
        return sorted(self._repo.list_visible_to(uid), key=display_sort_key)

    # PUBLIC_INTERFACE
    def create_for_user(
        self,
        uid: str,
        title: str,
        description: Optional[str] = None,
        priority: Optional[str] = None,
        assignee_uids: Optional[Iterable[str]] = None,
    ) -> Result[TodoEntity]:
        """
        Create a todo owned (and created) by uid.

        Strings are trimmed, a blank description is dropped, assignees are
        trimmed and de-duplicated, and priority defaults to 'medium'.
        """
        clean_title = (title or "").strip()
        error = _validate_title(clean_title)
        if error is not None:
            return error
        priority = priority or "medium"
        if priority not in TODO_PRIORITIES:
            return ServiceError.validation(f"priority must be one of {', '.join(TODO_PRIORITIES)}")

        new_todo: NewTodo = {
            "title": clean_title,
            "description": clean_text(description),
            "priority": priority,  # type: ignore[typeddict-item]
            "owner_uid": uid,
            "created_by_uid": uid,
            "assignee_uids": clean_uids(assignee_uids),
        }
        created = self._repo.create(new_todo)
        logger.info("Todo %s created by %s", created["id"], uid)
        return created

    # PUBLIC_INTERFACE
    def update(self, uid: str, todo_id: str, patch: Dict[str, Any]) -> Result[TodoEntity]:
        """
        Merge-patch a todo. Only keys present in `patch` are written; every
        other field keeps its stored value.

        Args:
            uid: Acting subject.
            todo_id: Target todo.
            patch: Subset of title, description, status, priority, assignee_uids.
                A None description clears it.
        """
        fields = self._normalize_patch(patch)
        if isinstance(fields, ServiceError):
            return fields

        todo = self._repo.get(todo_id)
        if todo is None:
            return ServiceError.not_found()
        if not can_mutate_fields(todo, uid):
            logger.warning("Update of todo %s denied for %s", todo_id, uid)
            return ServiceError.forbidden()

        updated = self._repo.update(todo_id, fields)
        if updated is None:
            # Deleted between load and write
            return ServiceError.not_found()
        logger.info("Todo %s updated by %s (%s)", todo_id, uid, ", ".join(sorted(fields)) or "touch")
        return updated

    def _normalize_patch(self, patch: Dict[str, Any]) -> Result[Dict[str, Any]]:
        unknown = set(patch) - set(MUTABLE_FIELDS)
        if unknown:
            return ServiceError.validation(f"Fields cannot be changed: {', '.join(sorted(unknown))}")

        fields: Dict[str, Any] = {}
        if "title" in patch:
            title = (patch["title"] or "").strip()
            error = _validate_title(title)
            if error is not None:
                return error
            fields["title"] = title
        if "description" in patch:
            fields["description"] = clean_text(patch["description"])
        if "status" in patch:
            if patch["status"] not in TODO_STATUSES:
                return ServiceError.validation(f"status must be one of {', '.join(TODO_STATUSES)}")
            fields["status"] = patch["status"]
        if "priority" in patch:
            if patch["priority"] not in TODO_PRIORITIES:
                return ServiceError.validation(f"priority must be one of {', '.join(TODO_PRIORITIES)}")
            fields["priority"] = patch["priority"]
        if "assignee_uids" in patch:
            if patch["assignee_uids"] is None:
                return ServiceError.validation("assigneeUids must be a list")
            fields["assignee_uids"] = clean_uids(patch["assignee_uids"])
        return fields

    # PUBLIC_INTERFACE
    def delete(self, uid: str, todo_id: str) -> Optional[ServiceError]:
        """Permanently delete a todo. Only its owner may do so. Returns None on success."""
        todo = self._repo.get(todo_id)
        if todo is None:
            return ServiceError.not_found()
        if not can_delete(todo, uid):
            logger.warning("Delete of todo %s denied for %s", todo_id, uid)
            return ServiceError.forbidden()
        if not self._repo.delete(todo_id):
            return ServiceError.not_found()
        logger.info("Todo %s deleted by %s", todo_id, uid)
        return None

    # PUBLIC_INTERFACE
    def reorder(self, uid: str, ordered_ids: Sequence[str]) -> Optional[ServiceError]:
        """
        Assign dense positions 0..N-1 to `ordered_ids`, in the given order.

        All or nothing: the list must be non-empty and free of duplicates,
        every id must exist and every todo must be in uid's visibility set.
        Otherwise nothing is written. Todos not in the list keep their
        positions. Returns None on success.
        """
        ids = [i.strip() for i in ordered_ids if i and i.strip()]
        if not ids:
            return ServiceError.validation("orderedIds must not be empty")
        if len(set(ids)) != len(ids):
            return ServiceError.validation("orderedIds must not contain duplicates")

        loaded = self._repo.get_many(ids)
        missing = [todo_id for todo_id, todo in zip(ids, loaded) if todo is None]
        if missing:
            logger.info("Reorder by %s rejected, unknown ids: %s", uid, ", ".join(missing))
            return ServiceError.not_found()

        for todo in cast(List[TodoEntity], loaded):
            if not can_mutate_fields(todo, uid):
                logger.warning("Reorder by %s denied on todo %s", uid, todo["id"])
                return ServiceError.forbidden()

        if not self._repo.commit_reorder(ids):
            return ServiceError.not_found()
        logger.info("Reordered %d todos for %s", len(ids), uid)
        return None
