from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .codec import isoformat_utc
from .models import TodoEntity, TodoPriority, TodoStatus
from .utils import clean_text, clean_uids


def _validate_title(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("title length must be between 1 and 200 characters")
    return s


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "priority": "high",
                "assigneeUids": ["uid-of-a-friend"],
            }
        },
    )

    title: str = Field(..., description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    priority: Optional[TodoPriority] = Field(default=None, description="Priority; defaults to 'medium'")
    assignee_uids: Optional[List[str]] = Field(default=None, description="Subjects to share the todo with")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _validate_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return clean_text(v)

    @field_validator("assignee_uids")
    @classmethod
    def validate_assignees(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else clean_uids(v)


# PUBLIC_INTERFACE
class TodoPatch(BaseModel):
    """
    Schema for partially updating a Todo item (merge patch).
    Only fields present in the request body are changed. `description: null`
    clears the description; null is rejected for every other field. Unknown
    fields, including ownerUid, are rejected.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "status": "done",
                "priority": "low",
            }
        },
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Detailed description; null clears it")
    status: Optional[TodoStatus] = Field(default=None, description="'active' or 'done'")
    priority: Optional[TodoPriority] = Field(default=None, description="'low', 'medium' or 'high'")
    assignee_uids: Optional[List[str]] = Field(default=None, description="Replaces the assignee set")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        return _validate_title(v)

    @field_validator("assignee_uids")
    @classmethod
    def validate_assignees(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else clean_uids(v)

    @model_validator(mode="after")
    def reject_explicit_nulls(self) -> "TodoPatch":
        for name in self.model_fields_set:
            if name != "description" and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} must not be null")
        return self

    def to_fields(self) -> Dict[str, Any]:
        """Only the fields the client actually sent, keyed by entity field name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# PUBLIC_INTERFACE
class TodoReorderRequest(BaseModel):
    """Client-side total order of todo ids, first id gets position 0."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": {"orderedIds": ["a1b2", "c3d4", "e5f6"]}},
    )

    ordered_ids: List[str] = Field(..., description="Todo ids in the desired display order", min_length=1)

    @field_validator("ordered_ids")
    @classmethod
    def validate_ordered_ids(cls, v: List[str]) -> List[str]:
        ids = [i.strip() for i in v if i.strip()]
        if not ids:
            raise ValueError("orderedIds is required")
        return ids


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item. Every field is always present.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "0f8c2a6e9b3d4e51a7c2d9e8f1a0b3c4",
                "title": "Buy groceries",
                "description": None,
                "status": "active",
                "createdByUid": "u1",
                "ownerUid": "u1",
                "assigneeUids": ["u2"],
                "position": 0,
                "priority": "medium",
                "createdAt": "2025-01-25T10:15:30.123Z",
                "updatedAt": "2025-01-26T09:00:00.000Z",
            }
        },
    )

    id: str = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    status: TodoStatus = Field(..., description="'active' or 'done'")
    created_by_uid: str = Field(..., description="Subject that created the todo")
    owner_uid: str = Field(..., description="Subject that owns the todo")
    assignee_uids: List[str] = Field(..., description="Subjects the todo is assigned to")
    position: int = Field(..., description="Display ordering rank")
    priority: TodoPriority = Field(..., description="'low', 'medium' or 'high'")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @field_serializer("created_at", "updated_at")
    def serialize_timestamp(self, value: datetime) -> str:
        return isoformat_utc(value)

    @classmethod
    def from_entity(cls, entity: TodoEntity) -> "TodoOut":
        return cls(**entity)


class TodoEnvelope(BaseModel):
    todo: TodoOut


class TodoListEnvelope(BaseModel):
    todos: List[TodoOut]


class ReorderAck(BaseModel):
    ok: bool = True


class IdentityOut(BaseModel):
    """Profile of the authenticated caller as reported by the identity provider."""

    uid: str
    email: Optional[str] = None
    name: Optional[str] = None


class ErrorOut(BaseModel):
    error: str = Field(..., description="Machine-stable error code")
    message: str = Field(..., description="Human readable message")
