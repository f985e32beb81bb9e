from __future__ import annotations

from typing import Optional, TypeVar, Union

from fastapi import APIRouter, Depends, Request, status

from ..auth import Identity, get_current_identity
from ..errors import ApiError, ServiceError
from ..schemas import (
    ErrorOut,
    ReorderAck,
    TodoCreate,
    TodoEnvelope,
    TodoListEnvelope,
    TodoOut,
    TodoPatch,
    TodoReorderRequest,
)
from ..service import TodoService

router = APIRouter(
    prefix="/todos",
    tags=["todos"],
    responses={401: {"model": ErrorOut, "description": "Missing or invalid bearer token"}},
)

T = TypeVar("T")


def _get_service(request: Request) -> TodoService:
    """
    Dependency returning the service the app was built with.
    """
    return request.app.state.todo_service


def _unwrap(result: Union[T, ServiceError]) -> T:
    """Turn a ServiceError result into an ApiError; pass success values through."""
    if isinstance(result, ServiceError):
        raise ApiError.from_service_error(result)
    return result


def _check(error: Optional[ServiceError]) -> None:
    if error is not None:
        raise ApiError.from_service_error(error)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=TodoListEnvelope,
    summary="List Todos",
    description=(
        "List every todo the caller owns or is assigned to, each once, ordered by "
        "position, then creation time, then id."
    ),
    responses={200: {"description": "List retrieved successfully"}},
)
def list_todos(
    identity: Identity = Depends(get_current_identity),
    service: TodoService = Depends(_get_service),
) -> TodoListEnvelope:
    """
    List todos visible to the caller.
    """
    todos = service.list_for(identity.uid)
    return TodoListEnvelope(todos=[TodoOut.from_entity(t) for t in todos])


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo owned by the caller and return the created resource.",
    responses={
        201: {"description": "Todo created successfully"},
        400: {"model": ErrorOut, "description": "Validation error"},
    },
)
def create_todo(
    payload: TodoCreate,
    identity: Identity = Depends(get_current_identity),
    service: TodoService = Depends(_get_service),
) -> TodoEnvelope:
    """
    Create a new Todo.
    """
    created = _unwrap(
        service.create_for_user(
            identity.uid,
            title=payload.title,
            description=payload.description,
            priority=payload.priority,
            assignee_uids=payload.assignee_uids,
        )
    )
    return TodoEnvelope(todo=TodoOut.from_entity(created))


# PUBLIC_INTERFACE
@router.patch(
    "/reorder",
    response_model=ReorderAck,
    summary="Reorder Todos",
    description=(
        "Assign positions 0..N-1 to the given ids in order. Fails as a whole when any id "
        "is unknown (404) or not visible to the caller (403); nothing is written then."
    ),
    responses={
        200: {"description": "Positions committed"},
        400: {"model": ErrorOut, "description": "Empty or duplicated id list"},
        403: {"model": ErrorOut, "description": "A listed todo is not visible to the caller"},
        404: {"model": ErrorOut, "description": "A listed todo does not exist"},
    },
)
def reorder_todos(
    payload: TodoReorderRequest,
    identity: Identity = Depends(get_current_identity),
    service: TodoService = Depends(_get_service),
) -> ReorderAck:
    _check(service.reorder(identity.uid, payload.ordered_ids))
    return ReorderAck(ok=True)


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    response_model=TodoEnvelope,
    summary="Update Todo",
    description="Partially update fields of a Todo item. Omitted fields are left untouched.",
    responses={
        200: {"description": "Todo updated"},
        400: {"model": ErrorOut, "description": "Validation error"},
        403: {"model": ErrorOut, "description": "Caller is neither owner nor assignee"},
        404: {"model": ErrorOut, "description": "Todo not found"},
    },
)
def patch_todo(
    todo_id: str,
    payload: TodoPatch,
    identity: Identity = Depends(get_current_identity),
    service: TodoService = Depends(_get_service),
) -> TodoEnvelope:
    """
    Partial update of a Todo item.
    """
    updated = _unwrap(service.update(identity.uid, todo_id, payload.to_fields()))
    return TodoEnvelope(todo=TodoOut.from_entity(updated))


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Todo",
    description="Permanently delete a Todo. Only its owner may do this.",
    responses={
        204: {"description": "Todo deleted"},
        403: {"model": ErrorOut, "description": "Caller is not the owner"},
        404: {"model": ErrorOut, "description": "Todo not found"},
    },
)
def delete_todo(
    todo_id: str,
    identity: Identity = Depends(get_current_identity),
    service: TodoService = Depends(_get_service),
) -> None:
    """
    Delete a Todo. Returns 204 on success.
    """
    _check(service.delete(identity.uid, todo_id))
    return None
