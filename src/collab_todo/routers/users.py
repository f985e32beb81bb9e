from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import Identity, get_current_identity
from ..schemas import ErrorOut, IdentityOut

router = APIRouter(tags=["users"])


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=IdentityOut,
    summary="Current User",
    description="Return the caller's verified uid and profile claims.",
    responses={401: {"model": ErrorOut, "description": "Missing or invalid bearer token"}},
)
def read_me(identity: Identity = Depends(get_current_identity)) -> IdentityOut:
    return IdentityOut(uid=identity.uid, email=identity.email, name=identity.name)
