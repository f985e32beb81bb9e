from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import ApiError, ErrorKind
from .settings import Settings, StaticToken

logger = logging.getLogger(__name__)

_security = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Identity:
    """Verified caller identity."""

    uid: str
    email: Optional[str] = None
    name: Optional[str] = None


class InvalidCredential(Exception):
    """The bearer credential could not be verified."""


# PUBLIC_INTERFACE
class IdentityProvider(ABC):
    """Verifies bearer credentials and resolves them to an Identity."""

    @abstractmethod
    def verify(self, token: str) -> Identity:
        """Return the identity for `token` or raise InvalidCredential."""


class StaticTokenIdentityProvider(IdentityProvider):
    """
    Resolves pre-shared tokens from configuration. Intended for local
    development and tests.
    """

    def __init__(self, tokens: Mapping[str, StaticToken]) -> None:
        self._tokens = dict(tokens)

    def verify(self, token: str) -> Identity:
        entry = self._tokens.get(token)
        if entry is None:
            raise InvalidCredential("Unknown token")
        return Identity(uid=entry.uid, email=entry.email)


class FirebaseIdentityProvider(IdentityProvider):
    """Verifies Firebase Auth ID tokens with the Firebase Admin SDK."""

    def __init__(self, project_id: Optional[str] = None) -> None:
        from firebase_admin import auth as firebase_auth

        from .firebase import get_firebase_app

        self._auth = firebase_auth
        self._app = get_firebase_app(project_id)

    def verify(self, token: str) -> Identity:
        try:
            claims = self._auth.verify_id_token(token, app=self._app)
        except (ValueError, self._auth.InvalidIdTokenError, self._auth.UserDisabledError) as exc:
            raise InvalidCredential(str(exc)) from exc
        return Identity(uid=claims["uid"], email=claims.get("email"), name=claims.get("name"))


# PUBLIC_INTERFACE
def get_identity_provider(settings: Settings) -> IdentityProvider:
    """
    Build the identity provider selected by settings.
    - static: StaticTokenIdentityProvider over AUTH_STATIC_TOKENS
    - firebase: FirebaseIdentityProvider (requires the 'firebase' extra)
    """
    if settings.identity_provider == "firebase":
        return FirebaseIdentityProvider(settings.firebase_project_id)
    if not settings.static_tokens:
        logger.warning("Static identity provider has no tokens configured; every request will be rejected")
    return StaticTokenIdentityProvider(settings.static_tokens)


def _unauthenticated(message: str) -> ApiError:
    return ApiError(ErrorKind.UNAUTHENTICATED, message, headers={"WWW-Authenticate": "Bearer"})


# PUBLIC_INTERFACE
def get_current_identity(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_security),
) -> Identity:
    """
    FastAPI dependency resolving the caller from an `Authorization: Bearer <token>` header.

    Raises:
        ApiError(Unauthenticated) if the header is missing, malformed or the token fails verification.
    """
    if request.headers.get("authorization") is None:
        raise _unauthenticated("Missing Authorization header")
    if creds is None or not creds.credentials:
        raise _unauthenticated("Invalid Authorization header")

    provider: IdentityProvider = request.app.state.identity_provider
    try:
        return provider.verify(creds.credentials)
    except InvalidCredential as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise _unauthenticated("Invalid or expired token") from exc
