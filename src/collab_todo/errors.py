from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, TypeVar, Union


# PUBLIC_INTERFACE
class ErrorKind(Enum):
    """
    Error taxonomy surfaced to API clients.

    Each kind maps to one HTTP status and one machine-stable error code.
    """

    VALIDATION = ("ValidationError", 400)
    UNAUTHENTICATED = ("Unauthenticated", 401)
    FORBIDDEN = ("Forbidden", 403)
    NOT_FOUND = ("NotFound", 404)
    STORE_UNAVAILABLE = ("StoreUnavailable", 500)

    def __init__(self, code: str, status_code: int) -> None:
        self.code = code
        self.status_code = status_code


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class ServiceError:
    """
    Failure value returned (not raised) by TodoService operations.
    """

    kind: ErrorKind
    message: str

    @classmethod
    def validation(cls, message: str) -> "ServiceError":
        return cls(ErrorKind.VALIDATION, message)

    @classmethod
    def not_found(cls, message: str = "Todo not found") -> "ServiceError":
        return cls(ErrorKind.NOT_FOUND, message)

    @classmethod
    def forbidden(cls, message: str = "Forbidden") -> "ServiceError":
        return cls(ErrorKind.FORBIDDEN, message)


T = TypeVar("T")

# Success value or a ServiceError
Result = Union[T, ServiceError]


# PUBLIC_INTERFACE
class StoreUnavailable(Exception):
    """Raised by repositories on infrastructure faults. Never retried by this package."""


# PUBLIC_INTERFACE
class ApiError(Exception):
    """
    Raised by the HTTP layer; rendered by the app's exception handler as
    {"error": <code>, "message": <message>} with the kind's status code.
    """

    def __init__(self, kind: ErrorKind, message: str, headers: Optional[dict] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.headers = headers

    @classmethod
    def from_service_error(cls, error: ServiceError) -> "ApiError":
        return cls(error.kind, error.message)
