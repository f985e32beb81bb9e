from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import IdentityProvider, get_identity_provider
from .errors import ApiError, ErrorKind, StoreUnavailable
from .repositories import Repository, get_repository
from .routers import todos as todos_router
from .routers import users as users_router
from .service import TodoService
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "users", "description": "The authenticated caller."},
    {
        "name": "todos",
        "description": "Shared todos: create, assign, update, reorder and delete.",
    },
]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _error_body(kind: ErrorKind, message: str) -> dict:
    return {"error": kind.code, "message": message}


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Collaborators not passed in are built from settings, so tests can inject
    an InMemoryRepository and a StaticTokenIdentityProvider.
    """
    settings = settings or get_settings()
    repository = repository or get_repository(settings)
    identity_provider = identity_provider or get_identity_provider(settings)

    app = FastAPI(
        title="Collab Todo Backend",
        description="Multi-user todo list with sharing, per-user ordering and owner-only deletion.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.identity_provider = identity_provider
    app.state.todo_service = TodoService(repository)

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": [... pydantic/fastapi error details ...]
            }
        """
        body = _error_body(ErrorKind.VALIDATION, "Request validation failed")
        body["detail"] = jsonable_errors(exc)
        return JSONResponse(status_code=ErrorKind.VALIDATION.status_code, content=body)

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.kind.status_code,
            content=_error_body(exc.kind, exc.message),
            headers=exc.headers,
        )

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
        logger.error("Store unavailable during %s %s", request.method, request.url.path)
        kind = ErrorKind.STORE_UNAVAILABLE
        return JSONResponse(status_code=kind.status_code, content=_error_body(kind, "Service temporarily unavailable"))

    # PUBLIC_INTERFACE
    @app.get(f"{settings.api_prefix}/health", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"status": "ok"}

    app.include_router(users_router.router, prefix=settings.api_prefix)
    app.include_router(todos_router.router, prefix=settings.api_prefix)
    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """Pydantic error details without the raw exception objects carried in 'ctx'."""
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors


def build_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    return create_app(settings)
