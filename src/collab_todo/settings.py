from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

PERSISTENCE_BACKENDS = {"memory", "sqlite", "firestore"}
IDENTITY_PROVIDERS = {"static", "firebase"}


@dataclass(frozen=True)
class StaticToken:
    """A pre-shared bearer token and the identity it resolves to."""

    uid: str
    email: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default), 'sqlite' or 'firestore'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/todos.db'
    - FIRESTORE_COLLECTION: Firestore collection holding todos. Default 'todos'
    - IDENTITY_PROVIDER: 'static' (default) or 'firebase'
    - AUTH_STATIC_TOKENS: comma-separated 'token=uid' or 'token=uid:email' pairs (static provider)
    - FIREBASE_PROJECT_ID: optional Firebase/GCP project id
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - API_PREFIX: path prefix for all routes. Default '/api'
    - LOG_LEVEL: logging level name. Default 'INFO'
    """

    persistence_backend: str = "memory"
    sqlite_db_path: str = "./data/todos.db"
    firestore_collection: str = "todos"
    identity_provider: str = "static"
    static_tokens: Dict[str, StaticToken] = field(default_factory=dict)
    firebase_project_id: Optional[str] = None
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    api_prefix: str = "/api"
    log_level: str = "INFO"


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_choice(name: str, value: str, allowed: set, default: str) -> str:
    v = value.strip().lower()
    if v not in allowed:
        logger.warning("Unsupported %s=%r, using %r", name, value, default)
        return default
    return v


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def parse_static_tokens(raw: str) -> Dict[str, StaticToken]:
    """
    Parse 'token=uid[:email]' pairs separated by commas.

    Example: 'alice-token=u1:alice@example.com,bob-token=u2'
    """
    tokens: Dict[str, StaticToken] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        token, sep, identity = pair.partition("=")
        if not sep or not token.strip() or not identity.strip():
            raise ValueError(f"Invalid AUTH_STATIC_TOKENS entry: {pair!r}")
        uid, _, email = identity.strip().partition(":")
        tokens[token.strip()] = StaticToken(uid=uid, email=email or None)
    return tokens


def _normalize_prefix(prefix: str) -> str:
    p = prefix.strip().rstrip("/")
    if p and not p.startswith("/"):
        p = "/" + p
    return p


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _parse_choice(
        "PERSISTENCE_BACKEND", _get_env("PERSISTENCE_BACKEND", "memory"), PERSISTENCE_BACKENDS, "memory"
    )
    identity_provider = _parse_choice(
        "IDENTITY_PROVIDER", _get_env("IDENTITY_PROVIDER", "static"), IDENTITY_PROVIDERS, "static"
    )

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/todos.db").strip(),
        firestore_collection=_get_env("FIRESTORE_COLLECTION", "todos").strip(),
        identity_provider=identity_provider,
        static_tokens=parse_static_tokens(os.getenv("AUTH_STATIC_TOKENS", "")),
        firebase_project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        api_prefix=_normalize_prefix(os.getenv("API_PREFIX", "/api")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )
