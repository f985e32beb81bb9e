import os

import pytest
from fastapi.testclient import TestClient

# Ensure the import-time default app uses the memory backend and static tokens
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("IDENTITY_PROVIDER", "static")

from collab_todo.auth import StaticTokenIdentityProvider  # noqa: E402
from collab_todo.db import SQLiteRepository  # noqa: E402
from collab_todo.main import create_app  # noqa: E402
from collab_todo.repositories import InMemoryRepository  # noqa: E402
from collab_todo.service import TodoService  # noqa: E402
from collab_todo.settings import Settings  # noqa: E402

from tests.helpers import TOKENS  # noqa: E402


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture(params=["memory", "sqlite"])
def any_repo(request, tmp_path):
    """Each repository backend that runs without external services."""
    if request.param == "sqlite":
        return SQLiteRepository(str(tmp_path / "todos.db"))
    return InMemoryRepository()


@pytest.fixture
def service(repo):
    return TodoService(repo)


@pytest.fixture
def app(repo):
    return create_app(
        settings=Settings(),
        repository=repo,
        identity_provider=StaticTokenIdentityProvider(TOKENS),
    )


@pytest.fixture
def client(app):
    return TestClient(app)
