"""
ASGI entry point configured from the environment.

    uvicorn collab_todo.asgi:app
"""
from .main import build_default_app

app = build_default_app()
