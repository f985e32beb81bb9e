"""
Utility script to generate and write the OpenAPI schema for the FastAPI app.

The app is built with an in-memory repository and an empty static identity
provider, so no store or credentials are needed to export the schema.

Usage:
    python -m collab_todo.generate_openapi [output_dir]

Output defaults to <project root>/interfaces/openapi.json.
"""
from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, List, Optional

from .auth import StaticTokenIdentityProvider
from .main import create_app, openapi_tags
from .repositories import InMemoryRepository
from .settings import get_settings


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema contains the tags metadata declared by the app,
    without overriding existing tag definitions.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


def _default_output_dir() -> str:
    # <project root>/interfaces, with this file at <project root>/src/collab_todo/
    package_dir = os.path.dirname(os.path.abspath(__file__))
    project_root = os.path.dirname(os.path.dirname(package_dir))
    return os.path.join(project_root, "interfaces")


# PUBLIC_INTERFACE
def generate_openapi(output_dir: Optional[str] = None) -> str:
    """Generate the OpenAPI schema file and return the written file path."""
    app = create_app(
        settings=get_settings(),
        repository=InMemoryRepository(),
        identity_provider=StaticTokenIdentityProvider({}),
    )
    schema = app.openapi()
    _ensure_tags(schema)

    output_dir = output_dir or _default_output_dir()
    os.makedirs(output_dir, exist_ok=True)
    out_path = os.path.join(output_dir, "openapi.json")
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    return out_path


def main() -> None:
    out_path = generate_openapi(sys.argv[1] if len(sys.argv) > 1 else None)
    print(f"Wrote OpenAPI schema to: {out_path}")


if __name__ == "__main__":
    main()
