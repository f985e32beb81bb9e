"""
Collab Todo backend package.

A FastAPI service for shared todo lists: todos are owned by the subject
that creates them, can be assigned to other subjects, reordered per viewer
and deleted only by their owner. The ASGI app lives in `collab_todo.asgi:app`;
`collab_todo.main.create_app` builds one with injected collaborators.
"""

__version__ = "0.1.0"
