from datetime import datetime, timezone

from collab_todo.settings import StaticToken

TOKENS = {
    "alice-token": StaticToken(uid="alice", email="alice@example.com"),
    "bob-token": StaticToken(uid="bob", email="bob@example.com"),
    "carol-token": StaticToken(uid="carol"),
}

LEGACY_CREATED_AT = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def legacy_doc(owner: str, created_at: datetime = LEGACY_CREATED_AT, title: str = "Legacy", **extra) -> dict:
    """A stored document as written before position/priority/description/createdByUid existed."""
    doc = {
        "title": title,
        "status": "active",
        "ownerUid": owner,
        "assigneeUids": [],
        "createdAt": created_at,
        "updatedAt": created_at,
    }
    doc.update(extra)
    return doc
