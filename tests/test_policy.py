from datetime import datetime, timezone

import pytest

from collab_todo.policy import can_delete, can_mutate_fields, can_read

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def todo(owner="owner", assignees=()):
    return {
        "id": "t1",
        "title": "t",
        "description": None,
        "status": "active",
        "priority": "medium",
        "created_by_uid": owner,
        "owner_uid": owner,
        "assignee_uids": list(assignees),
        "position": 0,
        "created_at": NOW,
        "updated_at": NOW,
    }


@pytest.mark.parametrize(
    "uid, assignees, visible",
    [
        ("owner", [], True),
        ("owner", ["owner"], True),
        ("a1", ["a1", "a2"], True),
        ("a2", ["a1", "a2"], True),
        ("stranger", ["a1"], False),
        ("", [], False),
    ],
)
def test_read_and_mutate_follow_visibility_set(uid, assignees, visible):
    t = todo(assignees=assignees)
    assert can_read(t, uid) is visible
    assert can_mutate_fields(t, uid) is visible


@pytest.mark.parametrize("uid, allowed", [("owner", True), ("a1", False), ("stranger", False)])
def test_only_owner_deletes(uid, allowed):
    assert can_delete(todo(assignees=["a1"]), uid) is allowed


def test_created_by_alone_grants_nothing():
    t = todo()
    t["created_by_uid"] = "creator"
    assert not can_read(t, "creator")
    assert not can_delete(t, "creator")
