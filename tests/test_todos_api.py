from datetime import datetime

from collab_todo.errors import StoreUnavailable
from collab_todo.main import create_app
from collab_todo.repositories import InMemoryRepository
from collab_todo.auth import StaticTokenIdentityProvider
from collab_todo.settings import Settings

from fastapi.testclient import TestClient

from tests.helpers import TOKENS, auth

TODOS = "/api/todos"


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def create_todo_payload(title="Test Task", description="Do something", priority=None, assignee_uids=None):
    payload = {"title": title, "description": description}
    if priority is not None:
        payload["priority"] = priority
    if assignee_uids is not None:
        payload["assigneeUids"] = assignee_uids
    return payload


def create(client, token="alice-token", **kwargs) -> dict:
    res = client.post(TODOS, json=create_todo_payload(**kwargs), headers=auth(token))
    assert res.status_code == 201, res.text
    return res.json()["todo"]


def list_ids(client, token) -> list:
    res = client.get(TODOS, headers=auth(token))
    assert res.status_code == 200
    return [t["id"] for t in res.json()["todos"]]


def assert_todo_shape(todo: dict):
    for key in [
        "id", "title", "description", "status", "createdByUid", "ownerUid",
        "assigneeUids", "position", "priority", "createdAt", "updatedAt",
    ]:
        assert key in todo
    assert isinstance(todo["id"], str)
    assert isinstance(todo["title"], str)
    assert isinstance(todo["assigneeUids"], list)
    assert isinstance(todo["position"], int)
    assert todo["createdAt"].endswith("Z")
    parse_ts(todo["createdAt"])
    parse_ts(todo["updatedAt"])


class TestHealthAndIdentity:
    def test_health_check_needs_no_auth(self, client):
        res = client.get("/api/health")
        assert res.status_code == 200
        assert res.json() == {"status": "ok"}

    def test_me_returns_identity(self, client):
        res = client.get("/api/me", headers=auth("alice-token"))
        assert res.status_code == 200
        assert res.json() == {"uid": "alice", "email": "alice@example.com", "name": None}

    def test_missing_header_is_unauthenticated(self, client):
        res = client.get(TODOS)
        assert res.status_code == 401
        assert res.json()["error"] == "Unauthenticated"
        assert res.headers["www-authenticate"] == "Bearer"

    def test_unknown_token_is_unauthenticated(self, client):
        res = client.get("/api/me", headers=auth("nope"))
        assert res.status_code == 401
        assert res.json() == {"error": "Unauthenticated", "message": "Invalid or expired token"}

    def test_non_bearer_scheme_is_unauthenticated(self, client):
        res = client.get(TODOS, headers={"Authorization": "Basic YWxpY2U6cHc="})
        assert res.status_code == 401


class TestCreateAndList:
    def test_create_normalizes_input(self, client):
        todo = create(client, title=" Buy milk ", description="  ", assignee_uids=["bob", " bob ", ""])
        assert_todo_shape(todo)
        assert todo["title"] == "Buy milk"
        assert todo["description"] is None
        assert todo["assigneeUids"] == ["bob"]
        assert todo["status"] == "active"
        assert todo["priority"] == "medium"
        assert todo["ownerUid"] == "alice"
        assert todo["createdByUid"] == "alice"

    def test_create_blank_title_is_rejected(self, client):
        res = client.post(TODOS, json={"title": "   "}, headers=auth("alice-token"))
        assert res.status_code == 400
        body = res.json()
        assert body["error"] == "ValidationError"
        assert body["message"] == "Request validation failed"
        assert isinstance(body["detail"], list)

    def test_title_length_counts_after_trimming(self, client):
        res = client.post(TODOS, json={"title": "x" * 200 + "  "}, headers=auth("alice-token"))
        assert res.status_code == 201
        assert res.json()["todo"]["title"] == "x" * 200

        res = client.post(TODOS, json={"title": "x" * 201}, headers=auth("alice-token"))
        assert res.status_code == 400

    def test_patch_title_length_counts_after_trimming(self, client):
        todo = create(client)
        res = client.patch(f"{TODOS}/{todo['id']}", json={"title": " " + "y" * 200 + " "}, headers=auth("alice-token"))
        assert res.status_code == 200
        assert res.json()["todo"]["title"] == "y" * 200

    def test_create_bad_priority_is_rejected(self, client):
        res = client.post(TODOS, json={"title": "x", "priority": "urgent"}, headers=auth("alice-token"))
        assert res.status_code == 400

    def test_list_is_scoped_to_visibility_set(self, client):
        shared = create(client, title="Shared", assignee_uids=["alice", "bob"])
        private = create(client, title="Private")

        assert list_ids(client, "alice-token") == [shared["id"], private["id"]]
        assert list_ids(client, "bob-token") == [shared["id"]]
        assert list_ids(client, "carol-token") == []

    def test_new_todos_sort_after_existing(self, client):
        ids = [create(client, title=f"Task {i}")["id"] for i in range(4)]
        assert list_ids(client, "alice-token") == ids


class TestPatch:
    def test_status_only_patch_keeps_other_fields(self, client):
        todo = create(client, title="Partial", description="X", priority="high", assignee_uids=["bob"])
        res = client.patch(f"{TODOS}/{todo['id']}", json={"status": "done"}, headers=auth("alice-token"))
        assert res.status_code == 200
        patched = res.json()["todo"]
        assert patched["status"] == "done"
        assert patched["title"] == "Partial"
        assert patched["description"] == "X"
        assert patched["priority"] == "high"
        assert patched["assigneeUids"] == ["bob"]

    def test_assignee_may_patch(self, client):
        todo = create(client, assignee_uids=["bob"])
        res = client.patch(f"{TODOS}/{todo['id']}", json={"title": " Renamed "}, headers=auth("bob-token"))
        assert res.status_code == 200
        assert res.json()["todo"]["title"] == "Renamed"

    def test_outsider_may_not_patch(self, client):
        todo = create(client)
        res = client.patch(f"{TODOS}/{todo['id']}", json={"status": "done"}, headers=auth("carol-token"))
        assert res.status_code == 403
        assert res.json() == {"error": "Forbidden", "message": "Forbidden"}

    def test_patch_unknown_todo(self, client):
        res = client.patch(f"{TODOS}/does-not-exist", json={"status": "done"}, headers=auth("alice-token"))
        assert res.status_code == 404
        assert res.json()["error"] == "NotFound"

    def test_description_null_clears(self, client):
        todo = create(client, description="something")
        res = client.patch(f"{TODOS}/{todo['id']}", json={"description": None}, headers=auth("alice-token"))
        assert res.status_code == 200
        assert res.json()["todo"]["description"] is None

    def test_null_title_is_rejected(self, client):
        todo = create(client)
        res = client.patch(f"{TODOS}/{todo['id']}", json={"title": None}, headers=auth("alice-token"))
        assert res.status_code == 400

    def test_owner_cannot_be_changed(self, client):
        todo = create(client)
        res = client.patch(f"{TODOS}/{todo['id']}", json={"ownerUid": "bob"}, headers=auth("alice-token"))
        assert res.status_code == 400
        assert res.json()["error"] == "ValidationError"

    def test_reassigning_updates_visibility(self, client):
        todo = create(client, assignee_uids=["bob"])
        res = client.patch(
            f"{TODOS}/{todo['id']}", json={"assigneeUids": ["carol", "carol"]}, headers=auth("alice-token")
        )
        assert res.status_code == 200
        assert res.json()["todo"]["assigneeUids"] == ["carol"]
        assert list_ids(client, "bob-token") == []
        assert list_ids(client, "carol-token") == [todo["id"]]


class TestDelete:
    def test_assignee_cannot_delete(self, client):
        todo = create(client, assignee_uids=["bob"])
        res = client.delete(f"{TODOS}/{todo['id']}", headers=auth("bob-token"))
        assert res.status_code == 403
        assert list_ids(client, "alice-token") == [todo["id"]]

    def test_owner_deletes(self, client):
        todo = create(client)
        res = client.delete(f"{TODOS}/{todo['id']}", headers=auth("alice-token"))
        assert res.status_code == 204
        assert res.text == ""

        res_again = client.delete(f"{TODOS}/{todo['id']}", headers=auth("alice-token"))
        assert res_again.status_code == 404
        res_patch = client.patch(f"{TODOS}/{todo['id']}", json={"status": "done"}, headers=auth("alice-token"))
        assert res_patch.status_code == 404


class TestReorder:
    def test_reorder_assigns_dense_positions(self, client):
        a, b, c = (create(client, title=t)["id"] for t in "abc")
        res = client.patch(f"{TODOS}/reorder", json={"orderedIds": [c, a, b]}, headers=auth("alice-token"))
        assert res.status_code == 200
        assert res.json() == {"ok": True}

        todos = client.get(TODOS, headers=auth("alice-token")).json()["todos"]
        assert [(t["id"], t["position"]) for t in todos] == [(c, 0), (a, 1), (b, 2)]

    def test_reorder_empty_list(self, client):
        res = client.patch(f"{TODOS}/reorder", json={"orderedIds": []}, headers=auth("alice-token"))
        assert res.status_code == 400
        res_blank = client.patch(f"{TODOS}/reorder", json={"orderedIds": [" "]}, headers=auth("alice-token"))
        assert res_blank.status_code == 400

    def test_reorder_duplicates(self, client):
        a = create(client)["id"]
        res = client.patch(f"{TODOS}/reorder", json={"orderedIds": [a, a]}, headers=auth("alice-token"))
        assert res.status_code == 400

    def test_reorder_unknown_id_changes_nothing(self, client):
        a, b = create(client)["id"], create(client)["id"]
        before = client.get(TODOS, headers=auth("alice-token")).json()["todos"]

        res = client.patch(
            f"{TODOS}/reorder", json={"orderedIds": [b, a, "ghost"]}, headers=auth("alice-token")
        )
        assert res.status_code == 404
        after = client.get(TODOS, headers=auth("alice-token")).json()["todos"]
        assert after == before

    def test_reorder_invisible_todo_changes_nothing(self, client):
        a = create(client)["id"]
        carols = create(client, token="carol-token")["id"]
        before = client.get(TODOS, headers=auth("alice-token")).json()["todos"]

        res = client.patch(f"{TODOS}/reorder", json={"orderedIds": [carols, a]}, headers=auth("alice-token"))
        assert res.status_code == 403
        assert client.get(TODOS, headers=auth("alice-token")).json()["todos"] == before

    def test_reorder_requires_auth(self, client):
        res = client.patch(f"{TODOS}/reorder", json={"orderedIds": ["x"]})
        assert res.status_code == 401


class BrokenRepository(InMemoryRepository):
    def list_visible_to(self, uid):
        raise StoreUnavailable("connection reset by peer at 10.0.0.7")


def test_store_fault_maps_to_500_without_internal_text():
    app = create_app(
        settings=Settings(),
        repository=BrokenRepository(),
        identity_provider=StaticTokenIdentityProvider(TOKENS),
    )
    res = TestClient(app).get(TODOS, headers=auth("alice-token"))
    assert res.status_code == 500
    body = res.json()
    assert body["error"] == "StoreUnavailable"
    assert "10.0.0.7" not in body["message"]


def test_api_prefix_is_configurable(repo):
    app = create_app(
        settings=Settings(api_prefix="/v2"),
        repository=repo,
        identity_provider=StaticTokenIdentityProvider(TOKENS),
    )
    client = TestClient(app)
    assert client.get("/v2/health").status_code == 200
    assert client.get("/v2/todos", headers=auth("bob-token")).json() == {"todos": []}
