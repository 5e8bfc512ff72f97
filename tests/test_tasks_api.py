# tests/test_tasks_api.py

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tasklist.cache.layer import cache_layer
from tasklist.core.config import Settings
from tasklist.core.exceptions import ConnectionError
from tasklist.main import create_app

from .fakes import FailingTaskCollection, FakeConnector


def _create(client: TestClient, **body) -> dict:
    resp = client.post("/tasks", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_then_list_round_trip(client: TestClient) -> None:
    created = _create(client, title="Learn", description="Practice")

    resp = client.get("/tasks")

    assert resp.status_code == 200
    tasks = resp.json()
    assert len(tasks) == 1
    assert tasks[0]["id"] == created["id"]
    assert tasks[0]["title"] == "Learn"
    assert tasks[0]["description"] == "Practice"
    assert tasks[0]["id"]
    assert tasks[0]["created_at"]


def test_list_is_newest_first_and_paged(client: TestClient) -> None:
    ids = [_create(client, title=f"task {i}")["id"] for i in range(3)]

    assert [t["id"] for t in client.get("/tasks").json()] == ids[::-1]
    assert [t["id"] for t in client.get("/tasks", params={"skip": 1, "limit": 1}).json()] == [ids[1]]
    assert client.get("/tasks", params={"limit": 0}).status_code == 422


def test_create_requires_title(client: TestClient) -> None:
    assert client.post("/tasks", json={"description": "no title"}).status_code == 422
    assert client.post("/tasks", json={"title": ""}).status_code == 422


def test_get_task_by_id(client: TestClient) -> None:
    created = _create(client, title="Learn")

    resp = client.get(f"/tasks/{created['id']}")

    assert resp.status_code == 200
    assert resp.json() == created


def test_patch_changes_only_supplied_fields(client: TestClient) -> None:
    created = _create(client, title="Learn", description="Practice")

    resp = client.patch(f"/tasks/{created['id']}", json={"description": "Practice more"})

    assert resp.status_code == 200
    updated = resp.json()
    assert updated["id"] == created["id"]
    assert updated["created_at"] == created["created_at"]
    assert updated["title"] == "Learn"
    assert updated["description"] == "Practice more"


def test_put_updates_title_and_description(client: TestClient) -> None:
    created = _create(client, title="Learn", description="Practice")

    resp = client.put(f"/tasks/{created['id']}", json={"title": "Teach", "description": "Explain"})

    assert resp.status_code == 200
    assert resp.json()["title"] == "Teach"
    assert resp.json()["description"] == "Explain"
    assert resp.json()["created_at"] == created["created_at"]


def test_update_is_visible_through_cached_read(client: TestClient) -> None:
    created = _create(client, title="Learn")
    assert client.get(f"/tasks/{created['id']}").json()["title"] == "Learn"

    client.patch(f"/tasks/{created['id']}", json={"title": "Relearn"})

    assert client.get(f"/tasks/{created['id']}").json()["title"] == "Relearn"


def test_null_title_in_update_is_ignored(client: TestClient) -> None:
    created = _create(client, title="Learn", description="Practice")

    resp = client.patch(f"/tasks/{created['id']}", json={"title": None, "description": None})

    assert resp.status_code == 200
    assert resp.json()["title"] == "Learn"
    assert resp.json()["description"] is None


def test_update_unknown_task_is_404(client: TestClient) -> None:
    resp = client.put("/tasks/0123456789abcdef01234567", json={"title": "x"})
    assert resp.status_code == 404


def test_delete_removes_task_from_listing(client: TestClient) -> None:
    keep = _create(client, title="Keep")
    drop = _create(client, title="Drop")

    resp = client.delete(f"/tasks/{drop['id']}")

    assert resp.status_code == 200
    assert resp.json() == {"message": "Task deleted"}
    assert [t["id"] for t in client.get("/tasks").json()] == [keep["id"]]
    assert client.get(f"/tasks/{drop['id']}").status_code == 404


def test_delete_unknown_task_yields_error_and_app_keeps_serving(client: TestClient) -> None:
    assert client.delete("/tasks/0123456789abcdef01234567").status_code == 404
    assert client.delete("/tasks/not-an-id").status_code == 404

    assert client.get("/tasks").status_code == 200


def test_operation_failures_map_to_500(client: TestClient) -> None:
    created = _create(client, title="Learn")
    conn = client.app.state.connection_cache.connection
    conn.tasks = FailingTaskCollection()

    assert client.get("/tasks").status_code == 500
    assert client.post("/tasks", json={"title": "x"}).status_code == 500
    assert client.patch(f"/tasks/{created['id']}", json={"title": "x"}).status_code == 500
    resp = client.delete(f"/tasks/{created['id']}")
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Failed to delete task"}


def test_missing_connection_string_yields_500_per_request() -> None:
    app = create_app(Settings(_env_file=None, mongodb_uri=None, redis_dsn=None))

    with TestClient(app) as client:
        resp = client.get("/tasks")
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Database unavailable"}
        assert client.get("/").status_code == 200


def test_connection_failure_yields_500_then_recovers() -> None:
    connector = FakeConnector(error=OSError("connection refused"))
    app = create_app(Settings(_env_file=None, mongodb_uri="mongodb://db.example/tasks"), connector)

    with TestClient(app) as client:
        assert client.get("/tasks").status_code == 500
        assert client.get("/health").status_code == 503

        connector.error = None
        assert client.get("/tasks").status_code == 200
        assert client.get("/health").json()["database"] == "up"


def test_requests_share_one_connection(client: TestClient) -> None:
    for i in range(5):
        _create(client, title=f"task {i}")
    client.get("/tasks")

    cache = client.app.state.connection_cache
    assert cache.connect_calls == 1


def test_connect_on_startup_establishes_before_first_request(settings: Settings) -> None:
    connector = FakeConnector()
    app = create_app(settings.model_copy(update={"connect_on_startup": True}), connector)

    with TestClient(app) as client:
        assert len(connector.calls) == 1
        assert client.app.state.connection_cache.is_established

    assert connector.handles[0].closed


def test_root_and_health(client: TestClient) -> None:
    assert client.get("/").json()["message"] == "Welcome to Task List API"

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_failed_startup_connect_still_releases_cache_layer(settings: Settings) -> None:
    connector = FakeConnector(error=OSError("connection refused"))
    app = create_app(settings.model_copy(update={"connect_on_startup": True}), connector)

    with pytest.raises(ConnectionError):
        with TestClient(app):
            pass

    assert not cache_layer.enabled
    assert cache_layer.l1 is None
