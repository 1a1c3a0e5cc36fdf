from __future__ import annotations

from fastapi.testclient import TestClient

from aidraw_client.mock_backend import create_app


def test_health() -> None:
    response = TestClient(create_app()).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "system": "aidraw-mock"}


def test_errors_use_the_envelope() -> None:
    client = TestClient(create_app())

    missing = client.get("/tasks/unknown")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "data": None, "message": "Task not found", "code": 404}

    invalid = client.post("/tasks", json={"prompt": "a cat", "width": 10, "sessionId": "s"})
    assert invalid.status_code == 400
    assert invalid.json()["success"] is False

    anonymous = client.get("/credits")
    assert anonymous.status_code == 400
    assert anonymous.json()["message"] == "userId or sessionId is required"


def test_task_lifecycle_and_history() -> None:
    app = create_app(initial_credits=1, pending_polls=1)
    client = TestClient(app)

    created = client.post("/tasks", json={"prompt": "a cat", "sessionId": "s1", "seed": 4}).json()
    assert created["success"] is True
    task_id = created["data"]["taskId"]
    assert created["data"]["status"] == "PENDING"

    assert client.get(f"/tasks/{task_id}").json()["data"]["status"] == "PENDING"
    done = client.get(f"/tasks/{task_id}").json()["data"]
    assert done["status"] == "COMPLETED"
    assert done["imageUrl"].startswith("https://images.mock.aidraw.local/")

    history = client.get("/history", params={"sessionId": "s1"}).json()["data"]
    assert history["total"] == 1
    assert history["records"][0]["imageUrl"] == done["imageUrl"]

    broke = client.post("/tasks", json={"prompt": "a dog", "sessionId": "s1"}).json()
    assert broke == {"success": False, "data": None, "message": "Insufficient credits", "code": 402}


def test_batch_delete_route_is_not_shadowed_by_record_route() -> None:
    client = TestClient(create_app())

    response = client.request("DELETE", "/history/batch", json={"ids": [1]})

    assert response.status_code == 404
    assert response.json()["message"] == "History record not found"
