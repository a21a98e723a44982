"""Tests for the REST and WebSocket surface."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from workflow_backend.config import get_settings
from workflow_backend.main import create_app


@pytest.fixture
def client(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("WORKFLOW_STORAGE_DIR", str(tmp_path / "workflows"))
    monkeypatch.setenv("WORKFLOW_AUTOSAVE_ENABLED", "false")
    with TestClient(create_app()) as client:
        yield client


@pytest.fixture
def opened(client):
    workflow = client.post("/api/workflow/new", json={"name": "Onboarding"}).json()["workflow"]
    start = next(n for n in workflow["nodes"] if n["type"] == "start")
    end = next(n for n in workflow["nodes"] if n["type"] == "end")
    return start["id"], end["id"]


def test_settings_from_environment(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("WORKFLOW_STORAGE_DIR", str(tmp_path))
    monkeypatch.setenv("WORKFLOW_AUTOSAVE_DELAY_SECONDS", "0.5")
    monkeypatch.setenv("WORKFLOW_MAX_HISTORY", "7")
    settings = get_settings()
    assert settings.storage_dir == tmp_path
    assert settings.autosave_delay_seconds == 0.5
    assert settings.max_history == 7


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok", "connections": 0}


def test_no_workflow_open(client):
    assert client.get("/api/workflow").json()["workflow"] is None
    response = client.get("/api/workflow/validate")
    assert response.status_code == 400
    assert response.json()["detail"] == "No workflow open"


def test_build_validate_and_fix(client, opened):
    start_id, end_id = opened
    client.post("/api/triggers", json={"itemType": "page", "triggerEvent": "view"})

    response = client.post("/api/nodes", json={
        "type": "activity",
        "afterNodeId": start_id,
        "data": {"label": "Welcome"},
    })
    assert response.status_code == 200
    node_id = response.json()["node"]["id"]

    report = client.get("/api/workflow/validate").json()
    assert report["isValid"] is True
    assert [w["message"] for w in report["warnings"]] == ['Activity "Welcome" has no actions defined']
    assert report["summary"]["fixable"] == 1

    fixed = client.post("/api/workflow/autofix").json()
    assert fixed["fixedCount"] == 1
    assert fixed["validation"]["warnings"] == []

    node = client.get(f"/api/nodes/{node_id}").json()["node"]
    assert len(node["data"]["actions"]) == 1

    state = client.get("/api/workflow").json()
    assert state["isDirty"] is True
    assert state["canUndo"] is True
    connections = {(c["sourceId"], c["targetId"]) for c in state["workflow"]["connections"]}
    assert connections == {(start_id, node_id), (node_id, end_id)}


def test_unknown_node_is_404(client, opened):
    assert client.get("/api/nodes/ghost").status_code == 404
    assert client.delete("/api/nodes/ghost").status_code == 404
    assert client.patch("/api/nodes/ghost", json={"data": {"label": "x"}}).status_code == 404


def test_protected_node_is_400(client, opened):
    start_id, _ = opened
    response = client.delete(f"/api/nodes/{start_id}")
    assert response.status_code == 400


def test_second_start_node_rejected(client, opened):
    response = client.post("/api/nodes", json={"type": "start"})
    assert response.status_code == 400


def test_update_node(client, opened):
    start_id, _ = opened
    node_id = client.post("/api/nodes", json={"type": "delay", "afterNodeId": start_id}).json()["node"]["id"]
    response = client.patch(f"/api/nodes/{node_id}", json={
        "data": {"delayAmount": 2, "delayUnit": "days"},
        "position": {"x": 40, "y": 80},
    })
    node = response.json()["node"]
    assert node["data"]["delayAmount"] == 2
    assert node["data"]["delayUnit"] == "days"
    assert node["position"] == {"x": 40, "y": 80}


def test_connections(client, opened):
    start_id, end_id = opened
    cond_id = client.post("/api/nodes", json={"type": "condition"}).json()["node"]["id"]

    created = client.post("/api/connections", json={
        "sourceId": cond_id, "targetId": end_id, "sourceHandle": "yes",
    }).json()["connection"]
    assert created["sourceHandle"] == "yes"

    assert client.delete(f"/api/connections/{created['id']}").status_code == 200
    assert client.delete(f"/api/connections/{created['id']}").status_code == 404

    removed = client.post("/api/connections/remove", json={"sourceId": start_id, "targetId": end_id}).json()
    assert removed["removed"] == 1

    response = client.post("/api/connections", json={"sourceId": cond_id, "targetId": "ghost"})
    assert response.status_code == 404


def test_tree_move(client, opened):
    start_id, end_id = opened
    a = client.post("/api/nodes", json={"type": "activity", "afterNodeId": start_id}).json()["node"]["id"]
    b = client.post("/api/nodes", json={"type": "activity", "afterNodeId": a}).json()["node"]["id"]

    moved = client.post("/api/tree/move", json={
        "draggedNodeId": b, "targetNodeId": a, "position": "before",
    }).json()
    assert moved["success"] is True
    assert {(c["sourceId"], c["targetId"]) for c in moved["connections"]} == {
        (start_id, b), (b, a), (a, end_id),
    }

    rejected = client.post("/api/tree/move", json={
        "draggedNodeId": b, "targetNodeId": end_id, "position": "child",
    }).json()
    assert rejected["success"] is False
    assert rejected["reason"] == "Cannot move a node into its own descendants"


def test_triggers(client, opened):
    first = client.post("/api/triggers", json={"itemType": "page", "triggerEvent": "view"}).json()
    events = client.post("/api/triggers", json={"itemType": "form", "triggerEvent": "submit"}).json()["triggerEvents"]
    assert first["success"] is True
    assert [e["seq"] for e in events] == [0, 1]

    duplicate = client.post("/api/triggers", json={"itemType": "form", "triggerEvent": "submit"})
    assert duplicate.status_code == 400

    reordered = client.put("/api/triggers/order", json={"orderedIds": [events[1]["id"], events[0]["id"]]}).json()
    assert [(e["id"], e["seq"]) for e in reordered["triggerEvents"]] == [(events[1]["id"], 0), (events[0]["id"], 1)]

    throttled = client.patch(f"/api/triggers/{events[0]['id']}/throttle", json={
        "throttle": {"enabled": True, "scope": "day", "maxExecutions": 2},
    }).json()["triggerEvents"]
    throttle = next(e for e in throttled if e["id"] == events[0]["id"])["throttle"]
    assert throttle["scope"] == "day"
    assert throttle["maxExecutions"] == 2

    remaining = client.delete(f"/api/triggers/{events[1]['id']}").json()["triggerEvents"]
    assert [e["id"] for e in remaining] == [events[0]["id"]]
    assert client.delete("/api/triggers/nope").status_code == 404


def test_reset_throttles(client, opened):
    client.post("/api/triggers", json={
        "itemType": "page", "triggerEvent": "view",
        "throttle": {"enabled": True, "scope": "lifetime"},
    })
    assert client.post("/api/triggers/reset-throttles").status_code == 400

    client.post("/api/workflow/save")
    events = client.post("/api/triggers/reset-throttles").json()["triggerEvents"]
    assert events[0]["throttle"]["version"] == 2
    assert events[0]["throttle"]["resetAt"] > 1_600_000_000_000


def test_undo_redo(client, opened):
    client.post("/api/nodes", json={"type": "activity"})
    assert len(client.post("/api/undo").json()["workflow"]["nodes"]) == 2
    assert len(client.post("/api/redo").json()["workflow"]["nodes"]) == 3
    assert client.post("/api/redo").json() == {"success": False, "message": "Nothing to redo"}


def test_save_list_open_delete(client, opened):
    workflow_id = client.post("/api/workflow/save").json()["workflowId"]
    listed = client.get("/api/workflows").json()["workflows"]
    assert [w["id"] for w in listed] == [workflow_id]

    assert client.delete(f"/api/workflows/{workflow_id}").status_code == 400  # still open

    client.post("/api/workflow/close")
    assert client.get("/api/workflow").json()["workflow"] is None

    opened_again = client.post(f"/api/workflows/{workflow_id}/open").json()
    assert opened_again["workflow"]["id"] == workflow_id

    assert client.post("/api/workflows/wf-missing/open").status_code == 404

    client.post("/api/workflow/close")
    assert client.delete(f"/api/workflows/{workflow_id}").status_code == 200
    assert client.delete(f"/api/workflows/{workflow_id}").status_code == 404


def test_json_export_import(client, opened):
    exported = client.get("/api/workflow/json").json()
    exported["name"] = "Imported"
    exported["nodes"].append({"id": "extra", "type": "activity", "data": {"label": "Extra"}})

    response = client.put("/api/workflow/json", json=exported)
    assert response.status_code == 200
    assert response.json()["workflow"]["name"] == "Imported"
    assert client.get("/api/nodes/extra").json()["node"]["data"]["label"] == "Extra"

    client.post("/api/undo")
    assert client.get("/api/nodes/extra").status_code == 404


def test_summary(client, opened):
    summary = client.get("/api/workflow/summary").json()["summary"]
    assert summary["totalNodes"] == 2
    assert summary["hasCycles"] is False


def test_enums(client):
    assert "condition" in client.get("/api/enums/node-types").json()["types"]
    assert "is_not_empty" in client.get("/api/enums/operators").json()["operators"]
    actions = client.get("/api/enums/actions").json()["actions"]
    assert {"value": "send_email", "label": "Send Email", "category": "communication"} in actions


def receive_until(ws, message_type, limit=5):
    for _ in range(limit):
        message = ws.receive_json()
        if message["type"] == message_type:
            return message
    raise AssertionError(f"no {message_type} message received")


def test_websocket_ping_and_updates(client, opened):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("ping")
        receive_until(ws, "pong")

        client.post("/api/nodes", json={"type": "activity"})
        message = receive_until(ws, "workflow_updated")
        assert "workflowId" in message
