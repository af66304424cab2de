"""Tests for the execution endpoints."""

from unittest.mock import PropertyMock
from unittest.mock import patch

from datachef_api.execution.slot import ExecutionSlot
from tests.consts import API_BASE

EXECUTION_URL = f"{API_BASE}/execution"


def test_execute_pipe(client, json_pipe_payload):
    pipe = client.post(f"{API_BASE}/pipes", json=json_pipe_payload).json()

    response = client.post(EXECUTION_URL, json={"pipeId": pipe["id"]})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "completed"
    assert data["data"]["recordsProcessed"] == 30
    assert any(log["level"] == "warn" for log in data["logs"])


def test_execute_with_failing_engine_is_still_200(app, client, json_pipe_payload, engine_command):
    pipe = client.post(f"{API_BASE}/pipes", json=json_pipe_payload).json()
    app.state.bridge.settings = app.state.settings.model_copy(update={"engine_command": engine_command("fail")})

    response = client.post(EXECUTION_URL, json={"pipeId": pipe["id"], "sourcePath": "/orders/2026"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["status"] == "failed"
    assert "exited with code 1" in data["error"]


def test_execute_unknown_pipe(client):
    response = client.post(EXECUTION_URL, json={"pipeId": "missing"})

    assert response.status_code == 404


def test_execute_requires_pipe_id(client):
    response = client.post(EXECUTION_URL, json={})

    assert response.status_code == 422


def test_execute_while_running_returns_409(client, json_pipe_payload):
    pipe = client.post(f"{API_BASE}/pipes", json=json_pipe_payload).json()

    with patch.object(ExecutionSlot, "busy", new_callable=PropertyMock, return_value=True):
        response = client.post(EXECUTION_URL, json={"pipeId": pipe["id"]})

    assert response.status_code == 409
    assert response.json()["error_type"] == "ExecutionInProgressError"


def test_status_when_idle(client):
    response = client.get(f"{EXECUTION_URL}/status")

    assert response.status_code == 200
    assert response.json()["running"] is False


def test_cancel_when_idle(client):
    response = client.delete(EXECUTION_URL)

    assert response.status_code == 200
    assert response.json() == {"cancelled": False}


def test_history(client, json_pipe_payload, log_pipe_payload):
    orders = client.post(f"{API_BASE}/pipes", json=json_pipe_payload).json()
    logs = client.post(f"{API_BASE}/pipes", json=log_pipe_payload).json()
    client.post(EXECUTION_URL, json={"pipeId": orders["id"]})
    client.post(EXECUTION_URL, json={"pipeId": logs["id"]})

    everything = client.get(f"{EXECUTION_URL}/history").json()
    only_orders = client.get(f"{EXECUTION_URL}/history", params={"pipeId": orders["id"]}).json()

    assert len(everything) == 2
    assert [item["pipeName"] for item in only_orders] == ["Orders"]
    assert only_orders[0]["status"] == "completed"
    assert only_orders[0]["filesProcessed"] == 2
