"""Tests for the workflow persistence REST API."""

from __future__ import annotations

import pytest

pytestmark = pytest.mark.usefixtures("clean_database")


def test_workflow_roundtrip(client):
    create_response = client.post("/api/workflows", json={"name": "Pipeline"})
    assert create_response.status_code == 201
    created = create_response.get_json()
    assert created["name"] == "Pipeline"
    assert created["is_active"] is True
    assert created["graph_json"] == {"nodes": [], "edges": [], "startNodeId": None}

    list_response = client.get("/api/workflows")
    assert list_response.status_code == 200
    listed = list_response.get_json()
    assert any(workflow["id"] == created["id"] for workflow in listed)
    assert all("graph_json" not in workflow for workflow in listed)

    detail_response = client.get(f"/api/workflows/{created['id']}")
    assert detail_response.status_code == 200
    assert detail_response.get_json()["name"] == "Pipeline"

    graph_payload = {
        "nodes": [
            {
                "id": "t1",
                "kind": "trigger.manual",
                "parameters": {"name": "start"},
                "position": {"x": 1, "y": 2},
            }
        ],
        "edges": [],
        "startNodeId": "t1",
    }
    update_response = client.put(
        f"/api/workflows/{created['id']}",
        json={"graph_json": graph_payload, "description": "demo"},
    )
    assert update_response.status_code == 200
    updated = update_response.get_json()
    assert updated["graph_json"] == graph_payload
    assert updated["description"] == "demo"


def test_workflow_name_must_be_unique(client):
    first = client.post("/api/workflows", json={"name": "Alpha"})
    assert first.status_code == 201

    conflict = client.post("/api/workflows", json={"name": "alpha"})
    assert conflict.status_code == 409

    second = client.post("/api/workflows", json={"name": "Beta"})
    assert second.status_code == 201
    second_data = second.get_json()

    rename_conflict = client.put(
        f"/api/workflows/{second_data['id']}",
        json={"name": "ALPHA"},
    )
    assert rename_conflict.status_code == 409


def test_create_requires_name(client):
    response = client.post("/api/workflows", json={"name": "   "})
    assert response.status_code == 400


def test_invalid_graph_payload_is_rejected(client):
    created = client.post("/api/workflows", json={"name": "NeedsGraph"})
    workflow_id = created.get_json()["id"]

    not_object = client.put(f"/api/workflows/{workflow_id}", json={"graph_json": [1, 2]})
    assert not_object.status_code == 400
    assert "graph_json" in " ".join(not_object.get_json().get("errors", []))

    missing = client.put(f"/api/workflows/{workflow_id}", json={"graph_json": None})
    assert missing.status_code == 400


def test_oversized_graph_is_rejected(app, client):
    created = client.post("/api/workflows", json={"name": "Huge"})
    workflow_id = created.get_json()["id"]

    limit = app.config["MAX_GRAPH_BYTES"]
    payload = {"nodes": [], "edges": [], "padding": "x" * limit}
    response = client.put(f"/api/workflows/{workflow_id}", json={"graph_json": payload})

    assert response.status_code == 400
    assert response.get_json()["errors"] == ["graph_json exceeds the maximum size"]


def test_delete_and_missing_workflow(client):
    created = client.post("/api/workflows", json={"name": "Temporary"})
    workflow_id = created.get_json()["id"]

    assert client.delete(f"/api/workflows/{workflow_id}").status_code == 204
    assert client.get(f"/api/workflows/{workflow_id}").status_code == 404
    assert client.delete(f"/api/workflows/{workflow_id}").status_code == 404


def test_duplicate_workflow(client):
    created = client.post("/api/workflows", json={"name": "Original"})
    workflow_id = created.get_json()["id"]

    first = client.post(f"/api/workflows/{workflow_id}/duplicate")
    second = client.post(f"/api/workflows/{workflow_id}/duplicate")

    assert first.status_code == 201
    assert first.get_json()["name"] == "Original (Copy)"
    assert second.get_json()["name"] == "Original (Copy) (2)"
    assert client.post("/api/workflows/unknown/duplicate").status_code == 404
