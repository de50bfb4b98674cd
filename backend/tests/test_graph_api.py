"""Tests for editing stored workflow graphs through the REST API."""
from __future__ import annotations

import pytest

pytestmark = pytest.mark.usefixtures("clean_database")


@pytest.fixture()
def workflow_id(client):
    response = client.post("/api/workflows", json={"name": "Editor"})
    return response.get_json()["id"]


def _add(client, workflow_id: str, kind: str, **extra) -> dict:
    response = client.post(f"/api/workflows/{workflow_id}/nodes", json={"kind": kind, **extra})
    assert response.status_code == 201
    return response.get_json()


def _graph(client, workflow_id: str) -> dict:
    return client.get(f"/api/workflows/{workflow_id}").get_json()["graph_json"]


def test_build_and_validate_branching_workflow(client, workflow_id):
    trigger = _add(client, workflow_id, "trigger.form")
    branch = _add(client, workflow_id, "logic.if")
    yes = _add(client, workflow_id, "action.telegram")
    no = _add(client, workflow_id, "action.llm", parameters={"provider": "gemini"})

    assert trigger["webhookId"]
    assert no["parameters"]["provider"] == "gemini"

    edges = [
        {"source": trigger["id"], "target": branch["id"]},
        {"source": branch["id"], "target": yes["id"], "branchSlot": 0},
        {"source": branch["id"], "target": no["id"], "branchSlot": "1"},
    ]
    for edge in edges:
        response = client.post(f"/api/workflows/{workflow_id}/edges", json=edge)
        assert response.status_code == 201

    validation = client.get(f"/api/workflows/{workflow_id}/validate").get_json()
    assert validation == {"ok": True, "errors": []}

    graph = _graph(client, workflow_id)
    assert graph["startNodeId"] == trigger["id"]
    assert {edge.get("label") for edge in graph["edges"]} == {None, "true", "false"}

    schema = client.get(f"/api/workflows/{workflow_id}/export").get_json()
    types = {node["name"]: node["type"] for node in schema["data"]["nodes"]}
    assert types["llm"] == "@n8n/n8n-nodes-langchain.lmChatGoogleGemini"


def test_second_trigger_conflicts(client, workflow_id):
    _add(client, workflow_id, "trigger.manual")

    response = client.post(f"/api/workflows/{workflow_id}/nodes", json={"kind": "trigger.cron"})

    assert response.status_code == 409


def test_unknown_kind_is_rejected(client, workflow_id):
    response = client.post(f"/api/workflows/{workflow_id}/nodes", json={"kind": "action.sms"})
    assert response.status_code == 400

    missing = client.post(f"/api/workflows/{workflow_id}/nodes", json={})
    assert missing.get_json()["errors"] == ["kind is required"]


def test_update_node_parameters_and_credentials(client, workflow_id):
    action = _add(client, workflow_id, "action.email")

    response = client.patch(
        f"/api/workflows/{workflow_id}/nodes/{action['id']}",
        json={"parameters": {"subject": "Hello"}, "credentials": "cred-1"},
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["parameters"]["subject"] == "Hello"
    assert body["parameters"]["name"] == "email"
    assert body["credentials"] == "cred-1"

    missing = client.patch(f"/api/workflows/{workflow_id}/nodes/nope", json={"parameters": {}})
    assert missing.status_code == 404


def test_rejected_connections(client, workflow_id):
    trigger = _add(client, workflow_id, "trigger.manual")
    branch = _add(client, workflow_id, "logic.if")
    action = _add(client, workflow_id, "action.email")
    client.post(
        f"/api/workflows/{workflow_id}/edges",
        json={"source": trigger["id"], "target": action["id"]},
    )

    into_trigger = client.post(
        f"/api/workflows/{workflow_id}/edges",
        json={"source": action["id"], "target": trigger["id"]},
    )
    no_slot = client.post(
        f"/api/workflows/{workflow_id}/edges",
        json={"source": branch["id"], "target": action["id"]},
    )
    bad_slot = client.post(
        f"/api/workflows/{workflow_id}/edges",
        json={"source": branch["id"], "target": action["id"], "branchSlot": 2},
    )
    missing = client.post(f"/api/workflows/{workflow_id}/edges", json={"source": trigger["id"]})

    assert into_trigger.status_code == 400
    assert no_slot.status_code == 400
    assert bad_slot.status_code == 400
    assert missing.status_code == 400
    assert len(_graph(client, workflow_id)["edges"]) == 1


def test_delete_node_and_edge(client, workflow_id):
    trigger = _add(client, workflow_id, "trigger.manual")
    action = _add(client, workflow_id, "action.email")
    edge = client.post(
        f"/api/workflows/{workflow_id}/edges",
        json={"source": trigger["id"], "target": action["id"]},
    ).get_json()

    assert client.delete(f"/api/workflows/{workflow_id}/edges/{edge['id']}").status_code == 204
    assert client.delete(f"/api/workflows/{workflow_id}/edges/{edge['id']}").status_code == 404

    assert client.delete(f"/api/workflows/{workflow_id}/nodes/{action['id']}").status_code == 204
    assert client.delete(f"/api/workflows/{workflow_id}/nodes/{action['id']}").status_code == 404
    assert [node["id"] for node in _graph(client, workflow_id)["nodes"]] == [trigger["id"]]


def test_deleting_trigger_requires_reset(client, workflow_id):
    trigger = _add(client, workflow_id, "trigger.manual")
    _add(client, workflow_id, "action.email")

    refused = client.delete(f"/api/workflows/{workflow_id}/nodes/{trigger['id']}")
    assert refused.status_code == 409

    reset = client.delete(
        f"/api/workflows/{workflow_id}/nodes/{trigger['id']}", query_string={"reset": "true"}
    )
    assert reset.status_code == 204
    assert _graph(client, workflow_id) == {"nodes": [], "edges": [], "startNodeId": None}


def test_reset_graph_endpoint(client, workflow_id):
    _add(client, workflow_id, "trigger.manual")

    response = client.delete(f"/api/workflows/{workflow_id}/graph")

    assert response.status_code == 200
    assert response.get_json() == {"nodes": [], "edges": [], "startNodeId": None}


def test_change_trigger_kind(client, workflow_id):
    missing = client.put(f"/api/workflows/{workflow_id}/trigger", json={"kind": "trigger.cron"})
    assert missing.status_code == 404

    trigger = _add(client, workflow_id, "trigger.manual")
    response = client.put(f"/api/workflows/{workflow_id}/trigger", json={"kind": "trigger.cron"})

    assert response.status_code == 200
    body = response.get_json()
    assert body["id"] == trigger["id"]
    assert body["kind"] == "trigger.cron"
    assert body["parameters"]["name"] == "manual"
    assert body["parameters"]["cronExpression"] == "0 0 * * *"

    not_trigger = client.put(f"/api/workflows/{workflow_id}/trigger", json={"kind": "action.email"})
    assert not_trigger.status_code == 400


def test_upstream_chain(client, workflow_id):
    trigger = _add(client, workflow_id, "trigger.manual")
    first = _add(client, workflow_id, "action.llm")
    second = _add(client, workflow_id, "action.email")
    for source, target in ((trigger, first), (first, second)):
        client.post(
            f"/api/workflows/{workflow_id}/edges",
            json={"source": source["id"], "target": target["id"]},
        )

    response = client.get(f"/api/workflows/{workflow_id}/nodes/{second['id']}/upstream")

    assert response.status_code == 200
    assert [node["id"] for node in response.get_json()] == [first["id"], trigger["id"]]

    unknown = client.get(f"/api/workflows/{workflow_id}/nodes/nope/upstream")
    assert unknown.status_code == 200
    assert unknown.get_json() == []


def test_editing_unknown_workflow_returns_404(client):
    response = client.post("/api/workflows/unknown/nodes", json={"kind": "logic.if"})
    assert response.status_code == 404
