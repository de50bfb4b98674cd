"""REST API endpoints for editing a stored workflow graph."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, jsonify, request

from ..extensions import db
from ..graph.model import NodeKind
from ..graph.store import GraphStore
from ..graph.validator import can_connect
from ..models.workflow import Workflow
from ..workflow.repository import decode_graph, save_graph

bp = Blueprint("graph", __name__)

_RESET_FLAGS = {"1", "true", "yes"}


def _load_store(workflow_id: str) -> tuple[Workflow, GraphStore]:
    workflow = db.get_or_404(Workflow, workflow_id)
    return workflow, GraphStore(decode_graph(workflow.graph_json), workflow.name)


def _parse_kind(value: Any) -> tuple[NodeKind | None, list[str]]:
    if value is None:
        return None, ["kind is required"]
    kind = NodeKind.parse(value)
    if kind is None:
        return None, ["kind is not supported"]
    return kind, []


@bp.post("/workflows/<workflow_id>/nodes")
def add_node(workflow_id: str) -> tuple[object, int]:
    workflow, store = _load_store(workflow_id)
    payload = request.get_json(silent=True, force=True) or {}

    kind, errors = _parse_kind(payload.get("kind"))
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    parameters = payload.get("parameters")
    if parameters is not None and not isinstance(parameters, dict):
        return jsonify({"error": "parameters must be an object"}), HTTPStatus.BAD_REQUEST

    node = store.add_node(kind)
    if node is None:
        return jsonify({"error": "workflow already has a trigger"}), HTTPStatus.CONFLICT
    if parameters:
        store.update_node(node.id, parameters)

    save_graph(workflow.id, store.graph)
    return jsonify(node.to_dict()), HTTPStatus.CREATED


@bp.patch("/workflows/<workflow_id>/nodes/<node_id>")
def update_node(workflow_id: str, node_id: str) -> tuple[object, int]:
    workflow, store = _load_store(workflow_id)
    payload = request.get_json(silent=True, force=True) or {}

    parameters = payload.get("parameters", {})
    if not isinstance(parameters, dict):
        return jsonify({"error": "parameters must be an object"}), HTTPStatus.BAD_REQUEST

    credentials = payload.get("credentials")
    if "credentials" in payload and credentials is not None and not isinstance(
        credentials, (dict, str)
    ):
        return jsonify({"error": "credentials must be an object or string"}), HTTPStatus.BAD_REQUEST

    node = store.update_node(node_id, parameters)
    if node is None:
        return jsonify({"error": "node not found"}), HTTPStatus.NOT_FOUND
    if "credentials" in payload:
        store.set_credentials(node_id, credentials)

    save_graph(workflow.id, store.graph)
    return jsonify(node.to_dict()), HTTPStatus.OK


@bp.delete("/workflows/<workflow_id>/nodes/<node_id>")
def delete_node(workflow_id: str, node_id: str) -> tuple[object, int]:
    workflow, store = _load_store(workflow_id)

    if node_id == store.graph.start_node_id:
        if request.args.get("reset", "false").lower() not in _RESET_FLAGS:
            return (
                jsonify({"error": "deleting the trigger resets the workflow; pass reset=true"}),
                HTTPStatus.CONFLICT,
            )
        store.reset()
    elif not store.delete_node(node_id):
        return jsonify({"error": "node not found"}), HTTPStatus.NOT_FOUND

    save_graph(workflow.id, store.graph)
    return "", HTTPStatus.NO_CONTENT


@bp.post("/workflows/<workflow_id>/edges")
def connect(workflow_id: str) -> tuple[object, int]:
    workflow, store = _load_store(workflow_id)
    payload = request.get_json(silent=True, force=True) or {}

    source = payload.get("source")
    target = payload.get("target")
    if not isinstance(source, str) or not isinstance(target, str):
        return jsonify({"error": "source and target are required"}), HTTPStatus.BAD_REQUEST

    branch_slot = payload.get("branchSlot")
    if not can_connect(store.graph, source, target, branch_slot):
        return jsonify({"error": "connection is not allowed"}), HTTPStatus.BAD_REQUEST

    edge = store.connect(source, target, branch_slot)
    if edge is None:
        return jsonify({"error": "connection is not allowed"}), HTTPStatus.BAD_REQUEST

    save_graph(workflow.id, store.graph)
    return jsonify(edge.to_dict()), HTTPStatus.CREATED


@bp.delete("/workflows/<workflow_id>/edges/<edge_id>")
def disconnect(workflow_id: str, edge_id: str) -> tuple[object, int]:
    workflow, store = _load_store(workflow_id)
    if not store.delete_edge(edge_id):
        return jsonify({"error": "edge not found"}), HTTPStatus.NOT_FOUND
    save_graph(workflow.id, store.graph)
    return "", HTTPStatus.NO_CONTENT


@bp.put("/workflows/<workflow_id>/trigger")
def change_trigger(workflow_id: str) -> tuple[object, int]:
    workflow, store = _load_store(workflow_id)
    payload = request.get_json(silent=True, force=True) or {}

    kind, errors = _parse_kind(payload.get("kind"))
    if not errors and not kind.is_trigger:
        errors = ["kind must be a trigger kind"]
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    node = store.change_trigger_kind(kind)
    if node is None:
        return jsonify({"error": "workflow has no trigger"}), HTTPStatus.NOT_FOUND

    save_graph(workflow.id, store.graph)
    return jsonify(node.to_dict()), HTTPStatus.OK


@bp.delete("/workflows/<workflow_id>/graph")
def reset_graph(workflow_id: str) -> tuple[object, int]:
    workflow, store = _load_store(workflow_id)
    store.reset()
    save_graph(workflow.id, store.graph)
    return jsonify(store.graph.to_dict()), HTTPStatus.OK


@bp.get("/workflows/<workflow_id>/validate")
def validate_workflow(workflow_id: str) -> tuple[object, int]:
    _, store = _load_store(workflow_id)
    return jsonify(store.validate().to_dict()), HTTPStatus.OK


@bp.get("/workflows/<workflow_id>/nodes/<node_id>/upstream")
def upstream(workflow_id: str, node_id: str) -> tuple[object, int]:
    _, store = _load_store(workflow_id)
    return jsonify([node.to_dict() for node in store.incoming_chain(node_id)]), HTTPStatus.OK
