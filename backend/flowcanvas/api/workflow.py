"""REST API endpoints for storing and retrieving workflows."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..graph.model import Graph
from ..models.workflow import Workflow
from ..workflow.repository import decode_graph, duplicate_workflow, encode_graph, is_name_unique

bp = Blueprint("workflows", __name__)


def _serialize_workflow(workflow: Workflow, *, include_graph: bool = True) -> dict[str, Any]:
    """Return a JSON serialisable representation of a workflow."""

    payload: dict[str, Any] = {
        "id": workflow.id,
        "name": workflow.name,
        "description": workflow.description,
        "is_active": workflow.is_active,
        "created_at": workflow.created_at.isoformat() + "Z",
        "updated_at": workflow.updated_at.isoformat() + "Z",
    }
    if include_graph:
        payload["graph_json"] = decode_graph(workflow.graph_json).to_dict()
    return payload


def _normalize_graph(value: Any, *, allow_default: bool = False) -> tuple[Graph | None, list[str]]:
    """Validate the graph payload, returning errors if present."""

    errors: list[str] = []

    if value is None:
        if allow_default:
            return Graph(), errors
        errors.append("graph_json is required")
        return None, errors

    if isinstance(value, str):
        if not value.strip():
            errors.append("graph_json must not be empty")
            return None, errors
        graph_text = value
    else:
        try:
            graph_text = json.dumps(value)
        except (TypeError, ValueError):
            errors.append("graph_json must be serialisable")
            return None, errors

    if len(graph_text.encode("utf-8")) > current_app.config["MAX_GRAPH_BYTES"]:
        errors.append("graph_json exceeds the maximum size")
        return None, errors

    try:
        data = json.loads(graph_text)
    except ValueError:
        errors.append("graph_json must be valid JSON")
        return None, errors

    if not isinstance(data, dict):
        errors.append("graph_json must be an object")
        return None, errors

    return Graph.from_dict(data), errors


def _normalize_name(value: Any) -> tuple[str | None, list[str]]:
    if not isinstance(value, str) or not value.strip():
        return None, ["name is required"]
    return value.strip(), []


@bp.post("/workflows")
def create_workflow() -> tuple[object, int]:
    payload = request.get_json(silent=True, force=True) or {}
    name, errors = _normalize_name(payload.get("name"))
    if errors:
        return jsonify({"error": errors[0]}), HTTPStatus.BAD_REQUEST

    if not is_name_unique(name):
        return jsonify({"error": "a workflow with this name already exists"}), HTTPStatus.CONFLICT

    graph, errors = _normalize_graph(payload.get("graph_json"), allow_default=True)
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    workflow = Workflow(
        name=name,
        description=str(payload.get("description") or ""),
        graph_json=encode_graph(graph),
        is_active=bool(payload.get("is_active", True)),
    )
    db.session.add(workflow)
    db.session.commit()

    return jsonify(_serialize_workflow(workflow)), HTTPStatus.CREATED


@bp.get("/workflows")
def list_workflows() -> tuple[object, int]:
    workflows = Workflow.query.order_by(Workflow.created_at.desc()).all()
    return (
        jsonify([_serialize_workflow(wf, include_graph=False) for wf in workflows]),
        HTTPStatus.OK,
    )


@bp.get("/workflows/<workflow_id>")
def get_workflow(workflow_id: str) -> tuple[object, int]:
    workflow = db.get_or_404(Workflow, workflow_id)
    return jsonify(_serialize_workflow(workflow)), HTTPStatus.OK


@bp.put("/workflows/<workflow_id>")
def update_workflow(workflow_id: str) -> tuple[object, int]:
    workflow = db.get_or_404(Workflow, workflow_id)
    payload = request.get_json(silent=True, force=True) or {}

    if "name" in payload:
        name, errors = _normalize_name(payload.get("name"))
        if errors:
            return jsonify({"error": "name must not be empty"}), HTTPStatus.BAD_REQUEST
        if not is_name_unique(name, workflow_id):
            return jsonify({"error": "a workflow with this name already exists"}), HTTPStatus.CONFLICT
        workflow.name = name

    if "graph_json" in payload:
        graph, errors = _normalize_graph(payload.get("graph_json"))
        if errors:
            return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST
        workflow.graph_json = encode_graph(graph)

    if "description" in payload:
        workflow.description = str(payload.get("description") or "")
    if "is_active" in payload:
        workflow.is_active = bool(payload.get("is_active"))

    db.session.commit()

    return jsonify(_serialize_workflow(workflow)), HTTPStatus.OK


@bp.delete("/workflows/<workflow_id>")
def delete_workflow(workflow_id: str) -> tuple[object, int]:
    workflow = db.get_or_404(Workflow, workflow_id)
    db.session.delete(workflow)
    db.session.commit()
    return "", HTTPStatus.NO_CONTENT


@bp.post("/workflows/<workflow_id>/duplicate")
def duplicate(workflow_id: str) -> tuple[object, int]:
    workflow = duplicate_workflow(workflow_id)
    if workflow is None:
        return jsonify({"error": "workflow not found"}), HTTPStatus.NOT_FOUND
    return jsonify(_serialize_workflow(workflow)), HTTPStatus.CREATED
