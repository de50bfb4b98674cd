"""API endpoints for exporting and importing workflows in the n8n format."""
from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from ..extensions import db, limiter
from ..graph.converter import ExternalSchemaError, from_external_with_report, to_external
from ..graph.validator import validate
from ..models.workflow import Workflow
from ..workflow.repository import decode_graph, export_workflow, import_workflow
from .workflow import _normalize_graph, _serialize_workflow

bp = Blueprint("export", __name__)

_TRUE_FLAGS = {"1", "true", "yes"}


def _import_rate_limit() -> str:
    return current_app.config["IMPORT_RATE_LIMIT"]


def _split_import_payload(payload: Any) -> tuple[Any, str | None, list[str]]:
    """Separate the external document from the optional target name."""

    if not isinstance(payload, dict):
        return None, None, ["payload must be an object"]

    if "schema" in payload:
        schema = payload.get("schema")
        name = payload.get("name")
        if name is not None and (not isinstance(name, str) or not name.strip()):
            return None, None, ["name must not be empty"]
        return schema, name.strip() if isinstance(name, str) else None, []
    return payload, None, []


@bp.get("/workflows/<workflow_id>/export")
def export_single(workflow_id: str) -> tuple[object, int]:
    """Return the external document for a stored workflow."""

    strict = request.args.get("strict", "false").lower() in _TRUE_FLAGS
    if strict:
        workflow = db.session.get(Workflow, workflow_id)
        if workflow is not None:
            result = validate(decode_graph(workflow.graph_json))
            if not result.ok:
                current_app.logger.warning(
                    "Refusing strict export of workflow %s: %s",
                    workflow_id,
                    "; ".join(result.errors),
                )
                return jsonify({"errors": result.errors}), HTTPStatus.UNPROCESSABLE_ENTITY

    schema = export_workflow(workflow_id)
    if schema is None:
        return jsonify({"error": "workflow not found"}), HTTPStatus.NOT_FOUND
    return jsonify(schema), HTTPStatus.OK


@bp.post("/workflows/import")
@limiter.limit(_import_rate_limit)
def import_single() -> tuple[object, int]:
    """Create a workflow from an external document."""

    payload = request.get_json(force=True, silent=True)
    schema, name, errors = _split_import_payload(payload)
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    try:
        workflow = import_workflow(schema, name)
    except ExternalSchemaError as exc:
        return jsonify({"error": str(exc)}), HTTPStatus.BAD_REQUEST

    return jsonify(_serialize_workflow(workflow)), HTTPStatus.CREATED


@bp.post("/graph/validate")
def validate_graph() -> tuple[object, int]:
    """Validate a graph supplied in the internal representation."""

    payload = request.get_json(force=True, silent=True) or {}
    graph, errors = _normalize_graph(payload.get("graph_json"))
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST
    return jsonify(validate(graph).to_dict()), HTTPStatus.OK


@bp.post("/graph/export")
def export_graph() -> tuple[object, int]:
    """Convert an internal graph to the external document without storing it."""

    payload = request.get_json(force=True, silent=True) or {}
    graph, errors = _normalize_graph(payload.get("graph_json"))
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        name = current_app.config["DEFAULT_WORKFLOW_NAME"]
    return jsonify(to_external(graph, name.strip())), HTTPStatus.OK


@bp.post("/graph/import")
def import_graph() -> tuple[object, int]:
    """Convert an external document to the internal graph without storing it."""

    payload = request.get_json(force=True, silent=True)
    try:
        graph, report = from_external_with_report(payload)
    except ExternalSchemaError as exc:
        return jsonify({"error": str(exc)}), HTTPStatus.BAD_REQUEST

    return (
        jsonify(
            {
                "graph_json": graph.to_dict(),
                "skipped": {
                    "nodes": report.skipped_nodes,
                    "connections": report.skipped_connections,
                },
            }
        ),
        HTTPStatus.OK,
    )
