"""Database-backed loading and saving of workflow graphs."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..graph.converter import from_external_with_report, to_external
from ..graph.model import Graph
from ..models.workflow import Workflow


def decode_graph(graph_json: str | None) -> Graph:
    """Parse the stored graph text, treating unreadable content as an empty graph."""

    try:
        data = json.loads(graph_json or "{}")
    except (TypeError, ValueError):
        data = {}
    return Graph.from_dict(data)


def encode_graph(graph: Graph) -> str:
    return json.dumps(graph.to_dict())


def is_name_unique(name: str, workflow_id: str | None = None) -> bool:
    """Check whether the workflow name is unique (case-insensitive)."""

    query = Workflow.query.filter(func.lower(Workflow.name) == name.lower())
    if workflow_id is not None:
        query = query.filter(Workflow.id != workflow_id)
    return not db.session.query(query.exists()).scalar()


def unique_name(name: str) -> str:
    """Return *name*, or *name* with a ``(n)`` suffix if it is already taken."""

    candidate = name
    counter = 2
    while not is_name_unique(candidate):
        candidate = f"{name} ({counter})"
        counter += 1
    return candidate


def load_graph(workflow_id: str) -> Graph | None:
    workflow = db.session.get(Workflow, workflow_id)
    if workflow is None:
        return None
    return decode_graph(workflow.graph_json)


def save_graph(workflow_id: str, graph: Graph) -> bool:
    """Persist *graph* for an existing workflow; returns ``False`` if it is missing."""

    workflow = db.session.get(Workflow, workflow_id)
    if workflow is None:
        return False
    workflow.graph_json = encode_graph(graph)
    workflow.updated_at = datetime.utcnow()
    db.session.commit()
    return True


def export_workflow(workflow_id: str) -> dict[str, Any] | None:
    """Return the external document for a stored workflow, or ``None`` if unknown."""

    workflow = db.session.get(Workflow, workflow_id)
    if workflow is None:
        return None
    return to_external(
        decode_graph(workflow.graph_json),
        workflow.name,
        workflow_id=workflow.id,
        active=workflow.is_active,
        created_at=workflow.created_at,
        updated_at=workflow.updated_at,
    )


def import_workflow(schema: Any, name: str | None = None) -> Workflow:
    """Create a stored workflow from an external document.

    Raises :class:`~flowcanvas.graph.converter.ExternalSchemaError` for documents
    of the wrong shape; unresolvable node names are dropped.
    """

    graph, report = from_external_with_report(schema)
    body = schema.get("data", schema)
    source_name = body.get("name").strip() if isinstance(body.get("name"), str) else ""
    target_name = (
        (name or "").strip() or source_name or current_app.config["DEFAULT_WORKFLOW_NAME"]
    )

    workflow = Workflow(
        name=unique_name(target_name),
        description=f"Imported from {source_name}" if source_name else "",
        graph_json=encode_graph(graph),
        is_active=True,
    )
    db.session.add(workflow)
    db.session.commit()

    current_app.logger.info(
        "Imported workflow %s with %s nodes (skipped %s nodes, %s connections)",
        workflow.id,
        len(graph.nodes),
        report.skipped_nodes,
        report.skipped_connections,
    )
    return workflow


def duplicate_workflow(workflow_id: str) -> Workflow | None:
    original = db.session.get(Workflow, workflow_id)
    if original is None:
        return None

    copy = Workflow(
        name=unique_name(f"{original.name} (Copy)"),
        description=original.description,
        graph_json=original.graph_json,
        is_active=original.is_active,
    )
    db.session.add(copy)
    db.session.commit()
    return copy
