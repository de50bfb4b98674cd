"""Conversion between the internal graph and the n8n workflow export format."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .model import (
    BRANCH_LABELS,
    Edge,
    Graph,
    Node,
    NodeKind,
    Position,
    edge_id,
    generate_id,
)

LLM_TYPE_MARKER = "langchain.lmChat"
DEFAULT_LLM_PROVIDER = "openai"

NODE_TYPES: dict[NodeKind, str] = {
    NodeKind.MANUAL: "n8n-nodes-base.manualTrigger",
    NodeKind.FORM: "n8n-nodes-base.formTrigger",
    NodeKind.CRON: "n8n-nodes-base.cron",
    NodeKind.IF: "n8n-nodes-base.if",
    NodeKind.TELEGRAM: "n8n-nodes-base.telegram",
    NodeKind.EMAIL: "n8n-nodes-base.emailSend",
}

LLM_NODE_TYPES: dict[str, str] = {
    "openai": "@n8n/n8n-nodes-langchain.lmChatOpenAI",
    "gemini": "@n8n/n8n-nodes-langchain.lmChatGoogleGemini",
    "anthropic": "@n8n/n8n-nodes-langchain.lmChatAnthropic",
}

TYPE_VERSIONS: dict[NodeKind, float] = {
    NodeKind.FORM: 2.3,
    NodeKind.MANUAL: 1.2,
    NodeKind.CRON: 1.1,
    NodeKind.IF: 2.0,
    NodeKind.TELEGRAM: 1.2,
    NodeKind.EMAIL: 2.1,
    NodeKind.LLM: 1.0,
}

KINDS_BY_TYPE: dict[str, NodeKind] = {value: kind for kind, value in NODE_TYPES.items()}

WORKFLOW_SCOPES = [
    "workflow:create",
    "workflow:delete",
    "workflow:execute",
    "workflow:list",
    "workflow:move",
    "workflow:read",
    "workflow:share",
    "workflow:update",
]


class ExternalSchemaError(ValueError):
    """Raised when an external document does not have the expected container shape."""


@dataclass
class ImportReport:
    """Counts of entries dropped by the lenient importer."""

    skipped_nodes: int = 0
    skipped_connections: int = 0


def isoformat(value: datetime | None = None) -> str:
    """Format a timestamp as ISO-8601 UTC with millisecond precision."""

    value = value or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def external_type(node: Node) -> str:
    """Return the external type identifier for *node*."""

    if node.kind is NodeKind.LLM:
        provider = node.parameters.get("provider")
        return LLM_NODE_TYPES.get(provider, LLM_NODE_TYPES[DEFAULT_LLM_PROVIDER])
    return NODE_TYPES[node.kind]


def kind_for_type(type_name: Any) -> NodeKind | None:
    """Map an external type identifier back to a node kind."""

    if not isinstance(type_name, str):
        return None
    if LLM_TYPE_MARKER in type_name:
        return NodeKind.LLM
    return KINDS_BY_TYPE.get(type_name)


def _export_node(node: Node) -> dict[str, Any]:
    exported: dict[str, Any] = {
        "id": node.id,
        "name": node.name,
        "type": external_type(node),
        "typeVersion": TYPE_VERSIONS[node.kind],
    }
    if node.position is not None:
        exported["position"] = [node.position.x, node.position.y]
    exported["parameters"] = copy.deepcopy(node.parameters)
    if node.credentials:
        exported["credentials"] = copy.deepcopy(node.credentials)
    if node.webhook_id:
        exported["webhookId"] = node.webhook_id
    return exported


def _connection(target_name: str) -> dict[str, Any]:
    return {"node": target_name, "type": "main", "index": 0}


def _build_connections(graph: Graph) -> dict[str, dict[str, list[list[dict[str, Any]]]]]:
    names = {node.id: node.name for node in graph.nodes}
    connections: dict[str, dict[str, list[list[dict[str, Any]]]]] = {}

    for node in graph.nodes:
        outgoing = graph.outgoing_edges(node.id)
        if not outgoing:
            connections[node.name] = {"main": []}
            continue

        if node.kind.is_branch:
            main = [
                [
                    _connection(names.get(edge.target, edge.target))
                    for edge in outgoing
                    if edge.branch_slot == slot
                ]
                for slot in (0, 1)
            ]
        else:
            main = [[_connection(names.get(edge.target, edge.target)) for edge in outgoing]]
        connections[node.name] = {"main": main}

    return connections


def to_external(
    graph: Graph,
    workflow_name: str,
    *,
    workflow_id: str | None = None,
    active: bool = False,
    created_at: datetime | str | None = None,
    updated_at: datetime | str | None = None,
) -> dict[str, Any]:
    """Serialize *graph* into the external workflow document.

    The graph is not validated here; callers decide whether to gate the export
    on :func:`~flowcanvas.graph.validator.validate`.
    """

    now = isoformat()
    created = created_at if isinstance(created_at, str) else (
        isoformat(created_at) if created_at else now
    )
    updated = updated_at if isinstance(updated_at, str) else (
        isoformat(updated_at) if updated_at else now
    )

    return {
        "data": {
            "createdAt": created,
            "updatedAt": updated,
            "id": workflow_id or generate_id(),
            "name": workflow_name,
            "active": bool(active),
            "isArchived": False,
            "nodes": [_export_node(node) for node in graph.nodes],
            "connections": _build_connections(graph),
            "settings": {"executionOrder": "v1"},
            "staticData": None,
            "meta": {"templateCredsSetupCompleted": True},
            "pinData": {},
            "versionId": generate_id(),
            "triggerCount": 0,
            "tags": [],
            "scopes": list(WORKFLOW_SCOPES),
        }
    }


def _schema_body(schema: Any) -> dict[str, Any]:
    if not isinstance(schema, dict):
        raise ExternalSchemaError("schema must be an object")
    body = schema.get("data", schema)
    if not isinstance(body, dict):
        raise ExternalSchemaError("schema data must be an object")
    if not isinstance(body.get("nodes", []), list):
        raise ExternalSchemaError("nodes must be a list")
    if not isinstance(body.get("connections", {}), dict):
        raise ExternalSchemaError("connections must be an object")
    return body


def _import_position(value: Any) -> Position | None:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return Position(value[0], value[1])
    return None


def from_external_with_report(schema: Any) -> tuple[Graph, ImportReport]:
    """Rebuild a graph from an external document and report what was skipped."""

    body = _schema_body(schema)
    report = ImportReport()

    nodes: list[Node] = []
    ids_by_name: dict[str, str] = {}
    for item in body.get("nodes") or []:
        kind = kind_for_type(item.get("type")) if isinstance(item, dict) else None
        if kind is None:
            report.skipped_nodes += 1
            continue

        node_id = generate_id()
        parameters = item.get("parameters")
        parameters = copy.deepcopy(parameters) if isinstance(parameters, dict) else {}
        name = item.get("name")
        if isinstance(name, str) and name:
            ids_by_name[name] = node_id
            parameters.setdefault("name", name)

        nodes.append(
            Node(
                id=node_id,
                kind=kind,
                parameters=parameters,
                credentials=copy.deepcopy(item.get("credentials")) or None,
                position=_import_position(item.get("position")),
                webhook_id=item.get("webhookId") or None,
            )
        )

    kinds = {node.id: node.kind for node in nodes}
    edges: dict[str, Edge] = {}
    for source_name, outputs in (body.get("connections") or {}).items():
        source_id = ids_by_name.get(source_name)
        slots = outputs.get("main") if isinstance(outputs, dict) else None
        if not isinstance(slots, list):
            continue
        for slot_index, slot in enumerate(slots):
            for connection in slot if isinstance(slot, list) else []:
                target_name = connection.get("node") if isinstance(connection, dict) else None
                target_id = ids_by_name.get(target_name) if isinstance(target_name, str) else None
                if source_id is None or target_id is None:
                    report.skipped_connections += 1
                    continue

                if kinds[source_id].is_branch:
                    if slot_index not in BRANCH_LABELS:
                        report.skipped_connections += 1
                        continue
                    edge = Edge(
                        id=edge_id(source_id, target_id, slot_index),
                        source=source_id,
                        target=target_id,
                        branch_slot=slot_index,
                        label=BRANCH_LABELS[slot_index],
                    )
                else:
                    edge = Edge(id=edge_id(source_id, target_id), source=source_id, target=target_id)
                edges[edge.id] = edge

    start = next((node for node in nodes if node.kind.is_trigger), None)
    graph = Graph(nodes=nodes, edges=list(edges.values()), start_node_id=start.id if start else None)
    return graph, report


def from_external(schema: Any) -> Graph:
    """Rebuild a graph from an external document.

    Fresh internal ids are assigned; connections naming unknown nodes are dropped.
    """

    graph, _ = from_external_with_report(schema)
    return graph
