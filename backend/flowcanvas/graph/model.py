"""Workflow graph model: node kinds, nodes, edges and the graph aggregate."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

TRIGGER_PREFIX = "trigger."
BRANCH_LABELS = {0: "true", 1: "false"}


class NodeKind(str, Enum):
    """Closed set of node kinds, grouped into families by prefix."""

    MANUAL = "trigger.manual"
    FORM = "trigger.form"
    CRON = "trigger.cron"
    IF = "logic.if"
    TELEGRAM = "action.telegram"
    EMAIL = "action.email"
    LLM = "action.llm"

    @classmethod
    def parse(cls, value: Any) -> NodeKind | None:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except (TypeError, ValueError):
            return None

    @property
    def family(self) -> str:
        return self.value.split(".", 1)[0]

    @property
    def short_name(self) -> str:
        return self.value.split(".", 1)[1]

    @property
    def is_trigger(self) -> bool:
        return self.value.startswith(TRIGGER_PREFIX)

    @property
    def is_action(self) -> bool:
        return self.family == "action"

    @property
    def is_branch(self) -> bool:
        return self is NodeKind.IF


@dataclass
class Position:
    """Canvas coordinate, carried through unchanged."""

    x: float
    y: float


@dataclass
class Node:
    """A vertex of the workflow graph."""

    id: str
    kind: NodeKind
    parameters: dict[str, Any] = field(default_factory=dict)
    credentials: dict[str, Any] | str | None = None
    position: Position | None = None
    webhook_id: str | None = None

    @property
    def name(self) -> str:
        """Return the external display name, falling back to the id."""
        name = self.parameters.get("name")
        return name if isinstance(name, str) and name else self.id

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "parameters": copy.deepcopy(self.parameters),
            "position": (
                {"x": self.position.x, "y": self.position.y} if self.position else None
            ),
        }
        if self.credentials is not None:
            data["credentials"] = copy.deepcopy(self.credentials)
        if self.webhook_id:
            data["webhookId"] = self.webhook_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node | None:
        kind = NodeKind.parse(data.get("kind"))
        node_id = data.get("id")
        if kind is None or not node_id:
            return None

        position = None
        raw_position = data.get("position")
        if isinstance(raw_position, dict) and "x" in raw_position and "y" in raw_position:
            position = Position(raw_position["x"], raw_position["y"])

        parameters = data.get("parameters")
        return cls(
            id=str(node_id),
            kind=kind,
            parameters=dict(parameters) if isinstance(parameters, dict) else {},
            credentials=data.get("credentials"),
            position=position,
            webhook_id=data.get("webhookId"),
        )


@dataclass
class Edge:
    """A directed connection; ``branch_slot`` is only set for ``logic.if`` sources."""

    id: str
    source: str
    target: str
    branch_slot: int | None = None
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "source": self.source, "target": self.target}
        if self.branch_slot is not None:
            data["branchSlot"] = self.branch_slot
            data["label"] = self.label
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Edge | None:
        source = data.get("source")
        target = data.get("target")
        if not source or not target:
            return None
        slot = parse_branch_slot(data.get("branchSlot"))
        return cls(
            id=str(data.get("id") or edge_id(source, target, slot)),
            source=str(source),
            target=str(target),
            branch_slot=slot,
            label=BRANCH_LABELS.get(slot) if slot is not None else None,
        )


@dataclass
class Graph:
    """The editable workflow graph."""

    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    start_node_id: str | None = None

    def get_node(self, node_id: str) -> Node | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing_edges(self, node_id: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.source == node_id]

    def incoming_edges(self, node_id: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.target == node_id]

    def trigger_nodes(self) -> list[Node]:
        return [node for node in self.nodes if node.kind.is_trigger]

    def copy(self) -> Graph:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "startNodeId": self.start_node_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Graph:
        """Rebuild a graph from its stored form, dropping malformed entries."""

        if not isinstance(data, dict):
            return cls()

        nodes = [
            node
            for node in (
                Node.from_dict(item) for item in data.get("nodes") or [] if isinstance(item, dict)
            )
            if node is not None
        ]
        edges = [
            edge
            for edge in (
                Edge.from_dict(item) for item in data.get("edges") or [] if isinstance(item, dict)
            )
            if edge is not None
        ]
        start_node_id = data.get("startNodeId") or None
        return cls(nodes=nodes, edges=edges, start_node_id=start_node_id)


def edge_id(source: str, target: str, branch_slot: int | None = None) -> str:
    """Return the deterministic id of the edge between two nodes.

    Branch edges carry their slot so both outputs of an IF node may lead to
    the same target.
    """
    if branch_slot is None:
        return f"{source}-{target}"
    return f"{source}-{target}-{branch_slot}"


def parse_branch_slot(value: Any) -> int | None:
    """Normalize a branch slot handle; anything but 0/1 yields ``None``."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value in BRANCH_LABELS else None
    if isinstance(value, str) and value.strip() in {"0", "1"}:
        return int(value.strip())
    return None


def generate_id() -> str:
    return str(uuid.uuid4())


def default_parameters(kind: NodeKind) -> dict[str, Any]:
    """Return fresh default parameters for a node of the given kind."""

    if kind is NodeKind.MANUAL:
        return {"options": {}}
    if kind is NodeKind.FORM:
        return {
            "formTitle": "New Form",
            "formDescription": "",
            "elements": [],
            "options": {},
        }
    if kind is NodeKind.CRON:
        return {"cronExpression": "0 0 * * *", "timezone": "UTC", "options": {}}
    if kind is NodeKind.IF:
        return {
            "conditions": {
                "options": {
                    "caseSensitive": False,
                    "leftValue": "",
                    "typeValidation": "strict",
                    "version": 2,
                },
                "conditions": [],
                "combinator": "and",
            },
            "options": {},
        }
    if kind is NodeKind.TELEGRAM:
        return {"resource": "chat", "chatId": "", "options": {}}
    if kind is NodeKind.EMAIL:
        return {"to": "", "subject": "", "html": "", "text": "", "options": {}}
    if kind is NodeKind.LLM:
        return {
            "provider": "openai",
            "model": "gpt-3.5-turbo",
            "prompt": "",
            "vars": {},
            "options": {},
        }
    raise ValueError(f"unsupported node kind: {kind!r}")


def default_credentials(kind: NodeKind, parameters: dict[str, Any]) -> dict[str, Any] | None:
    """Return the placeholder credential bundle for new action nodes."""

    if not kind.is_action:
        return None
    if kind is NodeKind.TELEGRAM:
        key = "telegramApi"
    elif kind is NodeKind.EMAIL:
        key = "resendApi"
    else:
        key = f"{parameters.get('provider') or 'openai'}Api"
    return {key: {"id": generate_id(), "name": f"Default {kind.short_name} credentials"}}
