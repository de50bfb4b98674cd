"""Mutation façade owning a live workflow graph."""

from __future__ import annotations

from typing import Any

from .converter import from_external, to_external
from .model import (
    BRANCH_LABELS,
    Edge,
    Graph,
    Node,
    NodeKind,
    Position,
    default_credentials,
    default_parameters,
    edge_id,
    generate_id,
    parse_branch_slot,
)
from .upstream import incoming_chain
from .validator import ValidationResult, validate

DEFAULT_WORKFLOW_NAME = "My Workflow"
TRIGGER_POSITION = (400, 200)
NODE_POSITION = (400, 400)


def generate_node_name(kind: NodeKind, nodes: list[Node]) -> str:
    """Return ``kind``'s short name, suffixed with a counter until it is unused."""

    base = kind.short_name
    existing = {node.name for node in nodes}
    name = base
    counter = 1
    while name in existing:
        name = f"{base}{counter}"
        counter += 1
    return name


class GraphStore:
    """Holds one graph plus editor state and applies cheap, local mutations.

    Mutations keep the obvious invariants (one trigger, no dangling edges)
    but never re-run the full validator; call :meth:`validate` for that.
    """

    def __init__(self, graph: Graph | None = None, workflow_name: str = DEFAULT_WORKFLOW_NAME):
        self.graph = graph if graph is not None else Graph()
        self.workflow_name = workflow_name
        self.selected_node_id: str | None = None

    def snapshot(self) -> Graph:
        return self.graph.copy()

    def set_selected_node(self, node_id: str | None) -> None:
        self.selected_node_id = node_id

    def set_workflow_name(self, name: str) -> None:
        self.workflow_name = name

    def _new_node(self, kind: NodeKind, position: tuple[float, float]) -> Node:
        parameters = default_parameters(kind)
        parameters["name"] = generate_node_name(kind, self.graph.nodes)
        node = Node(
            id=generate_id(),
            kind=kind,
            parameters=parameters,
            credentials=default_credentials(kind, parameters),
            position=Position(*position),
            webhook_id=generate_id() if kind is NodeKind.FORM else None,
        )
        self.graph.nodes.append(node)
        return node

    def add_trigger(self, kind: NodeKind) -> Node | None:
        """Add the trigger node; returns ``None`` if the graph already has one."""

        if not kind.is_trigger:
            raise ValueError(f"{kind.value} is not a trigger kind")
        if self.graph.trigger_nodes():
            return None
        node = self._new_node(kind, TRIGGER_POSITION)
        self.graph.start_node_id = node.id
        return node

    def add_action(self, kind: NodeKind) -> Node:
        if not kind.is_action:
            raise ValueError(f"{kind.value} is not an action kind")
        return self._new_node(kind, NODE_POSITION)

    def add_if(self) -> Node:
        return self._new_node(NodeKind.IF, NODE_POSITION)

    def add_node(self, kind: NodeKind) -> Node | None:
        """Dispatch to the add operation matching the kind's family."""

        if kind.is_trigger:
            return self.add_trigger(kind)
        if kind.is_branch:
            return self.add_if()
        return self.add_action(kind)

    def update_node(self, node_id: str, patch: dict[str, Any]) -> Node | None:
        """Shallow-merge *patch* into the node's parameters."""

        node = self.graph.get_node(node_id)
        if node is None:
            return None
        node.parameters.update(patch)
        return node

    def set_credentials(self, node_id: str, credentials: dict[str, Any] | str | None) -> Node | None:
        node = self.graph.get_node(node_id)
        if node is None:
            return None
        node.credentials = credentials
        return node

    def delete_node(self, node_id: str) -> bool:
        """Remove a node and its edges. The trigger can only go through :meth:`reset`."""

        if node_id == self.graph.start_node_id:
            return False
        node = self.graph.get_node(node_id)
        if node is None:
            return False

        self.graph.nodes = [item for item in self.graph.nodes if item.id != node_id]
        self.graph.edges = [
            edge for edge in self.graph.edges if edge.source != node_id and edge.target != node_id
        ]
        if self.selected_node_id == node_id:
            self.selected_node_id = None
        return True

    def delete_edge(self, edge_id_: str) -> bool:
        remaining = [edge for edge in self.graph.edges if edge.id != edge_id_]
        removed = len(remaining) != len(self.graph.edges)
        self.graph.edges = remaining
        return removed

    def reset(self) -> None:
        self.graph = Graph()
        self.selected_node_id = None

    def connect(self, source: str, target: str, branch_slot: Any = None) -> Edge | None:
        """Add the edge ``source -> target``, replacing one on the same pair and slot.

        Acyclicity and trigger targets are not checked here; see
        :func:`~flowcanvas.graph.validator.can_connect`.
        """

        source_node = self.graph.get_node(source)
        if source_node is None or self.graph.get_node(target) is None:
            return None

        slot = parse_branch_slot(branch_slot)
        if source_node.kind.is_branch:
            if slot is None:
                return None
            edge = Edge(
                id=edge_id(source, target, slot),
                source=source,
                target=target,
                branch_slot=slot,
                label=BRANCH_LABELS[slot],
            )
        else:
            edge = Edge(id=edge_id(source, target), source=source, target=target)

        self.graph.edges = [item for item in self.graph.edges if item.id != edge.id]
        self.graph.edges.append(edge)
        return edge

    def change_trigger_kind(self, new_kind: NodeKind) -> Node | None:
        """Swap the trigger's kind, resetting its parameters but keeping id and name."""

        if not new_kind.is_trigger:
            raise ValueError(f"{new_kind.value} is not a trigger kind")
        if not self.graph.start_node_id:
            return None
        node = self.graph.get_node(self.graph.start_node_id)
        if node is None:
            return None

        parameters = default_parameters(new_kind)
        parameters["name"] = node.parameters.get("name", node.name)
        node.kind = new_kind
        node.parameters = parameters
        if new_kind is NodeKind.FORM:
            node.webhook_id = generate_id()
        return node

    def validate(self) -> ValidationResult:
        return validate(self.snapshot())

    def export_schema(self, **metadata: Any) -> dict[str, Any]:
        return to_external(self.snapshot(), self.workflow_name, **metadata)

    def import_schema(self, schema: dict[str, Any]) -> Graph:
        """Replace the live graph with the one described by *schema*."""

        graph = from_external(schema)
        body = schema.get("data", schema)
        name = body.get("name") if isinstance(body, dict) else None
        self.graph = graph
        if isinstance(name, str) and name.strip():
            self.workflow_name = name.strip()
        self.selected_node_id = None
        return graph

    def incoming_chain(self, node_id: str) -> list[Node]:
        return incoming_chain(self.graph, node_id)
