"""Structural validation of workflow graphs.

Every check runs on every call so a single pass reports all problems. The
validator never raises; an invalid graph is an ordinary, editable state.
"""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any

from .model import Graph, NodeKind, parse_branch_slot


@dataclass
class ValidationResult:
    ok: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "errors": list(self.errors)}


def validate(graph: Graph) -> ValidationResult:
    """Check *graph* against the workflow invariants."""

    errors: list[str] = []

    triggers = graph.trigger_nodes()
    if not triggers:
        errors.append("Workflow must have exactly one trigger")
    elif len(triggers) > 1:
        errors.append("Workflow can only have one trigger")
    elif triggers[0].id != graph.start_node_id:
        errors.append("Start node does not match the trigger")

    if graph.start_node_id:
        reachable = reachable_from(graph, graph.start_node_id)
        for node in graph.nodes:
            if node.id != graph.start_node_id and node.id not in reachable:
                errors.append(f'Node "{node.name}" is not reachable from trigger')

    trigger_ids = {node.id for node in triggers}
    if any(edge.target in trigger_ids for edge in graph.edges):
        errors.append("Triggers cannot have incoming connections")

    for node in graph.nodes:
        if not node.kind.is_branch:
            continue
        slots = {edge.branch_slot for edge in graph.outgoing_edges(node.id)}
        if 0 not in slots:
            errors.append(f'IF node "{node.name}" missing TRUE output')
        if 1 not in slots:
            errors.append(f'IF node "{node.name}" missing FALSE output')

    if has_cycle(graph):
        errors.append("Workflow contains cycles (loops are not allowed)")

    names = Counter(node.name for node in graph.nodes)
    for name, count in names.items():
        if count > 1:
            errors.append(f'Node name "{name}" is used by more than one node')

    return ValidationResult(ok=not errors, errors=errors)


def _adjacency(graph: Graph) -> dict[str, list[str]]:
    adjacency: dict[str, list[str]] = {}
    for edge in graph.edges:
        adjacency.setdefault(edge.source, []).append(edge.target)
    return adjacency


def reachable_from(graph: Graph, start_id: str) -> set[str]:
    """Return the ids reachable from *start_id* (inclusive) by breadth-first search."""

    adjacency = _adjacency(graph)
    visited: set[str] = set()
    queue = deque([start_id])
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        for target in adjacency.get(current, []):
            if target not in visited:
                queue.append(target)
    return visited


def has_cycle(graph: Graph) -> bool:
    """Detect a directed cycle using an iterative depth-first search."""

    adjacency = _adjacency(graph)
    visited: set[str] = set()
    on_stack: set[str] = set()

    for root in [node.id for node in graph.nodes]:
        if root in visited:
            continue
        visited.add(root)
        on_stack.add(root)
        stack = [(root, iter(adjacency.get(root, [])))]
        while stack:
            current, targets = stack[-1]
            advanced = False
            for target in targets:
                if target in on_stack:
                    return True
                if target not in visited:
                    visited.add(target)
                    on_stack.add(target)
                    stack.append((target, iter(adjacency.get(target, []))))
                    advanced = True
                    break
            if not advanced:
                stack.pop()
                on_stack.discard(current)
    return False


def would_create_cycle(graph: Graph, source_id: str, target_id: str) -> bool:
    """Return whether adding ``source -> target`` would close a loop."""
    return source_id in reachable_from(graph, target_id)


def can_add_trigger(graph: Graph, kind: NodeKind) -> bool:
    """A trigger may only be added while the graph has none."""
    return not (kind.is_trigger and graph.trigger_nodes())


def can_connect(
    graph: Graph, source_id: str, target_id: str, branch_slot: Any = None
) -> bool:
    """Connection guard consulted before :meth:`GraphStore.connect`."""

    source = graph.get_node(source_id)
    target = graph.get_node(target_id)
    if source is None or target is None:
        return False
    if target.kind.is_trigger:
        return False
    if source.kind.is_branch and parse_branch_slot(branch_slot) is None:
        return False
    return not would_create_cycle(graph, source_id, target_id)
