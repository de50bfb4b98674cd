"""Resolve the upstream (ancestor) chain of a node."""

from __future__ import annotations

from collections import deque

from .model import Graph, Node


def incoming_chain(graph: Graph, node_id: str) -> list[Node]:
    """Return every ancestor of *node_id* in discovery order.

    The graph may be invalid (even cyclic); the visited set guarantees
    termination. Unknown ids yield an empty list.
    """

    if graph.get_node(node_id) is None:
        return []

    nodes = {node.id: node for node in graph.nodes}
    visited = {node_id}
    chain: list[Node] = []
    pending = deque([node_id])
    while pending:
        current = pending.popleft()
        for source_id in (edge.source for edge in graph.incoming_edges(current)):
            if source_id in visited or source_id not in nodes:
                continue
            visited.add(source_id)
            chain.append(nodes[source_id])
            pending.append(source_id)
    return chain
