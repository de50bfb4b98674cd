"""Workflow graph core: model, validation, conversion and editing."""

from .converter import ExternalSchemaError, from_external, to_external
from .model import Edge, Graph, Node, NodeKind, Position
from .store import GraphStore
from .upstream import incoming_chain
from .validator import ValidationResult, can_connect, validate

__all__ = [
    "Edge",
    "ExternalSchemaError",
    "Graph",
    "GraphStore",
    "Node",
    "NodeKind",
    "Position",
    "ValidationResult",
    "can_connect",
    "from_external",
    "incoming_chain",
    "to_external",
    "validate",
]
