"""Persistence of workflow graphs."""

from .repository import (
    duplicate_workflow,
    export_workflow,
    import_workflow,
    load_graph,
    save_graph,
)

__all__ = [
    "duplicate_workflow",
    "export_workflow",
    "import_workflow",
    "load_graph",
    "save_graph",
]
