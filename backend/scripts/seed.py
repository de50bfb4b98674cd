"""Seed the database with an example workflow."""
from __future__ import annotations

import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.flowcanvas import create_app
from backend.flowcanvas.extensions import db
from backend.flowcanvas.graph.model import NodeKind
from backend.flowcanvas.graph.store import GraphStore
from backend.flowcanvas.graph.validator import validate
from backend.flowcanvas.models.workflow import Workflow
from backend.flowcanvas.workflow.repository import encode_graph

EXAMPLE_WORKFLOW_NAME = "Form Triage Flow"


def _example_store() -> GraphStore:
    """Build form trigger -> IF -> (telegram | email) with an LLM summary on the true branch."""

    store = GraphStore(workflow_name=EXAMPLE_WORKFLOW_NAME)
    trigger = store.add_trigger(NodeKind.FORM)
    branch = store.add_if()
    summary = store.add_action(NodeKind.LLM)
    notify = store.add_action(NodeKind.TELEGRAM)
    fallback = store.add_action(NodeKind.EMAIL)

    store.update_node(trigger.id, {"formTitle": "Support request"})
    store.update_node(summary.id, {"prompt": "Summarise the request in one sentence."})
    store.update_node(fallback.id, {"subject": "New support request"})

    store.connect(trigger.id, branch.id)
    store.connect(branch.id, summary.id, 0)
    store.connect(summary.id, notify.id)
    store.connect(branch.id, fallback.id, 1)
    return store


def _ensure_example_workflow() -> tuple[bool, bool]:
    store = _example_store()
    result = validate(store.graph)
    if not result.ok:
        raise RuntimeError("Example workflow is invalid: " + "; ".join(result.errors))

    graph_json = encode_graph(store.graph)
    workflow = Workflow.query.filter_by(name=EXAMPLE_WORKFLOW_NAME).first()
    if workflow is None:
        db.session.add(
            Workflow(
                name=EXAMPLE_WORKFLOW_NAME,
                description="Example workflow created by the seed script",
                graph_json=graph_json,
            )
        )
        return True, False

    workflow.graph_json = graph_json
    return False, True


def main() -> None:
    app = create_app()
    with app.app_context():
        created, updated = _ensure_example_workflow()
        db.session.commit()

        print(
            "Seed completed",
            f"workflows created={int(created)}",
            f"workflows updated={int(updated)}",
        )


if __name__ == "__main__":
    main()
