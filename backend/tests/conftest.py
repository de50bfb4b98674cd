from __future__ import annotations

import pathlib
import sys

import pytest
from sqlalchemy.pool import StaticPool

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_dependencies():
    from flowcanvas import Config, create_app
    from backend.flowcanvas.extensions import db
    from backend.flowcanvas.models.workflow import Workflow

    return Config, create_app, db, Workflow


ConfigBase, create_app, db, Workflow = _load_dependencies()


class TestConfig(ConfigBase):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }
    CORS_ALLOWED_ORIGINS = "http://localhost"
    IMPORT_RATE_LIMIT = "1000 per minute"


@pytest.fixture(scope="module")
def app():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def clean_database(app):
    db.session.query(Workflow).delete()
    db.session.commit()
    yield
    db.session.rollback()
    db.session.query(Workflow).delete()
    db.session.commit()


@pytest.fixture()
def create_workflow(app, clean_database):
    """Persist a workflow whose graph is built by the given store callback."""

    from backend.flowcanvas.graph.store import GraphStore
    from backend.flowcanvas.workflow.repository import encode_graph

    def factory(name: str = "Workflow", build=None) -> tuple[Workflow, GraphStore]:
        store = GraphStore(workflow_name=name)
        if build is not None:
            build(store)
        workflow = Workflow(name=name, graph_json=encode_graph(store.graph))
        db.session.add(workflow)
        db.session.commit()
        return workflow, store

    return factory
