"""Workflow model definition."""

from __future__ import annotations

import uuid
from datetime import datetime

from ..extensions import db


def _new_id() -> str:
    return str(uuid.uuid4())


class Workflow(db.Model):
    """A stored workflow; ``graph_json`` holds the internal editable graph."""

    __tablename__ = "workflows"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(255), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    graph_json = db.Column(db.Text, nullable=False, default="{}")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Workflow {self.name!r}>"
