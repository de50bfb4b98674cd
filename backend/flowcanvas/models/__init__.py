"""Database models for the flowcanvas backend."""

from .workflow import Workflow

__all__ = ["Workflow"]
