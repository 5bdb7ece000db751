"""HTTP API for the workflow engine."""

from .routes import router

__all__ = ["router"]
