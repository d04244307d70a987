"""HTTP API layer -- FastAPI app factory and JSON routes."""

from gifter.api.app import create_app

__all__ = ["create_app"]
