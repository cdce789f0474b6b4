"""REST API for forecast generation."""

from .server import create_app

__all__ = ["create_app"]
