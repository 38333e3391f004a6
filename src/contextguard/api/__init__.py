"""REST API for ContextGuard."""

from .app import create_app

__all__ = ["create_app"]
