"""HTTP interface for the claim decision engine."""

from .app import app, get_processor

__all__ = ["app", "get_processor"]
