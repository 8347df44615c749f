"""
HTTP API for the intake service.
"""
from .routes import events, health

__all__ = ["events", "health"]
