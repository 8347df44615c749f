"""
API routes module initialization.
"""
from . import events, health

__all__ = ["events", "health"]
