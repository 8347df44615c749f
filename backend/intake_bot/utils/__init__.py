"""
Shared helpers.
"""
from .best_effort import StepResult, best_effort
from .tasks import TaskTracker

__all__ = ['StepResult', 'best_effort', 'TaskTracker']
