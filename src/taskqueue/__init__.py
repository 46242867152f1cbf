"""Provide the public `taskqueue` package exports."""

from __future__ import annotations

__version__ = "0.1.0"

from .errors import TaskQueueError
from .task_engine.engine import TaskManager

__all__ = ["TaskManager", "TaskQueueError", "__version__"]
