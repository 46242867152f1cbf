"""Project/task lifecycle engine.

This package provides the project/task model, the status transition table,
the file-backed store and :class:`~.engine.TaskManager`, which enforces the
lifecycle on top of them.
"""
