"""Legal task status moves."""

from __future__ import annotations

from ..errors import InvalidStatusTransition
from .model import TaskStatus


VALID_STATUS_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.NOT_STARTED: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.DONE, TaskStatus.NOT_STARTED}),
    TaskStatus.DONE: frozenset({TaskStatus.IN_PROGRESS}),
}


def allowed_targets(current: TaskStatus) -> list[TaskStatus]:
    return sorted(VALID_STATUS_TRANSITIONS.get(current, frozenset()), key=lambda s: s.value)


def is_valid_transition(current: TaskStatus, requested: TaskStatus) -> bool:
    return requested in VALID_STATUS_TRANSITIONS.get(current, frozenset())


def validate_transition(current: TaskStatus, requested: TaskStatus) -> None:
    """Raise :class:`InvalidStatusTransition` unless *current* -> *requested* is an edge."""
    if is_valid_transition(current, requested):
        return
    valid = [s.value for s in allowed_targets(current)]
    raise InvalidStatusTransition(
        f"Invalid status transition from '{current.value}' to '{requested.value}'. "
        f"Valid targets: {valid}",
        details={"from": current.value, "to": requested.value, "valid": valid},
    )
