"""Explicit transition table for task statuses. Pairs not listed are rejected."""

from __future__ import annotations

from ..core.enums import TaskStatus
from ..core.exceptions import InvalidTransition

TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.NOT_STARTED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.PENDING_REVIEW, TaskStatus.PAUSED, TaskStatus.CANCELLED}),
    TaskStatus.PENDING_REVIEW: frozenset(
        {TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS, TaskStatus.PAUSED, TaskStatus.CANCELLED}
    ),
    TaskStatus.PAUSED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}

TERMINAL = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})
CLAIMABLE = frozenset({TaskStatus.NOT_STARTED, TaskStatus.IN_PROGRESS})


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: TaskStatus, target: TaskStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move task from {current.value} to {target.value}",
            current=current,
            target=target,
        )
