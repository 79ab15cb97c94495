# src/bts/domain/states.py
from __future__ import annotations

from enum import StrEnum


class TaskType(StrEnum):
    REWARD_GENERATION = "reward-generation"
    MODEL_PRELOAD = "model-preload"
    VERIFICATION = "verification"


class TaskPriority(StrEnum):
    """
    Advisory ordering hint. Ready tasks are dispatched high -> medium -> low,
    then oldest first; priority never holds a ready task back.
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {TaskPriority.HIGH: 0, TaskPriority.MEDIUM: 1, TaskPriority.LOW: 2}


class TaskStatus(StrEnum):
    """
    Task lifecycle.

      - QUEUED: admitted; waits here until every dependency is COMPLETED
      - RUNNING: claimed by the dispatch loop, handler in flight
      - COMPLETED: handler returned; result stored
      - FAILED: handler raised, or a dependency failed / timed out
      - CANCELLED: cancelled by a consumer (never for persistent tasks)
    """

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED})

VALID_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.QUEUED: frozenset({TaskStatus.RUNNING, TaskStatus.FAILED, TaskStatus.CANCELLED}),
    TaskStatus.RUNNING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    return to_status in VALID_TRANSITIONS[from_status]


class StepStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
