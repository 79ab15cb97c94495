# src/bts/storage/registry.py
from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from bts.domain.errors import ConflictError, CycleDetectedError
from bts.domain.models import Task, TaskCreate
from bts.domain.states import TaskStatus, TaskType, validate_transition
from bts.logging import get_logger, short_id

_LOG = get_logger(__name__)


def new_task_id(now_ms: int) -> str:
    return f"task_{now_ms}_{uuid.uuid4().hex[:9]}"


@dataclass
class TaskRegistry:
    """
    In-memory task collection and the only place task state changes.

    Important invariants:
    - Tasks are created QUEUED and only move along VALID_TRANSITIONS.
    - A terminal task ignores every further transition attempt (the method
      returns None instead of raising).
    - Snapshots are immutable; every change stores a new Task. The payload
      is copied on the way in, so callers keep no handle on it.
    - Dependency edges never form a cycle (checked at creation).
    """
    _tasks: dict[str, Task] = field(default_factory=dict)

    # -------------------------
    # Read operations
    # -------------------------

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def list_tasks(self, task_type: Optional[TaskType] = None) -> list[Task]:
        tasks = sorted(self._tasks.values(), key=lambda t: t.created_at)
        if task_type is None:
            return tasks
        return [t for t in tasks if t.type == task_type]

    def queued(self) -> list[Task]:
        """QUEUED tasks in dispatch order: priority first, then oldest first."""
        tasks = [t for t in self._tasks.values() if t.status == TaskStatus.QUEUED]
        tasks.sort(key=lambda t: (t.priority.rank, t.created_at))
        return tasks

    def overall_progress(self) -> float:
        """Share of known tasks that are COMPLETED, in percent."""
        if not self._tasks:
            return 0.0
        completed = sum(1 for t in self._tasks.values() if t.status == TaskStatus.COMPLETED)
        return completed / len(self._tasks) * 100

    def is_processing(self) -> bool:
        return any(t.status in (TaskStatus.QUEUED, TaskStatus.RUNNING) for t in self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    # -------------------------
    # Write operations
    # -------------------------

    def create(self, spec: TaskCreate, now_ms: int) -> Task:
        """
        Inserts a QUEUED task.

        Behavior:
        - Reject if a caller-supplied id exists
        - Reject if the dependencies would close a cycle
        - Unknown dependency ids are allowed; the task waits for them
        """
        task_id = spec.id or new_task_id(now_ms)
        if task_id in self._tasks:
            raise ConflictError(f"Task already exists: {task_id}", details={"id": task_id})

        if task_id in spec.dependencies:
            raise CycleDetectedError(
                f"Task {task_id} cannot depend on itself",
                details={"id": task_id, "dependencies": list(spec.dependencies)},
            )
        if self._would_create_cycle(task_id, spec.dependencies):
            raise CycleDetectedError(
                f"Adding dependencies would create a cycle for task {task_id}",
                details={"id": task_id, "dependencies": list(spec.dependencies)},
            )

        task = Task(
            id=task_id,
            type=spec.type,
            status=TaskStatus.QUEUED,
            progress=0,
            data=copy.deepcopy(spec.data),
            dependencies=list(spec.dependencies),
            priority=spec.priority,
            persistent=spec.persistent,
            created_at=now_ms,
        )
        self._tasks[task_id] = task
        _LOG.info(
            "Task queued: %s %s%s",
            short_id(task_id),
            task.type.value,
            " (persistent)" if task.persistent else "",
        )
        return task

    def claim(self, task_id: str, now_ms: int) -> Optional[Task]:
        return self._transition(task_id, TaskStatus.RUNNING, started_at=now_ms)

    def update_progress(self, task_id: str, progress: int) -> Optional[Task]:
        """
        Raises progress of a RUNNING task. Lower values are ignored so progress
        never moves backwards.
        """
        task = self._tasks.get(task_id)
        if task is None or task.status != TaskStatus.RUNNING:
            return None
        progress = max(0, min(100, int(progress)))
        if progress <= task.progress:
            return None
        updated = task.model_copy(update={"progress": progress})
        self._tasks[task_id] = updated
        return updated

    def complete(self, task_id: str, result: Any, now_ms: int) -> Optional[Task]:
        task = self._transition(
            task_id,
            TaskStatus.COMPLETED,
            progress=100,
            result=result,
            completed_at=now_ms,
        )
        if task is not None:
            _LOG.info("Task completed: %s %s", short_id(task_id), task.type.value)
        return task

    def fail(self, task_id: str, error: str, now_ms: int, *, code: Optional[str] = None) -> Optional[Task]:
        task = self._transition(
            task_id,
            TaskStatus.FAILED,
            error=error,
            error_code=code,
            completed_at=now_ms,
        )
        if task is not None:
            _LOG.info("Task failed: %s %s", short_id(task_id), error)
        return task

    def cancel(self, task_id: str, now_ms: int) -> Optional[Task]:
        """
        Moves a non-persistent, non-terminal task to CANCELLED.
        Persistent tasks are refused and left untouched.
        """
        task = self._tasks.get(task_id)
        if task is None:
            return None
        if task.persistent:
            _LOG.info("Cancel refused, task is persistent: %s %s", short_id(task_id), task.type.value)
            return None
        updated = self._transition(task_id, TaskStatus.CANCELLED, completed_at=now_ms)
        if updated is not None:
            _LOG.info("Task cancelled: %s %s", short_id(task_id), task.type.value)
        return updated

    def clear(self) -> tuple[list[str], list[str]]:
        """
        Drops every task except persistent tasks that are still QUEUED or
        RUNNING. Returns (removed_ids, retained_ids).
        """
        removed: list[str] = []
        retained: list[str] = []
        for task_id, task in list(self._tasks.items()):
            if task.persistent and not task.is_terminal:
                retained.append(task_id)
            else:
                removed.append(task_id)
                del self._tasks[task_id]
        _LOG.info("Cleared %d task(s), keeping %d persistent task(s)", len(removed), len(retained))
        return removed, retained

    # -------------------------
    # Helpers
    # -------------------------

    def _transition(self, task_id: str, to_status: TaskStatus, **fields: Any) -> Optional[Task]:
        task = self._tasks.get(task_id)
        if task is None:
            return None
        if not validate_transition(task.status, to_status):
            _LOG.debug(
                "Ignoring transition %s -> %s for task %s",
                task.status.value,
                to_status.value,
                short_id(task_id),
            )
            return None
        updated = task.model_copy(update={"status": to_status, **fields})
        self._tasks[task_id] = updated
        return updated

    def _would_create_cycle(self, new_task_id: str, dep_ids: Sequence[str]) -> bool:
        """
        Adding edges new_task_id -> dep_ids creates a cycle iff new_task_id is
        reachable from any dep by following existing task -> dependency edges.
        Unknown ids have no outgoing edges yet.
        """
        seen: set[str] = set()
        stack: list[str] = list(dep_ids)
        while stack:
            node = stack.pop()
            if node == new_task_id:
                return True
            if node in seen:
                continue
            seen.add(node)
            task = self._tasks.get(node)
            if task is not None:
                stack.extend(task.dependencies)
        return False
