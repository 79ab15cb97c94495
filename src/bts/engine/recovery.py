# src/bts/engine/recovery.py
from __future__ import annotations

from typing import Optional

from bts.domain.errors import DependencyError, DependencyTimeoutError
from bts.domain.models import Task
from bts.domain.states import TaskStatus
from bts.logging import get_logger
from bts.storage import TaskRegistry

_LOG = get_logger(__name__)


def blocking_dependency(registry: TaskRegistry, task: Task) -> Optional[Task]:
    """
    Returns a dependency that can never complete (FAILED or CANCELLED), if any.
    """
    for dep_id in task.dependencies:
        dep = registry.get(dep_id)
        if dep is not None and dep.status in (TaskStatus.FAILED, TaskStatus.CANCELLED):
            return dep
    return None


def dependencies_satisfied(registry: TaskRegistry, task: Task) -> bool:
    for dep_id in task.dependencies:
        dep = registry.get(dep_id)
        if dep is None or dep.status != TaskStatus.COMPLETED:
            return False
    return True


def fail_stalled_tasks(registry: TaskRegistry, now_ms: int, *, dependency_timeout_ms: int) -> int:
    """
    Stall sweep over QUEUED tasks:
    - a dependency FAILED/CANCELLED => fail now, it will never complete
    - waited longer than dependency_timeout_ms => fail with a dependency timeout

    Returns number of tasks transitioned.
    """
    transitioned = 0
    for task in registry.queued():
        if not task.dependencies:
            continue

        blocker = blocking_dependency(registry, task)
        if blocker is not None:
            err = DependencyError(
                f"Dependency {blocker.id} {blocker.status.value}; task cannot run",
                details={"id": task.id, "dependency": blocker.id},
            )
            if registry.fail(task.id, str(err), now_ms, code=err.code) is not None:
                transitioned += 1
            continue

        if dependencies_satisfied(registry, task):
            continue

        if now_ms - task.created_at >= dependency_timeout_ms:
            err = DependencyTimeoutError(
                f"Dependency timeout: still waiting after {dependency_timeout_ms}ms",
                details={"id": task.id, "dependencies": list(task.dependencies)},
            )
            if registry.fail(task.id, str(err), now_ms, code=err.code) is not None:
                transitioned += 1

    if transitioned:
        _LOG.info("Stall sweep failed %d queued task(s).", transitioned)
    return transitioned

