# tests/test_recovery.py
from bts.domain.models import TaskCreate
from bts.domain.states import TaskStatus, TaskType
from bts.engine.recovery import blocking_dependency, dependencies_satisfied, fail_stalled_tasks
from bts.storage import TaskRegistry


def _add(reg: TaskRegistry, task_id: str, deps=(), now_ms: int = 0):
    return reg.create(TaskCreate(id=task_id, type=TaskType.MODEL_PRELOAD, dependencies=list(deps)), now_ms=now_ms)


def test_sweep_leaves_fresh_waiting_tasks_alone():
    reg = TaskRegistry()
    _add(reg, "B", deps=["A"], now_ms=0)

    assert fail_stalled_tasks(reg, now_ms=999, dependency_timeout_ms=1000) == 0
    assert reg.get("B").status == TaskStatus.QUEUED


def test_sweep_times_out_long_waits():
    reg = TaskRegistry()
    _add(reg, "B", deps=["A"], now_ms=0)

    assert fail_stalled_tasks(reg, now_ms=1000, dependency_timeout_ms=1000) == 1
    b = reg.get("B")
    assert b.status == TaskStatus.FAILED
    assert b.error_code == "DEPENDENCY_TIMEOUT"
    assert b.completed_at == 1000


def test_sweep_fails_dependents_of_cancelled_task():
    reg = TaskRegistry()
    _add(reg, "A")
    _add(reg, "B", deps=["A"])
    reg.cancel("A", now_ms=5)

    assert blocking_dependency(reg, reg.get("B")).id == "A"
    assert fail_stalled_tasks(reg, now_ms=6, dependency_timeout_ms=10_000) == 1

    b = reg.get("B")
    assert b.status == TaskStatus.FAILED
    assert b.error_code == "DEPENDENCY_ERROR"
    assert "A cancelled" in b.error


def test_sweep_ignores_satisfied_and_independent_tasks():
    reg = TaskRegistry()
    _add(reg, "A")
    _add(reg, "B", deps=["A"])
    _add(reg, "C")
    reg.claim("A", now_ms=1)
    reg.complete("A", None, now_ms=2)

    assert dependencies_satisfied(reg, reg.get("B"))
    assert fail_stalled_tasks(reg, now_ms=10**9, dependency_timeout_ms=1) == 0
    assert reg.get("B").status == TaskStatus.QUEUED
    assert reg.get("C").status == TaskStatus.QUEUED
