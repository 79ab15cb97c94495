# src/bts/engine/scheduler.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

import pydantic

from bts.domain.errors import NotFoundError, ValidationError
from bts.domain.models import ChallengeInfo, MediaBlob, Task, TaskCreate
from bts.domain.states import TaskPriority, TaskStatus, TaskType
from bts.logging import get_logger, short_id
from bts.storage import TaskRegistry

from .handlers import HandlerRegistry
from .recovery import dependencies_satisfied, fail_stalled_tasks
from .worker import CancelToken, TaskContext, Worker, now_ms

_LOG = get_logger(__name__)

TaskListener = Callable[[list[Task]], None]


@dataclass(frozen=True)
class SchedulerConfig:
    """
    Runtime config for the dispatch loop.
    """
    # Re-check interval for tasks waiting on dependencies (ms)
    sched_tick_ms: int = 1000

    # Max time a task may wait in QUEUED for its dependencies (ms)
    dependency_timeout_ms: int = 300_000

    @property
    def sched_tick_s(self) -> float:
        return self.sched_tick_ms / 1000.0


@dataclass
class _InFlight:
    token: CancelToken
    runner: asyncio.Task


class Scheduler:
    """
    Single-process background task scheduler.

    - enqueue() stores the task synchronously and wakes the dispatch loop
    - the loop claims QUEUED tasks whose dependencies are COMPLETED and runs
      their handler as an asyncio task
    - waiting tasks are re-checked every tick; stalled ones are failed

    Everything runs on one event loop; the registry is only changed from
    scheduler and worker code, never by handlers.
    """

    def __init__(
        self,
        handlers: HandlerRegistry,
        cfg: Optional[SchedulerConfig] = None,
        registry: Optional[TaskRegistry] = None,
    ) -> None:
        cfg = cfg or SchedulerConfig()
        if cfg.sched_tick_ms <= 0:
            raise ValueError("sched_tick_ms must be > 0")
        if cfg.dependency_timeout_ms <= 0:
            raise ValueError("dependency_timeout_ms must be > 0")

        self._cfg = cfg
        self._registry = registry if registry is not None else TaskRegistry()
        self._worker = Worker(self._registry, handlers, self._changed)

        self._in_flight: dict[str, _InFlight] = {}
        self._listeners: list[TaskListener] = []

        self._wake = asyncio.Event()
        self._stop = asyncio.Event()
        self._change = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None

    # -------------------------
    # Lifecycle
    # -------------------------

    def start(self) -> None:
        """
        Starts the dispatch loop on the running event loop.
        Safe to call once.
        """
        if self._loop_task and not self._loop_task.done():
            return

        _LOG.info(
            "Starting scheduler: tick_ms=%d dependency_timeout_ms=%d",
            self._cfg.sched_tick_ms,
            self._cfg.dependency_timeout_ms,
        )
        self._stop.clear()
        self._loop_task = asyncio.get_running_loop().create_task(self._run_loop(), name="bts-scheduler")

    async def stop(self, *, timeout_s: float = 5.0) -> None:
        """
        Stops the dispatch loop.

        Non-persistent in-flight tasks are cancelled. Persistent ones get
        timeout_s to finish before they are interrupted.
        """
        _LOG.info("Stopping scheduler...")
        self._stop.set()
        self._wake.set()

        if self._loop_task:
            await self._loop_task
            self._loop_task = None

        in_flight = list(self._in_flight.items())
        for task_id, _ in in_flight:
            self.cancel_task(task_id)

        # cancel_task() leaves persistent tasks in flight
        persistent = [f.runner for task_id, f in in_flight if task_id in self._in_flight]
        if persistent:
            _, pending = await asyncio.wait(persistent, timeout=timeout_s)
            for runner in pending:
                _LOG.warning("Interrupting persistent task %s at shutdown", runner.get_name())
                runner.cancel()

        if in_flight:
            await asyncio.gather(*(f.runner for _, f in in_flight), return_exceptions=True)
        _LOG.info("Scheduler stopped.")

    async def _run_loop(self) -> None:
        while not self._stop.is_set():
            try:
                if fail_stalled_tasks(
                    self._registry, now_ms(), dependency_timeout_ms=self._cfg.dependency_timeout_ms
                ):
                    self._changed()
                self._dispatch_ready()
            except Exception:
                _LOG.exception("Scheduler iteration failed (continuing).")

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._cfg.sched_tick_s)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()

    def _dispatch_ready(self) -> None:
        for task in self._registry.queued():
            if task.id in self._in_flight:
                continue
            if not dependencies_satisfied(self._registry, task):
                continue
            self._launch(task)

    def _launch(self, task: Task) -> None:
        token = CancelToken()
        claimed = self._registry.claim(task.id, now_ms())
        if claimed is None:
            return

        ctx = TaskContext(task_id=task.id, token=token, on_progress=self._report_progress)
        runner = asyncio.get_running_loop().create_task(
            self._worker.run(claimed, ctx), name=f"bts-task-{short_id(task.id)}"
        )
        self._in_flight[task.id] = _InFlight(token=token, runner=runner)
        runner.add_done_callback(self._on_runner_done(task.id, runner))
        _LOG.info("Dispatched task %s (%s, %s)", short_id(task.id), task.type.value, task.priority.value)
        self._changed()

    def _on_runner_done(self, task_id: str, runner: asyncio.Task):
        def _cb(_: asyncio.Task) -> None:
            current = self._in_flight.get(task_id)
            if current is not None and current.runner is runner:
                del self._in_flight[task_id]
            self._wake.set()

        return _cb

    # -------------------------
    # Enqueue
    # -------------------------

    def enqueue(self, spec: TaskCreate) -> str:
        """
        Admits a task in QUEUED state and returns its id. The task is visible
        to get_task() as soon as this returns.
        """
        task = self._registry.create(spec, now_ms())
        self._changed()
        return task.id

    def queue_task(
        self,
        task_type: TaskType,
        data: Any = None,
        *,
        dependencies: Iterable[str] = (),
        priority: TaskPriority = TaskPriority.MEDIUM,
        persistent: bool = False,
        task_id: Optional[str] = None,
    ) -> str:
        try:
            spec = TaskCreate(
                id=task_id,
                type=task_type,
                data=data,
                dependencies=list(dependencies),
                priority=priority,
                persistent=persistent,
            )
        except pydantic.ValidationError as e:
            raise ValidationError("Invalid task definition", details={"errors": e.errors()}) from e
        return self.enqueue(spec)

    def start_reward_generation(
        self,
        user_id: str,
        challenge: Optional[ChallengeInfo] = None,
        persistent: bool = True,
        *,
        dependencies: Iterable[str] = (),
    ) -> str:
        """Reward generation is persistent by default: a reward being minted must not be lost."""
        _LOG.info("Starting reward generation for user %s%s", user_id, " (persistent)" if persistent else "")
        return self.queue_task(
            TaskType.REWARD_GENERATION,
            {"user_id": user_id, "challenge": challenge or ChallengeInfo()},
            dependencies=dependencies,
            priority=TaskPriority.MEDIUM,
            persistent=persistent,
        )

    def start_model_preload(self) -> str:
        return self.queue_task(TaskType.MODEL_PRELOAD, {}, priority=TaskPriority.LOW)

    def start_verification(
        self,
        video: MediaBlob,
        photo: Optional[MediaBlob] = None,
        challenge: Optional[ChallengeInfo] = None,
        dependencies: Iterable[str] = (),
    ) -> str:
        """
        Queues a verification run. Without a photo an empty placeholder is
        used and the run can at best pass partially.
        """
        _LOG.info("Starting background verification (%s)", "with selfie" if photo else "video only")
        return self.queue_task(
            TaskType.VERIFICATION,
            {
                "video": video,
                "photo": photo or MediaBlob.empty(),
                "challenge": challenge or ChallengeInfo(),
            },
            dependencies=dependencies,
            priority=TaskPriority.HIGH,
        )

    # -------------------------
    # Read
    # -------------------------

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._registry.get(task_id)

    def require_task(self, task_id: str) -> Task:
        task = self._registry.get(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}", details={"id": task_id})
        return task

    def get_tasks_by_type(self, task_type: TaskType) -> list[Task]:
        return self._registry.list_tasks(task_type)

    def list_tasks(self) -> list[Task]:
        return self._registry.list_tasks()

    def is_task_completed(self, task_id: str) -> bool:
        task = self._registry.get(task_id)
        return task is not None and task.status == TaskStatus.COMPLETED

    def is_task_running(self, task_id: str) -> bool:
        task = self._registry.get(task_id)
        return task is not None and task.status == TaskStatus.RUNNING

    def get_task_progress(self, task_id: str) -> int:
        task = self._registry.get(task_id)
        return task.progress if task is not None else 0

    @property
    def overall_progress(self) -> float:
        return self._registry.overall_progress()

    @property
    def is_processing(self) -> bool:
        return self._registry.is_processing()

    async def wait_for(self, task_id: str, *, timeout_s: Optional[float] = None) -> Task:
        """
        Waits until the task reaches a terminal state and returns it.
        Raises NotFoundError if the task disappears (e.g. clear_all_tasks).
        """

        async def _wait() -> Task:
            while True:
                changed = self._change
                task = self.require_task(task_id)
                if task.is_terminal:
                    return task
                await changed.wait()

        return await asyncio.wait_for(_wait(), timeout=timeout_s)

    # -------------------------
    # Control
    # -------------------------

    def cancel_task(self, task_id: str) -> Optional[Task]:
        """
        Cancels a task unless it is persistent. Idempotent: finished tasks
        are left as they are. Returns the task as it stands afterwards.
        """
        task = self._registry.get(task_id)
        if task is None:
            return None
        if task.persistent:
            _LOG.info("Cancel blocked, task is persistent: %s %s", short_id(task_id), task.type.value)
            return task

        updated = self._registry.cancel(task_id, now_ms())
        self._interrupt(task_id)
        if updated is None:
            return task

        self._changed()
        return updated

    def clear_all_tasks(self) -> tuple[list[str], list[str]]:
        """
        Cancels and forgets every non-persistent task. Persistent tasks that
        are still QUEUED or RUNNING are kept untouched.
        """
        for task in self._registry.list_tasks():
            if not task.persistent:
                self._interrupt(task.id)

        removed, retained = self._registry.clear()
        self._changed()
        return removed, retained

    def _interrupt(self, task_id: str) -> None:
        in_flight = self._in_flight.pop(task_id, None)
        if in_flight is None:
            return
        in_flight.token.cancel()
        in_flight.runner.cancel()

    # -------------------------
    # Notifications
    # -------------------------

    def subscribe(self, listener: TaskListener) -> Callable[[], None]:
        """
        Registers a listener called with a full snapshot of all tasks after
        every change. Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _report_progress(self, task_id: str, progress: int) -> None:
        if self._registry.update_progress(task_id, progress) is not None:
            self._changed()

    def _changed(self) -> None:
        self._wake.set()

        # wake everyone waiting on the previous state
        self._change.set()
        self._change = asyncio.Event()

        if not self._listeners:
            return
        snapshot = self._registry.list_tasks()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                _LOG.exception("Task listener raised (continuing).")
