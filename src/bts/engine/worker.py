# src/bts/engine/worker.py
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from bts.domain.errors import BTSBaseError, UnknownTaskTypeError
from bts.domain.models import Task
from bts.logging import get_logger, short_id
from bts.storage import TaskRegistry

from .handlers import HandlerRegistry

_LOG = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class CancelToken:
    """
    Cooperative cancellation flag handed to every handler.

    Handlers call `raise_if_cancelled()` after each await; the scheduler also
    cancels the handler's asyncio task, so pending awaits are interrupted.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError()


@dataclass
class TaskContext:
    """What a handler gets besides its task: a token and a progress sink."""
    task_id: str
    token: CancelToken = field(default_factory=CancelToken)
    on_progress: Optional[Callable[[str, int], None]] = None

    def report_progress(self, progress: int) -> None:
        if self.token.cancelled or self.on_progress is None:
            return
        self.on_progress(self.task_id, progress)

    def checkpoint(self) -> None:
        self.token.raise_if_cancelled()


class Worker:
    """
    Executes a single claimed task and commits the outcome to the registry.

    This is the dispatch boundary: handler exceptions are turned into FAILED
    with a readable error, cancellation leaves the state alone (the scheduler
    already marked the task CANCELLED).
    """

    def __init__(
        self,
        registry: TaskRegistry,
        handlers: HandlerRegistry,
        on_change: Callable[[], None],
    ) -> None:
        self._registry = registry
        self._handlers = handlers
        self._on_change = on_change

    async def run(self, task: Task, ctx: TaskContext) -> None:
        start = now_ms()
        _LOG.info("Running task %s (%s)", short_id(task.id), task.type.value)

        try:
            handler = self._handlers.get(task.type)
            if handler is None:
                raise UnknownTaskTypeError(
                    f"Unknown task type: {task.type.value}",
                    details={"type": task.type.value},
                )
            # handlers get their own copy of the payload
            result = await handler(task.model_copy(deep=True), ctx)
            # cancelled after the last await: the result is discarded
            ctx.checkpoint()
        except asyncio.CancelledError:
            _LOG.info("Task %s stopped after cancellation", short_id(task.id))
            return
        except BTSBaseError as e:
            self._mark_failed(task.id, str(e), code=e.code)
            return
        except Exception as e:
            _LOG.exception("Task %s handler raised", short_id(task.id))
            self._mark_failed(task.id, str(e) or repr(e), code=None)
            return

        self._mark_completed(task.id, result)
        _LOG.info("Completed task %s in %dms", short_id(task.id), now_ms() - start)

    def _mark_completed(self, task_id: str, result: Any) -> None:
        if self._registry.complete(task_id, result, now_ms()) is not None:
            self._on_change()

    def _mark_failed(self, task_id: str, error: str, *, code: Optional[str]) -> None:
        if self._registry.fail(task_id, error, now_ms(), code=code) is not None:
            self._on_change()
