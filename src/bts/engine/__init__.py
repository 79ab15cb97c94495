# src/bts/engine/__init__.py
"""
Execution engine for BTS.

- scheduler: queue, dependency gating, dispatch loop, cancellation
- worker: runs one task's handler and commits the outcome
- handlers: per-type task handlers
- recovery: stall sweep for tasks stuck on dependencies
"""

from .handlers import (
    HandlerRegistry,
    ModelPreloadHandler,
    RewardGenerationHandler,
    VerificationHandler,
    build_handlers,
)
from .scheduler import Scheduler, SchedulerConfig
from .worker import CancelToken, TaskContext

__all__ = [
    "HandlerRegistry",
    "ModelPreloadHandler",
    "RewardGenerationHandler",
    "VerificationHandler",
    "build_handlers",
    "Scheduler",
    "SchedulerConfig",
    "CancelToken",
    "TaskContext",
]
