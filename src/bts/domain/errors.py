# src/bts/domain/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class BTSBaseError(Exception):
    """
    Base domain error.

    The API layer maps these to HTTP responses; the dispatch loop stores
    ``str(err)`` on failed tasks.
    """
    message: str
    code: str = "BTS_ERROR"
    details: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message


@dataclass
class ValidationError(BTSBaseError):
    code: str = "VALIDATION_ERROR"


@dataclass
class NotFoundError(BTSBaseError):
    code: str = "NOT_FOUND"


@dataclass
class ConflictError(BTSBaseError):
    code: str = "CONFLICT"


@dataclass
class DependencyError(BTSBaseError):
    code: str = "DEPENDENCY_ERROR"


@dataclass
class DependencyTimeoutError(BTSBaseError):
    code: str = "DEPENDENCY_TIMEOUT"


@dataclass
class CycleDetectedError(BTSBaseError):
    code: str = "CYCLE_DETECTED"


@dataclass
class UnknownTaskTypeError(BTSBaseError):
    code: str = "UNKNOWN_TASK_TYPE"


@dataclass
class ModelLoadError(BTSBaseError):
    code: str = "MODEL_LOAD_FAILED"


@dataclass
class UpstreamServiceError(BTSBaseError):
    """A collaborator (generation / judgment service) answered with an error."""
    code: str = "UPSTREAM_ERROR"


@dataclass
class UpstreamTimeoutError(BTSBaseError):
    """
    The collaborator was too busy to answer. Consumers offer "try again"
    instead of treating the content as rejected.
    """
    code: str = "UPSTREAM_TIMEOUT"
