"""
Domain layer for BTS.

- states: task / step lifecycle enums and the task transition table
- models: Pydantic models for tasks, media and API input/output
- errors: domain-level exceptions
"""

from .states import (
    StepStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
    TERMINAL_STATES,
    validate_transition,
)
from .models import (
    ChallengeInfo,
    ClaimEligibility,
    ClearResponse,
    EnqueueResponse,
    ErrorResponse,
    MediaBlob,
    RewardGenerationRequest,
    Task,
    TaskCreate,
    TaskListResponse,
    TaskView,
)
from .errors import (
    BTSBaseError,
    ConflictError,
    CycleDetectedError,
    DependencyError,
    DependencyTimeoutError,
    ModelLoadError,
    NotFoundError,
    UnknownTaskTypeError,
    UpstreamServiceError,
    UpstreamTimeoutError,
    ValidationError,
)

__all__ = [
    "StepStatus",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
    "TERMINAL_STATES",
    "validate_transition",
    "ChallengeInfo",
    "ClaimEligibility",
    "ClearResponse",
    "EnqueueResponse",
    "ErrorResponse",
    "MediaBlob",
    "RewardGenerationRequest",
    "Task",
    "TaskCreate",
    "TaskListResponse",
    "TaskView",
    "BTSBaseError",
    "ConflictError",
    "CycleDetectedError",
    "DependencyError",
    "DependencyTimeoutError",
    "ModelLoadError",
    "NotFoundError",
    "UnknownTaskTypeError",
    "UpstreamServiceError",
    "UpstreamTimeoutError",
    "ValidationError",
]
