from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .states import TERMINAL_STATES, TaskPriority, TaskStatus, TaskType


TaskId = Annotated[str, Field(min_length=1, max_length=256)]


class MediaBlob(BaseModel):
    """
    An in-memory media payload (recorded video, selfie photo).

    An empty blob is the conventional stand-in for media that has not been
    captured yet.
    """
    model_config = ConfigDict(frozen=True)

    content: bytes = b""
    content_type: str = ""

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def empty(cls) -> "MediaBlob":
        return cls()

    def summary(self) -> dict[str, Any]:
        return {"content_type": self.content_type, "size": self.size}


class ChallengeInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = "Challenge"
    description: str = "Complete this challenge"


class TaskCreate(BaseModel):
    """
    Input for Scheduler.enqueue.

    `id` is normally left empty and assigned at enqueue time. Callers may
    supply one to reference a task from dependencies before it is enqueued.
    """
    model_config = ConfigDict(extra="forbid")

    id: Optional[TaskId] = None
    type: TaskType
    data: Any = None
    dependencies: list[TaskId] = Field(default_factory=list)
    priority: TaskPriority = TaskPriority.MEDIUM
    persistent: bool = False

    @field_validator("dependencies")
    @classmethod
    def _validate_dependencies(cls, deps: list[str], info) -> list[str]:
        if len(deps) != len(set(deps)):
            raise ValueError("dependencies must not contain duplicates")

        task_id = info.data.get("id")
        if task_id and task_id in deps:
            raise ValueError("task cannot depend on itself")

        return deps


class Task(BaseModel):
    """
    Immutable snapshot of a scheduled task.

    Only the TaskRegistry produces new snapshots; everything else reads them.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    type: TaskType
    status: TaskStatus = TaskStatus.QUEUED
    progress: int = 0

    data: Any = None
    result: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    dependencies: list[str] = Field(default_factory=list)
    priority: TaskPriority = TaskPriority.MEDIUM
    persistent: bool = False

    created_at: int
    started_at: Optional[int] = None
    completed_at: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES


def summarize_data(data: Any) -> Any:
    """JSON-friendly view of task input: media is reduced to type and size."""
    if isinstance(data, MediaBlob):
        return data.summary()
    if isinstance(data, BaseModel):
        return summarize_data(dict(data))
    if isinstance(data, dict):
        return {k: summarize_data(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [summarize_data(v) for v in data]
    if isinstance(data, bytes):
        return {"size": len(data)}
    return data


class TaskView(BaseModel):
    """
    API output model for a single task.
    """
    model_config = ConfigDict(extra="forbid")

    id: str
    type: TaskType
    status: TaskStatus
    progress: int

    data: Any = None
    result: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    dependencies: list[str] = Field(default_factory=list)
    priority: TaskPriority
    persistent: bool

    created_at: int
    started_at: Optional[int] = None
    completed_at: Optional[int] = None

    @classmethod
    def from_task(cls, task: Task) -> "TaskView":
        return cls(
            id=task.id,
            type=task.type,
            status=task.status,
            progress=task.progress,
            data=summarize_data(task.data),
            result=task.result,
            error=task.error,
            error_code=task.error_code,
            dependencies=list(task.dependencies),
            priority=task.priority,
            persistent=task.persistent,
            created_at=task.created_at,
            started_at=task.started_at,
            completed_at=task.completed_at,
        )


class TaskListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tasks: list[TaskView]
    total: int
    overall_progress: float
    is_processing: bool


class EnqueueResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str


class ClearResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    removed: list[str]
    retained: list[str]


class RewardGenerationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: Annotated[str, Field(min_length=1, max_length=256)]
    challenge: ChallengeInfo = Field(default_factory=ChallengeInfo)
    persistent: bool = True
    dependencies: list[TaskId] = Field(default_factory=list)


class ClaimEligibility(BaseModel):
    model_config = ConfigDict(extra="forbid")

    eligible: bool
    reason: str


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str
    code: str
    details: dict = Field(default_factory=dict)
