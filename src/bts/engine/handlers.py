# src/bts/engine/handlers.py
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Optional

from bts.clients import HttpChallengeJudge, RewardGenerationClient
from bts.detection import DetectionModels, OpenCVPresenceDetector, shared_models
from bts.domain.errors import BTSBaseError, ModelLoadError, ValidationError
from bts.domain.models import ChallengeInfo, MediaBlob, Task
from bts.domain.states import TaskType
from bts.logging import get_logger, short_id
from bts.verification import (
    ChallengeJudge,
    PresenceDetector,
    VerificationPipeline,
    WeightedProgress,
)
from bts.verification.models import VerificationStep

if TYPE_CHECKING:
    import httpx

    from bts.config import Settings

    from .worker import TaskContext

_LOG = get_logger(__name__)

Handler = Callable[[Task, "TaskContext"], Awaitable[Any]]


class HandlerRegistry:
    """Task-type -> handler lookup used by the worker."""

    def __init__(self, handlers: Optional[Mapping[TaskType, Handler]] = None) -> None:
        self._handlers: dict[TaskType, Handler] = dict(handlers or {})

    def register(self, task_type: TaskType, handler: Handler) -> None:
        self._handlers[task_type] = handler

    def get(self, task_type: TaskType) -> Optional[Handler]:
        return self._handlers.get(task_type)

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._handlers


class RewardGenerationHandler:
    """
    Asks the generation service for a reward item.

    data: {"user_id": str, "challenge": ChallengeInfo}
    """

    def __init__(self, client: RewardGenerationClient) -> None:
        self._client = client

    async def __call__(self, task: Task, ctx: "TaskContext") -> Any:
        data = task.data or {}
        user_id = data.get("user_id")
        if not user_id:
            raise ValidationError("reward-generation task requires a user_id")
        challenge = data.get("challenge") or ChallengeInfo()

        _LOG.info("Starting reward generation for user %s (task %s)", user_id, short_id(task.id))
        ctx.report_progress(5)

        result = await self._client.generate(user_id, challenge)
        ctx.checkpoint()
        ctx.report_progress(90)

        _LOG.info("Reward generated: %s (%s)", result.template_name, result.rarity)
        return result


class ModelPreloadHandler:
    """Loads the detection models; cheap once they are loaded."""

    def __init__(self, models: DetectionModels) -> None:
        self._models = models

    async def __call__(self, task: Task, ctx: "TaskContext") -> Any:
        ctx.report_progress(10)
        already_loaded = self._models.is_loaded
        if not already_loaded:
            try:
                await asyncio.to_thread(self._models.load)
            except BTSBaseError:
                raise
            except Exception as e:
                raise ModelLoadError(f"Model preload failed: {e}") from e
        ctx.checkpoint()
        ctx.report_progress(80)

        return {
            "models_loaded": True,
            "already_loaded": already_loaded,
            "loaded_at": self._models.loaded_at,
        }


class VerificationHandler:
    """
    Runs the verification pipeline and folds its per-step progress into the
    task's single progress value.

    data: {"video": MediaBlob, "photo": MediaBlob, "challenge": ChallengeInfo}

    A verdict of "not passed" is still a completed task; the verdict lives in
    the VerificationResult.
    """

    def __init__(
        self,
        detector: PresenceDetector,
        judge: ChallengeJudge,
    ) -> None:
        self._detector = detector
        self._judge = judge

    async def __call__(self, task: Task, ctx: "TaskContext") -> Any:
        data = task.data or {}
        video = data.get("video")
        if not isinstance(video, MediaBlob):
            raise ValidationError("verification task requires a video MediaBlob")
        photo = data.get("photo") or MediaBlob.empty()
        challenge = data.get("challenge") or ChallengeInfo()

        progress = WeightedProgress()

        def on_progress(steps: list[VerificationStep]) -> None:
            # 100 is reserved for the COMPLETED transition
            ctx.report_progress(min(progress.update(steps), 99))

        ctx.report_progress(1)
        pipeline = VerificationPipeline(self._detector, self._judge, on_progress=on_progress)
        result = await pipeline.run_full_verification(video, photo, challenge.description)
        ctx.checkpoint()

        _LOG.info(
            "Verification for task %s finished: passed=%s partial=%s",
            short_id(task.id),
            result.passed,
            result.is_partial,
        )
        return result


def build_handlers(
    settings: "Settings",
    *,
    http_client: Optional["httpx.AsyncClient"] = None,
    models: Optional[DetectionModels] = None,
) -> HandlerRegistry:
    """Default handlers wired to the configured upstream services."""
    models = models or shared_models()
    generation = RewardGenerationClient(
        settings.generation_url, timeout_s=settings.http_timeout_s, client=http_client
    )
    judge = HttpChallengeJudge(settings.judgment_url, timeout_s=settings.http_timeout_s, client=http_client)
    detector = OpenCVPresenceDetector(models)

    return HandlerRegistry(
        {
            TaskType.REWARD_GENERATION: RewardGenerationHandler(generation),
            TaskType.MODEL_PRELOAD: ModelPreloadHandler(models),
            TaskType.VERIFICATION: VerificationHandler(detector, judge),
        }
    )
