# tests/fakes.py
"""Stand-ins for the upstream collaborators and slow handlers."""
from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx

from bts.clients import RewardGenerationClient
from bts.detection import DetectionModels
from bts.domain.models import MediaBlob, Task
from bts.domain.states import TaskType
from bts.engine import HandlerRegistry, ModelPreloadHandler, RewardGenerationHandler, VerificationHandler
from bts.verification.models import ActivityJudgment, PresenceCheckResult


def video_blob(size: int = 4096, content_type: str = "video/webm") -> MediaBlob:
    return MediaBlob(content=b"\x1a" * size, content_type=content_type)


def photo_blob(size: int = 2048, content_type: str = "image/jpeg") -> MediaBlob:
    return MediaBlob(content=b"\xff" * size, content_type=content_type)


class FakeDetector:
    def __init__(self, result: Optional[PresenceCheckResult] = None, exc: Optional[Exception] = None) -> None:
        self.result = result or PresenceCheckResult(
            passed=True, confidence=90, details="Face detected in selfie", face_count=1
        )
        self.exc = exc
        self.calls = 0

    async def detect(self, image: MediaBlob) -> PresenceCheckResult:
        self.calls += 1
        await asyncio.sleep(0)
        if self.exc is not None:
            raise self.exc
        return self.result


class FakeJudge:
    def __init__(self, result: Optional[ActivityJudgment] = None, exc: Optional[Exception] = None) -> None:
        self.result = result or ActivityJudgment(
            passed=True,
            confidence=80,
            details="The video shows the challenge",
            explanation="The video shows the challenge",
            raw_explanation="The video shows the challenge (Creativity: 7/10, Authenticity: 8/10, Effort: 9/10)",
            creativity=7,
            authenticity=8,
            effort=9,
            score=80,
        )
        self.exc = exc
        self.calls: list[str] = []

    async def judge(self, video: MediaBlob, description: str) -> ActivityJudgment:
        self.calls.append(description)
        await asyncio.sleep(0)
        if self.exc is not None:
            raise self.exc
        return self.result


class RecordingHandler:
    """
    Handler that records start order, reports some progress and then either
    returns, raises, or blocks until released.
    """

    def __init__(self, *, result: Any = "done", exc: Optional[Exception] = None, block: bool = False) -> None:
        self.result = result
        self.exc = exc
        self.block = block
        self.started: list[str] = []
        self.finished: list[str] = []
        self.release = asyncio.Event()

    async def __call__(self, task: Task, ctx) -> Any:
        self.started.append(task.id)
        ctx.report_progress(30)
        if self.block:
            await self.release.wait()
            ctx.checkpoint()
        else:
            await asyncio.sleep(0)
        if self.exc is not None:
            raise self.exc
        ctx.report_progress(60)
        self.finished.append(task.id)
        return self.result


GENERATION_URL = "http://generation.test/api/generate"

GENERATION_OK = {
    "success": True,
    "generation": {"imageUrl": "https://img.test/reward.png"},
    "clothingInfo": {
        "templateCID": "cid-123",
        "type": "hoodie",
        "name": "Neon Hoodie",
        "rarity": "rare",
        "tokenBonus": 5,
    },
}


def generation_client(handler=None) -> RewardGenerationClient:
    """RewardGenerationClient backed by an httpx.MockTransport."""

    def _ok(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=GENERATION_OK)

    transport = httpx.MockTransport(handler or _ok)
    return RewardGenerationClient(GENERATION_URL, client=httpx.AsyncClient(transport=transport))


def fake_handlers(
    *,
    detector: Optional[FakeDetector] = None,
    judge: Optional[FakeJudge] = None,
    generation: Optional[RewardGenerationClient] = None,
) -> HandlerRegistry:
    return HandlerRegistry(
        {
            TaskType.REWARD_GENERATION: RewardGenerationHandler(generation or generation_client()),
            TaskType.MODEL_PRELOAD: ModelPreloadHandler(DetectionModels()),
            TaskType.VERIFICATION: VerificationHandler(detector or FakeDetector(), judge or FakeJudge()),
        }
    )
