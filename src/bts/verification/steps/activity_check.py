from __future__ import annotations

from typing import Optional, Protocol

from bts.domain.models import MediaBlob
from bts.logging import get_logger

from ..models import ActivityJudgment
from . import ProgressFn, notify

_LOG = get_logger(__name__)


class ChallengeJudge(Protocol):
    """Decides whether a recording shows the described activity."""

    async def judge(self, video: MediaBlob, description: str) -> ActivityJudgment: ...


async def run_activity_check(
    judge: ChallengeJudge,
    video: MediaBlob,
    description: str,
    on_progress: Optional[ProgressFn] = None,
) -> ActivityJudgment:
    """Stage 3: hands the video and the activity description to the judge."""
    notify(on_progress, 10, "Preparing video for analysis...")
    notify(on_progress, 30, "Analyzing challenge completion...")

    judgment = await judge.judge(video, description)

    _LOG.info(
        "Activity judgment: passed=%s confidence=%d score=%s",
        judgment.passed,
        judgment.confidence,
        judgment.score,
    )
    notify(on_progress, 100, judgment.explanation or judgment.details or "Analysis complete")
    return judgment
