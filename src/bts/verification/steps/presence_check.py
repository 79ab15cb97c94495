from __future__ import annotations

from typing import Optional, Protocol

from bts.domain.models import MediaBlob
from bts.logging import get_logger

from ..models import PresenceCheckResult
from . import ProgressFn, notify

_LOG = get_logger(__name__)


class PresenceDetector(Protocol):
    """Finds a human face in a still image."""

    async def detect(self, image: MediaBlob) -> PresenceCheckResult: ...


async def run_presence_check(
    detector: PresenceDetector,
    photo: Optional[MediaBlob],
    on_progress: Optional[ProgressFn] = None,
    *,
    placeholder: bool = False,
) -> PresenceCheckResult:
    """
    Stage 2. A placeholder photo defers the check: the stage passes with a
    neutral confidence and the run becomes partial.
    """
    if placeholder or photo is None:
        notify(on_progress, 100, "Selfie pending capture, presence check deferred")
        return PresenceCheckResult(
            passed=True,
            confidence=50,
            details="Selfie pending capture, presence check deferred",
            is_placeholder=True,
        )

    notify(on_progress, 20, "Looking for a face in the selfie...")
    result = await detector.detect(photo)
    _LOG.info("Presence check: passed=%s faces=%d confidence=%d", result.passed, result.face_count, result.confidence)
    notify(on_progress, 100, result.details or ("Face detected" if result.passed else "No face detected"))
    return result
