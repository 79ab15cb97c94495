from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from bts.domain.models import MediaBlob
from bts.logging import get_logger

from ..models import BasicFileCheckResult
from . import ProgressFn, notify

_LOG = get_logger(__name__)

KIB = 1024
MIB = 1024 * KIB


@dataclass(frozen=True)
class FileLimits:
    video_min_bytes: int = KIB
    video_max_bytes: int = 100 * MIB
    photo_max_bytes: int = 10 * MIB
    # anything smaller is a stand-in for a photo not captured yet
    placeholder_below_bytes: int = 100


DEFAULT_LIMITS = FileLimits()


def is_placeholder(photo: Optional[MediaBlob], limits: FileLimits = DEFAULT_LIMITS) -> bool:
    return (
        photo is None
        or photo.size == 0
        or not photo.content_type
        or photo.size < limits.placeholder_below_bytes
    )


def is_ready_for_full_verification(video: Optional[MediaBlob], photo: Optional[MediaBlob]) -> bool:
    """True once both a real video and a real (non-placeholder) photo are available."""
    has_video = video is not None and video.size > 0 and video.content_type.startswith("video/")
    has_photo = photo is not None and photo.size > 100 and photo.content_type.startswith("image/")
    return has_video and has_photo


def _mb(size: int) -> str:
    return f"{size / MIB:.1f}MB"


def _video_problem(video: MediaBlob, limits: FileLimits) -> Optional[str]:
    if not video.content_type.startswith("video/"):
        return "Invalid video format - not a video file"
    if video.size < limits.video_min_bytes:
        return "Video file too small (less than 1KB)"
    if video.size > limits.video_max_bytes:
        return f"Video file too large ({_mb(video.size)} > {_mb(limits.video_max_bytes)})"
    return None


def _photo_problem(photo: MediaBlob, limits: FileLimits) -> Optional[str]:
    if not photo.content_type.startswith("image/"):
        return "Invalid image format - not an image file"
    if photo.size > limits.photo_max_bytes:
        return f"Photo file too large ({_mb(photo.size)} > {_mb(limits.photo_max_bytes)})"
    return None


async def run_basic_file_check(
    video: MediaBlob,
    photo: Optional[MediaBlob],
    on_progress: Optional[ProgressFn] = None,
    *,
    limits: FileLimits = DEFAULT_LIMITS,
) -> BasicFileCheckResult:
    """
    Stage 1: the video must be a real video within size bounds. The photo is
    either a placeholder (passes, lower confidence, partial mode) or must be
    a real image within its own bounds.
    """
    placeholder = is_placeholder(photo, limits)
    notify(
        on_progress,
        10,
        "Placeholder selfie detected, validating video only..." if placeholder else "Checking video file format...",
    )
    problem = _video_problem(video, limits)
    if problem is not None:
        _LOG.info("Basic file check failed: %s", problem)
        notify(on_progress, 100, problem)
        return BasicFileCheckResult(
            passed=False,
            confidence=0,
            details=problem,
            is_placeholder_photo=placeholder,
        )

    notify(on_progress, 70 if placeholder else 50, "Video validated, checking photo...")

    if placeholder or photo is None:
        notify(on_progress, 100, "Video validated successfully, awaiting selfie capture")
        return BasicFileCheckResult(
            passed=True,
            confidence=60,
            details="Video validated successfully, awaiting selfie capture",
            video_valid=True,
            photo_valid=True,
            is_placeholder_photo=True,
        )

    problem = _photo_problem(photo, limits)
    notify(on_progress, 90, "Finalizing file validation...")
    if problem is not None:
        _LOG.info("Basic file check failed: %s", problem)
        notify(on_progress, 100, "File validation failed")
        return BasicFileCheckResult(passed=False, confidence=0, details=problem, video_valid=True)

    notify(on_progress, 100, "All files validated successfully")
    return BasicFileCheckResult(
        passed=True,
        confidence=100,
        details="All files validated successfully",
        video_valid=True,
        photo_valid=True,
    )
