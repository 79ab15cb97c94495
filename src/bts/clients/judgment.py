"""Client for the multimodal challenge judgment service."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from bts.domain.errors import UpstreamServiceError, UpstreamTimeoutError
from bts.domain.models import MediaBlob
from bts.logging import get_logger
from bts.verification.models import ActivityJudgment

from .base import UpstreamClient, is_gateway_timeout, upstream_error_message

_LOG = get_logger(__name__)

_RATINGS_RE = re.compile(
    r"\(\s*Creativity:\s*(\d+)/10\s*,\s*Authenticity:\s*(\d+)/10\s*,\s*Effort:\s*(\d+)/10\s*\)",
    re.IGNORECASE,
)
_SCORE_RE = re.compile(r"\(\s*Score:\s*(\d+)/100\s*\)", re.IGNORECASE)
_PREFIX_RE = re.compile(r"^Verification failed:\s*", re.IGNORECASE)


@dataclass(frozen=True)
class LegacyExplanation:
    explanation: str
    creativity: Optional[int] = None
    authenticity: Optional[int] = None
    effort: Optional[int] = None
    score: Optional[int] = None


def _clamp(value: Optional[int], lo: int, hi: int) -> Optional[int]:
    if value is None:
        return None
    return max(lo, min(hi, value))


def parse_legacy_explanation(text: str) -> LegacyExplanation:
    """
    Splits the service's free text into the explanation proper and the
    ratings embedded as "(Creativity: N/10, Authenticity: N/10, Effort: N/10)"
    and "(Score: N/100)". Missing parts come back as None.
    """
    creativity = authenticity = effort = score = None

    m = _RATINGS_RE.search(text)
    if m:
        creativity, authenticity, effort = (_clamp(int(g), 1, 10) for g in m.groups())
    m = _SCORE_RE.search(text)
    if m:
        score = _clamp(int(m.group(1)), 0, 100)

    explanation = _PREFIX_RE.sub("", text)
    explanation = _SCORE_RE.sub("", _RATINGS_RE.sub("", explanation))
    explanation = re.sub(r"\s{2,}", " ", explanation).strip()

    return LegacyExplanation(
        explanation=explanation,
        creativity=creativity,
        authenticity=authenticity,
        effort=effort,
        score=score,
    )


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def _percent(value: Any) -> Optional[int]:
    # fractions are on the 0-1 scale
    if isinstance(value, float) and 0.0 <= value <= 1.0:
        return int(round(value * 100))
    return _int_or_none(value)


def _flag(value: Any) -> Optional[bool]:
    # "false" must not read as truthy
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def judgment_from_response(body: dict[str, Any]) -> ActivityJudgment:
    """
    Maps a judgment response to ActivityJudgment. Structured rating fields
    win over the ones embedded in the explanation text.
    """
    raw = str(body.get("explanation") or body.get("details") or body.get("reasoning") or "")
    legacy = parse_legacy_explanation(raw)

    def pick(key: str, fallback: Optional[int], lo: int, hi: int) -> Optional[int]:
        value = _int_or_none(body.get(key))
        return _clamp(value, lo, hi) if value is not None else fallback

    score = pick("score", legacy.score, 0, 100)
    confidence = _percent(body.get("confidence"))
    if confidence is None:
        confidence = score if score is not None else 0
    confidence = _clamp(confidence, 0, 100)

    passed = _flag(body.get("passed"))
    if passed is None:
        passed = _flag(body.get("success")) or False

    explanation = legacy.explanation or ("Challenge completed" if passed else "Challenge not completed")
    return ActivityJudgment(
        passed=passed,
        confidence=confidence,
        details=explanation,
        explanation=explanation,
        raw_explanation=raw,
        creativity=pick("creativity", legacy.creativity, 1, 10),
        authenticity=pick("authenticity", legacy.authenticity, 1, 10),
        effort=pick("effort", legacy.effort, 1, 10),
        score=score,
    )


class HttpChallengeJudge(UpstreamClient):
    """
    Sends the video (multipart `video`) and `challengeDescription` to the
    judgment endpoint.
    """

    async def judge(self, video: MediaBlob, description: str) -> ActivityJudgment:
        files = {"video": ("challenge-video", video.content, video.content_type or "application/octet-stream")}
        data = {"challengeDescription": description}
        _LOG.info("Requesting challenge judgment (video %d bytes)", video.size)

        try:
            async with self._session() as client:
                response = await client.post(self.url, files=files, data=data, timeout=self.timeout_s)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError("Challenge judgment timed out - server is busy. Please try again.") from e
        except httpx.HTTPError as e:
            raise UpstreamServiceError(f"Challenge judgment failed: {e}") from e

        if response.is_error:
            message = upstream_error_message(response)
            if is_gateway_timeout(response.status_code, message):
                raise UpstreamTimeoutError(
                    "Challenge judgment timed out - server is busy. Please try again.",
                    details={"status": response.status_code},
                )
            raise UpstreamServiceError(
                f"Challenge judgment failed: {message}",
                details={"status": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamServiceError("Challenge judgment failed: response is not JSON") from e
        if not isinstance(body, dict):
            raise UpstreamServiceError("Challenge judgment failed: unexpected response shape")

        return judgment_from_response(body)
