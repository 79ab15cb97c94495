from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from bts.domain.models import MediaBlob
from bts.domain.states import StepStatus
from bts.logging import get_logger

from .models import StepVerdict, VerificationResult, VerificationStep
from .steps import ProgressFn
from .steps.activity_check import ChallengeJudge, run_activity_check
from .steps.basic_file_check import DEFAULT_LIMITS, FileLimits, run_basic_file_check
from .steps.presence_check import PresenceDetector, run_presence_check

_LOG = get_logger(__name__)

STEP_BASIC = "basic-check"
STEP_PRESENCE = "presence-check"
STEP_ACTIVITY = "activity-check"

StepsListener = Callable[[list[VerificationStep]], None]


def initial_steps() -> list[VerificationStep]:
    return [
        VerificationStep(id=STEP_BASIC, name="Basic File Check", message="Waiting to start..."),
        VerificationStep(id=STEP_PRESENCE, name="Human Detection in Selfie", message="Waiting for file check..."),
        VerificationStep(id=STEP_ACTIVITY, name="AI Challenge Verification", message="Waiting for selfie check..."),
    ]


class VerificationPipeline:
    """
    Runs the three verification stages in order and folds them into one
    VerificationResult.

    - a stage runs only if the previous one passed
    - an exception inside a stage fails that stage, never the caller
    - a placeholder photo lets the run pass as partial with the presence
      check still pending

    `on_progress` receives a full snapshot of the steps after every change.
    One pipeline instance can be reused; each run starts from fresh steps.
    """

    def __init__(
        self,
        detector: PresenceDetector,
        judge: ChallengeJudge,
        on_progress: Optional[StepsListener] = None,
        *,
        limits: FileLimits = DEFAULT_LIMITS,
    ) -> None:
        self._detector = detector
        self._judge = judge
        self._on_progress = on_progress
        self._limits = limits
        self._steps: dict[str, VerificationStep] = {s.id: s for s in initial_steps()}

    @property
    def steps(self) -> list[VerificationStep]:
        return list(self._steps.values())

    async def run_full_verification(
        self,
        video: MediaBlob,
        photo: Optional[MediaBlob],
        activity_description: str,
    ) -> VerificationResult:
        self._steps = {s.id: s for s in initial_steps()}

        basic = await self._run_step(
            STEP_BASIC,
            "File validation failed",
            lambda cb: run_basic_file_check(video, photo, cb, limits=self._limits),
        )
        if basic is None or not basic.passed:
            return self._failed_result("Basic file check failed")
        placeholder = bool(getattr(basic, "is_placeholder_photo", False))

        presence = await self._run_step(
            STEP_PRESENCE,
            "Face detection failed",
            lambda cb: run_presence_check(self._detector, photo, cb, placeholder=placeholder),
        )
        if presence is None or not presence.passed:
            return self._failed_result("Human detection in selfie failed")

        activity = await self._run_step(
            STEP_ACTIVITY,
            "AI verification failed",
            lambda cb: run_activity_check(self._judge, video, activity_description, cb),
        )
        if activity is None or not activity.passed:
            return self._failed_result("AI challenge verification failed")

        if placeholder:
            _LOG.info("Partial verification passed, selfie pending")
            return VerificationResult(
                passed=True,
                overall_confidence=self._overall_confidence(),
                steps=self.steps,
                is_partial=True,
                pending_steps=[STEP_PRESENCE],
                explanation="Verification passed, selfie check pending",
            )

        _LOG.info("Full verification passed")
        return VerificationResult(
            passed=True,
            overall_confidence=self._overall_confidence(),
            steps=self.steps,
            explanation="All verification steps passed",
        )

    # -------------------------
    # Helpers
    # -------------------------

    async def _run_step(
        self,
        step_id: str,
        error_message: str,
        run: Callable[[ProgressFn], Awaitable[Any]],
    ) -> Optional[StepVerdict]:
        self._update(step_id, status=StepStatus.RUNNING, progress=0, message="Starting...")

        def on_step_progress(progress: int, message: str) -> None:
            current = self._steps[step_id]
            self._update(
                step_id,
                status=StepStatus.RUNNING,
                progress=max(current.progress, min(100, int(progress))),
                message=message,
            )

        try:
            verdict: StepVerdict = await run(on_step_progress)
        except Exception as e:
            _LOG.exception("Verification step %s raised", step_id)
            self._update(
                step_id,
                status=StepStatus.FAILED,
                progress=100,
                message=f"{error_message}: {e}" if str(e) else error_message,
            )
            return None

        self._update(
            step_id,
            status=StepStatus.COMPLETED if verdict.passed else StepStatus.FAILED,
            progress=100,
            message=verdict.details,
            confidence=verdict.confidence / 100 if verdict.passed else None,
            result=verdict,
        )
        return verdict

    def _update(self, step_id: str, **fields: Any) -> None:
        self._steps[step_id] = self._steps[step_id].model_copy(update=fields)
        if self._on_progress is not None:
            self._on_progress(self.steps)

    def _overall_confidence(self) -> float:
        confidences = [
            s.confidence
            for s in self._steps.values()
            if s.status == StepStatus.COMPLETED and s.confidence is not None
        ]
        if not confidences:
            return 0.0
        return sum(confidences) / len(confidences)

    def _failed_result(self, fallback: str) -> VerificationResult:
        failed = next((s for s in self._steps.values() if s.status == StepStatus.FAILED), None)
        explanation = failed.message if failed is not None and failed.message else fallback
        _LOG.info("Verification failed: %s", explanation)
        return VerificationResult(
            passed=False,
            overall_confidence=self._overall_confidence(),
            steps=self.steps,
            explanation=explanation,
        )
