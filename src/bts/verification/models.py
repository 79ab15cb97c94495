from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from bts.domain.states import StepStatus


Percent = Annotated[int, Field(ge=0, le=100)]
Rating = Annotated[int, Field(ge=1, le=10)]


class StepVerdict(BaseModel):
    """
    Common shape of every stage's verdict. `confidence` is on a 0-100 scale;
    the pipeline normalizes it when it records the step.
    """
    model_config = ConfigDict(frozen=True)

    passed: bool
    confidence: Percent = 0
    details: str = ""


class BasicFileCheckResult(StepVerdict):
    video_valid: bool = False
    photo_valid: bool = False
    is_placeholder_photo: bool = False


class PresenceCheckResult(StepVerdict):
    face_count: int = 0
    is_placeholder: bool = False


class ActivityJudgment(StepVerdict):
    """
    Verdict of the judgment service. Ratings are first-class fields; the raw
    service text is kept alongside for display.
    """
    explanation: str = ""
    raw_explanation: str = ""
    creativity: Optional[Rating] = None
    authenticity: Optional[Rating] = None
    effort: Optional[Rating] = None
    score: Optional[Percent] = None


class VerificationStep(BaseModel):
    """Snapshot of one pipeline stage."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    status: StepStatus = StepStatus.PENDING
    progress: Percent = 0
    message: str = ""
    # normalized 0.0-1.0, only set when COMPLETED
    confidence: Optional[float] = None
    result: Optional[Any] = None


class VerificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    passed: bool
    overall_confidence: float = 0.0
    steps: list[VerificationStep] = Field(default_factory=list)
    is_partial: bool = False
    pending_steps: list[str] = Field(default_factory=list)
    explanation: str = ""

    def step(self, step_id: str) -> Optional[VerificationStep]:
        for s in self.steps:
            if s.id == step_id:
                return s
        return None
