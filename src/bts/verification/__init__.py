"""
Verification pipeline for submitted challenge media.

- steps: basic file check, presence check, activity judgment
- pipeline: sequencing, partial mode, confidence
- progress: weighted single-value progress
- policy: reward-claim gate
"""

from .models import (
    ActivityJudgment,
    BasicFileCheckResult,
    PresenceCheckResult,
    StepVerdict,
    VerificationResult,
    VerificationStep,
)
from .pipeline import STEP_ACTIVITY, STEP_BASIC, STEP_PRESENCE, VerificationPipeline
from .policy import claim_eligibility, reward_claim_allowed
from .progress import STEP_WEIGHTS, WeightedProgress
from .steps.activity_check import ChallengeJudge
from .steps.basic_file_check import FileLimits, is_placeholder, is_ready_for_full_verification
from .steps.presence_check import PresenceDetector

__all__ = [
    "ActivityJudgment",
    "BasicFileCheckResult",
    "PresenceCheckResult",
    "StepVerdict",
    "VerificationResult",
    "VerificationStep",
    "STEP_ACTIVITY",
    "STEP_BASIC",
    "STEP_PRESENCE",
    "VerificationPipeline",
    "claim_eligibility",
    "reward_claim_allowed",
    "STEP_WEIGHTS",
    "WeightedProgress",
    "ChallengeJudge",
    "FileLimits",
    "is_placeholder",
    "is_ready_for_full_verification",
    "PresenceDetector",
]
