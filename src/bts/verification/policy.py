from __future__ import annotations

from typing import Any, Optional

from bts.domain.models import ClaimEligibility, Task
from bts.domain.states import TaskStatus, TaskType

from .models import VerificationResult


def reward_claim_allowed(result: Optional[VerificationResult], *, allow_partial: bool = False) -> bool:
    """
    Reward-claim gate. A partial pass (selfie still pending) is not enough
    unless explicitly allowed.
    """
    if result is None or not result.passed:
        return False
    if result.is_partial and not allow_partial:
        return False
    return True


def _as_result(value: Any) -> Optional[VerificationResult]:
    if isinstance(value, VerificationResult):
        return value
    if isinstance(value, dict):
        return VerificationResult.model_validate(value)
    return None


def claim_eligibility(task: Task, *, allow_partial: bool = False) -> ClaimEligibility:
    if task.type != TaskType.VERIFICATION:
        return ClaimEligibility(eligible=False, reason=f"Task {task.id} is not a verification task")
    if task.status != TaskStatus.COMPLETED:
        return ClaimEligibility(eligible=False, reason=f"Verification is {task.status.value}")

    result = _as_result(task.result)
    if result is None or not result.passed:
        return ClaimEligibility(eligible=False, reason="Verification did not pass")
    if not reward_claim_allowed(result, allow_partial=allow_partial):
        return ClaimEligibility(
            eligible=False,
            reason="Partial verification: selfie check pending ({})".format(", ".join(result.pending_steps)),
        )
    return ClaimEligibility(
        eligible=True,
        reason="Partial verification accepted" if result.is_partial else "Verification passed",
    )
