from __future__ import annotations

from typing import Mapping

from bts.domain.states import StepStatus

from .models import VerificationStep

STEP_WEIGHTS: Mapping[str, int] = {
    "basic-check": 20,
    "presence-check": 40,
    "activity-check": 40,
}


class WeightedProgress:
    """
    Folds per-step progress into one 0-100 value using STEP_WEIGHTS.
    The value never goes down, even if a snapshot reports less.
    """

    def __init__(self, weights: Mapping[str, int] = STEP_WEIGHTS) -> None:
        total = sum(weights.values())
        if total <= 0:
            raise ValueError("step weights must sum to > 0")
        self._weights = dict(weights)
        self._total = total
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def update(self, steps: list[VerificationStep]) -> int:
        acc = 0.0
        for step in steps:
            weight = self._weights.get(step.id, 0)
            fraction = 1.0 if step.status == StepStatus.COMPLETED else step.progress / 100
            acc += weight * fraction
        self._value = max(self._value, int(acc * 100 / self._total))
        return self._value
