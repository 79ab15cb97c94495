"""
Verification stages. Each stage takes its media plus an optional
`(progress, message)` callback and returns a StepVerdict subclass.
"""
from __future__ import annotations

from typing import Callable, Optional

ProgressFn = Callable[[int, str], None]


def notify(on_progress: Optional[ProgressFn], progress: int, message: str) -> None:
    if on_progress is not None:
        on_progress(progress, message)
