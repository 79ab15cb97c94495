# src/bts/api/deps.py
from __future__ import annotations

from fastapi import Request

from bts.config import Settings
from bts.engine import Scheduler


def get_settings(request: Request) -> Settings:
    """
    Per-request access to settings stored on app.state during startup.
    """
    return request.app.state.settings  # type: ignore[attr-defined]


def get_scheduler(request: Request) -> Scheduler:
    """
    Per-request access to the Scheduler started in the lifespan handler.
    """
    return request.app.state.scheduler  # type: ignore[attr-defined]
