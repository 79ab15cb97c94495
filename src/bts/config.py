from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"Environment variable {name} must be an int, got: {raw!r}") from e
    return value


def _get_env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"Environment variable {name} must be a number, got: {raw!r}") from e
    return value


def _get_env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw


def _get_env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Environment variable {name} must be a boolean, got: {raw!r}")


@dataclass(frozen=True)
class Settings:
    # Scheduler / execution
    sched_tick_ms: int
    dependency_timeout_ms: int

    # Upstream collaborators
    generation_url: str
    judgment_url: str
    http_timeout_s: float

    # Reward claim policy
    allow_partial_claim: bool

    # Server (used by bts.main when starting uvicorn programmatically)
    host: str
    port: int
    log_level: str

    @property
    def sched_tick_s(self) -> float:
        return self.sched_tick_ms / 1000.0


def load_settings() -> Settings:
    """
    Loads settings from env vars with sane defaults.

    Env vars:
      - BTS_SCHED_TICK_MS (default: 1000)  dependency re-check backoff
      - BTS_DEPENDENCY_TIMEOUT_MS (default: 300000)
      - BTS_GENERATION_URL (default: local reward generation route)
      - BTS_JUDGMENT_URL (default: local challenge judgment route)
      - BTS_HTTP_TIMEOUT_S (default: 120)
      - BTS_ALLOW_PARTIAL_CLAIM (default: false)
      - BTS_HOST (default: 127.0.0.1)
      - BTS_PORT (default: 8000)
      - BTS_LOG_LEVEL (default: info)
    """
    sched_tick_ms = _get_env_int("BTS_SCHED_TICK_MS", 1000)
    if sched_tick_ms <= 0:
        raise ValueError("BTS_SCHED_TICK_MS must be > 0")

    dependency_timeout_ms = _get_env_int("BTS_DEPENDENCY_TIMEOUT_MS", 300_000)
    if dependency_timeout_ms <= 0:
        raise ValueError("BTS_DEPENDENCY_TIMEOUT_MS must be > 0")

    generation_url = _get_env_str(
        "BTS_GENERATION_URL", "http://127.0.0.1:3000/api/chainGPT/generate-clothing-reward"
    )
    judgment_url = _get_env_str("BTS_JUDGMENT_URL", "http://127.0.0.1:3000/api/verification/ai-challenge")

    http_timeout_s = _get_env_float("BTS_HTTP_TIMEOUT_S", 120.0)
    if http_timeout_s <= 0:
        raise ValueError("BTS_HTTP_TIMEOUT_S must be > 0")

    allow_partial_claim = _get_env_bool("BTS_ALLOW_PARTIAL_CLAIM", False)

    host = _get_env_str("BTS_HOST", "127.0.0.1")
    port = _get_env_int("BTS_PORT", 8000)
    if not (1 <= port <= 65535):
        raise ValueError("BTS_PORT must be between 1 and 65535")

    log_level = _get_env_str("BTS_LOG_LEVEL", "info").lower()

    return Settings(
        sched_tick_ms=sched_tick_ms,
        dependency_timeout_ms=dependency_timeout_ms,
        generation_url=generation_url,
        judgment_url=judgment_url,
        http_timeout_s=http_timeout_s,
        allow_partial_claim=allow_partial_claim,
        host=host,
        port=port,
        log_level=log_level,
    )
