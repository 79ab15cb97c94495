# tests/conftest.py
from contextlib import contextmanager
from typing import Iterator, Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from bts.api.app import create_app
from bts.engine import HandlerRegistry, Scheduler, SchedulerConfig
from fakes import fake_handlers

DEFAULT_ENV = {
    "BTS_SCHED_TICK_MS": "50",
    "BTS_DEPENDENCY_TIMEOUT_MS": "300000",
    "BTS_LOG_LEVEL": "warning",
    "BTS_ALLOW_PARTIAL_CLAIM": "false",
    # server host/port are irrelevant for TestClient, but harmless if set elsewhere
}


def _apply_env(monkeypatch: pytest.MonkeyPatch, overrides: Optional[dict[str, str]] = None) -> None:
    for k, v in DEFAULT_ENV.items():
        monkeypatch.setenv(k, v)
    if overrides:
        for k, v in overrides.items():
            monkeypatch.setenv(k, v)


@contextmanager
def _client_ctx(
    monkeypatch: pytest.MonkeyPatch,
    *,
    overrides: Optional[dict[str, str]] = None,
    handlers: Optional[HandlerRegistry] = None,
) -> Iterator[TestClient]:
    _apply_env(monkeypatch, overrides)

    # Fresh app per client so no scheduler state leaks between tests
    app = create_app(handlers=handlers or fake_handlers())

    with TestClient(app) as client:
        yield client


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """
    Default integration test client.
    Uses DEFAULT_ENV and fake upstream collaborators.
    """
    with _client_ctx(monkeypatch) as c:
        yield c


@pytest.fixture()
def client_factory(monkeypatch: pytest.MonkeyPatch):
    """
    Factory for tests that need custom settings or handlers.

    Usage:
      with client_factory(overrides={"BTS_ALLOW_PARTIAL_CLAIM": "true"}) as client:
          ...

      with client_factory(handlers=fake_handlers(judge=FakeJudge(exc=...))) as client:
          ...
    """

    def _make(*, overrides: Optional[dict[str, str]] = None, handlers: Optional[HandlerRegistry] = None):
        return _client_ctx(monkeypatch, overrides=overrides, handlers=handlers)

    return _make


@pytest_asyncio.fixture
async def scheduler_factory():
    """
    Builds started schedulers on the test's event loop and stops them
    afterwards.

    Usage:
      sched = scheduler_factory(HandlerRegistry({...}), dependency_timeout_ms=200)
    """
    started: list[Scheduler] = []

    def _make(handlers: HandlerRegistry, *, sched_tick_ms: int = 20, dependency_timeout_ms: int = 300_000):
        sched = Scheduler(
            handlers,
            cfg=SchedulerConfig(sched_tick_ms=sched_tick_ms, dependency_timeout_ms=dependency_timeout_ms),
        )
        sched.start()
        started.append(sched)
        return sched

    yield _make

    for sched in started:
        await sched.stop(timeout_s=1.0)
