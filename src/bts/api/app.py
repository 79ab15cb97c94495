# src/bts/api/app.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI

from bts.config import Settings, load_settings
from bts.engine import HandlerRegistry, Scheduler, SchedulerConfig, build_handlers
from bts.logging import configure_logging, get_logger

from .routes import router

_LOG = get_logger(__name__)


def create_app(
    *,
    settings: Optional[Settings] = None,
    handlers: Optional[HandlerRegistry] = None,
) -> FastAPI:
    """
    Builds the FastAPI app. Tests pass their own handlers; by default the
    handlers talk to the configured upstream services.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """
        Lifespan handler (preferred over deprecated @app.on_event).

        Responsible for:
        - loading settings
        - configuring logging
        - opening the shared HTTP client
        - starting scheduler
        - stopping scheduler on shutdown
        """
        cfg_settings = settings or load_settings()
        configure_logging(cfg_settings.log_level)
        app.state.settings = cfg_settings

        http_client: Optional[httpx.AsyncClient] = None
        registry = handlers
        if registry is None:
            http_client = httpx.AsyncClient(timeout=cfg_settings.http_timeout_s)
            registry = build_handlers(cfg_settings, http_client=http_client)

        cfg = SchedulerConfig(
            sched_tick_ms=cfg_settings.sched_tick_ms,
            dependency_timeout_ms=cfg_settings.dependency_timeout_ms,
        )
        scheduler = Scheduler(registry, cfg=cfg)
        scheduler.start()
        app.state.scheduler = scheduler

        _LOG.info("Startup complete.")

        try:
            yield
        finally:
            await scheduler.stop(timeout_s=5.0)
            if http_client is not None:
                await http_client.aclose()
            _LOG.info("Shutdown complete.")

    app = FastAPI(
        title="Background Task Scheduler",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
