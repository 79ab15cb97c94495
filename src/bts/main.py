from __future__ import annotations

from bts.config import load_settings
from bts.logging import configure_logging, get_logger


def main() -> int:
    """
    Programmatic entrypoint.

    Recommended dev command:
      uvicorn bts.api.app:app --reload

    This entrypoint exists so you can also do:
      python -m bts.main
    """
    settings = load_settings()
    configure_logging(settings.log_level)
    log = get_logger(__name__)

    log.info(
        "Starting BTS on %s:%d (generation=%s, judgment=%s)",
        settings.host,
        settings.port,
        settings.generation_url,
        settings.judgment_url,
    )

    # Import here so config/logging are set before app import side-effects.
    try:
        from bts.api.app import app  # noqa: F401
    except Exception:
        log.exception("Failed to import FastAPI app (bts.api.app:app).")
        return 1

    import uvicorn

    uvicorn.run(
        "bts.api.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        reload=False,  # prefer `uvicorn ... --reload` in dev
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
