from __future__ import annotations

import logging
import sys
from typing import Optional

_ROOT_LOGGER = "bts"

_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

# Minimum level for third-party loggers that report every request.
_CHATTY_LOGGERS = {
    "uvicorn.access": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}

_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}


def configure_logging(log_level: str = "info") -> None:
    """
    Sends scheduler, pipeline and API logs to stdout with one format.

    Called from the app lifespan, so it may run more than once per process
    (tests create an app per case); earlier stream handlers are replaced.
    Upstream HTTP calls made by the reward and judgment clients would log
    every request at INFO, so httpx/httpcore are held at WARNING.
    """
    level = _LEVELS.get(log_level.lower().strip(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        if isinstance(h, logging.StreamHandler):
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    root.addHandler(handler)

    logging.getLogger("uvicorn.error").setLevel(level)
    for name, floor in _CHATTY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, floor))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name if name else _ROOT_LOGGER)


def short_id(task_id: str) -> str:
    """Trailing 8 characters of a task id, enough to tell tasks apart in logs."""
    return task_id[-8:]
