# src/bts/api/__init__.py
"""
API layer for BTS (FastAPI).

- app: app factory + lifecycle hooks
- routes: REST endpoints
- deps: dependency injection helpers
"""

from .app import app, create_app

__all__ = ["app", "create_app"]
