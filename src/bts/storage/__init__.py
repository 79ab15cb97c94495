# src/bts/storage/__init__.py
"""
Storage layer for BTS.

Tasks live only for the lifetime of the process.

- registry: in-memory task collection + transition functions
"""

from .registry import TaskRegistry, new_task_id

__all__ = ["TaskRegistry", "new_task_id"]
