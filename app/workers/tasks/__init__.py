"""
Celery Tasks Module.

All tasks are registered with the Celery app.

Sub-modules:
- subscription_tasks: Nightly subscription sweep
"""
from __future__ import annotations

from .subscription_tasks import run_nightly_sweep

__all__ = [
    "run_nightly_sweep",
]
