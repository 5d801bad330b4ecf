"""Utility functions for worktree-hub.

This package provides utility modules:
- threading: worker pool sizing for the background task executor
- paths: canonical path comparisons used by the safety checks
"""

from worktree_hub.logging_config import setup_logging, get_logger, ColoredFormatter
from .threading import (
    is_free_threading_enabled,
    get_python_threading_mode,
    get_optimal_worker_count,
)
from .paths import canonical, is_within

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "ColoredFormatter",
    # Threading
    "is_free_threading_enabled",
    "get_python_threading_mode",
    "get_optimal_worker_count",
    # Paths
    "canonical",
    "is_within",
]
