"""Threading helpers used to size the background worker pool."""

import os
import sys
from typing import Optional


def is_free_threading_enabled() -> bool:
    """Detect if Python is running with the GIL disabled.

    Returns:
        True on a free-threaded 3.13+ interpreter, False otherwise
    """
    try:
        return hasattr(sys, "_is_gil_enabled") and not sys._is_gil_enabled()
    except Exception:
        return False


def get_python_threading_mode() -> str:
    """Describe the current threading mode for debug logs."""
    if not hasattr(sys, "_is_gil_enabled"):
        return "GIL-enabled (Python < 3.13)"
    return "free-threading" if is_free_threading_enabled() else "GIL-enabled"


def get_optimal_worker_count(user_specified: Optional[int] = None) -> int:
    """Pick the number of worker threads for git tasks.

    Git tasks spend their time waiting on child processes, so the pool is
    sized above the CPU count.

    Args:
        user_specified: Worker count from configuration, if any

    Returns:
        Number of workers to start
    """
    if user_specified is not None and user_specified > 0:
        return user_specified

    cpu_count = os.cpu_count() or 1

    if is_free_threading_enabled():
        return min(64, cpu_count * 2)

    # I/O-bound heuristic, capped
    return min(32, cpu_count + 4)
