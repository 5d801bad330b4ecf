"""
worktree-hub - bare repository worktree orchestration
"""

from .__version__ import __version__
from .services.lifecycle import WorktreeLifecycleManager
from .services.auditor import StaleStateAuditor
from .services.teleport import TeleportBridge

__all__ = [
    "WorktreeLifecycleManager",
    "StaleStateAuditor",
    "TeleportBridge",
    "__version__",
]
