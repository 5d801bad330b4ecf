"""Git-related services for worktree-hub."""

from .gateway import RepositoryGateway
from .operations import GitGateway

__all__ = [
    "RepositoryGateway",
    "GitGateway",
]
