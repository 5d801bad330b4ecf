"""Abstract boundary over the git command line.

Upper layers talk to git only through a ``RepositoryGateway``. Every
method takes exact paths or fully qualified branch names; resolving
user-supplied names is the caller's job. Failures are raised as
``GitOperationError`` subclasses.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from worktree_hub.models.worktree import (
    AdminRecord,
    Commit,
    StashEntry,
    WorktreeRecord,
    WorktreeStatus,
)


class RepositoryGateway(ABC):
    """One operation per git action the rest of the system needs."""

    # Repository creation

    @abstractmethod
    def init_bare(self, path: Path, initial_branch: str) -> None:
        """Create an empty bare repository whose HEAD names ``initial_branch``."""

    @abstractmethod
    def clone_bare(self, source: str, path: Path) -> None:
        """Bare-clone ``source`` (URL or local path) into ``path``."""

    @abstractmethod
    def config_get(self, git_dir: Path, key: str) -> Optional[str]:
        """Read a config value, None when unset."""

    @abstractmethod
    def config_set(self, git_dir: Path, key: str, value: str) -> None:
        """Write a config value."""

    @abstractmethod
    def git_dir(self, cwd: Path) -> Path:
        """Absolute git directory for the repository containing ``cwd``."""

    # Worktrees

    @abstractmethod
    def worktree_list(self, engine: Path) -> List[WorktreeRecord]:
        """The engine's authoritative worktree list."""

    @abstractmethod
    def admin_records(self, engine: Path) -> List[AdminRecord]:
        """Every per-worktree administrative record the engine holds."""

    @abstractmethod
    def worktree_add(
        self,
        engine: Path,
        path: Path,
        branch: Optional[str] = None,
        new_branch: Optional[str] = None,
        start_point: Optional[str] = None,
        orphan: bool = False,
        detach: bool = False,
        no_checkout: bool = False,
    ) -> None:
        """Register and check out a new worktree at ``path``.

        ``branch`` is checked out as is; ``new_branch`` is created from
        ``start_point``; ``detach`` checks out ``branch`` without a branch.
        """

    @abstractmethod
    def worktree_remove(self, engine: Path, path: Path, force: bool = False) -> None:
        """Unregister a worktree and delete its directory."""

    @abstractmethod
    def worktree_prune(self, engine: Path) -> None:
        """Discard administrative records of worktrees that no longer exist."""

    @abstractmethod
    def worktree_repair(self, engine: Path, paths: Sequence[Path]) -> None:
        """Rewrite the two-way links between the engine and ``paths``."""

    # Branches

    @abstractmethod
    def local_branch_exists(self, cwd: Path, branch: str) -> bool:
        """True when ``refs/heads/<branch>`` exists."""

    @abstractmethod
    def remote_branch_exists(self, cwd: Path, remote: str, branch: str) -> bool:
        """True when ``refs/remotes/<remote>/<branch>`` exists."""

    @abstractmethod
    def list_branches(self, cwd: Path, remote: Optional[str] = None) -> List[str]:
        """Local branch names, sorted. With ``remote``, that remote's branches
        (without the ``<remote>/`` prefix) are listed instead."""

    @abstractmethod
    def has_commits(self, cwd: Path) -> bool:
        """False for a repository with no commits yet."""

    @abstractmethod
    def checkout(self, cwd: Path, branch: str, force: bool = False) -> None:
        """Switch the worktree at ``cwd`` to ``branch``."""

    # Inspection

    @abstractmethod
    def status(self, cwd: Path) -> WorktreeStatus:
        """Parsed status of the worktree at ``cwd``."""

    @abstractmethod
    def diff(self, cwd: Path, staged: bool = False) -> str:
        """Unified diff of staged or unstaged changes."""

    @abstractmethod
    def log(self, cwd: Path, limit: int, ref: Optional[str] = None) -> List[Commit]:
        """Most recent commits reachable from ``ref`` (HEAD by default)."""

    # Remote operations

    @abstractmethod
    def fetch(self, cwd: Path, remote: Optional[str] = None, prune: bool = True) -> None:
        """Fetch ``remote``, or all remotes when None."""

    @abstractmethod
    def pull(self, cwd: Path) -> None:
        """Pull the current branch from its upstream."""

    @abstractmethod
    def push(self, cwd: Path, remote: str, branch: str, set_upstream: bool = False) -> None:
        """Push ``branch`` to ``remote``."""

    @abstractmethod
    def rebase(self, cwd: Path, upstream: str) -> None:
        """Rebase the current branch onto ``upstream``, aborting on conflict."""

    # Index and commits

    @abstractmethod
    def stage(self, cwd: Path, paths: Optional[Sequence[str]] = None) -> None:
        """Stage ``paths``, or everything when None."""

    @abstractmethod
    def unstage(self, cwd: Path, paths: Optional[Sequence[str]] = None) -> None:
        """Unstage ``paths``, or everything when None."""

    @abstractmethod
    def commit(self, cwd: Path, message: str) -> None:
        """Commit the staged changes."""

    # Stashes

    @abstractmethod
    def stash_save(self, cwd: Path, message: str, include_untracked: bool = False) -> bool:
        """Stash local changes. Returns False when there was nothing to stash."""

    @abstractmethod
    def stash_list(self, cwd: Path) -> List[StashEntry]:
        """Stash entries, newest first."""

    @abstractmethod
    def stash_apply(self, cwd: Path, ref: str) -> None:
        """Apply a stash without removing it."""

    @abstractmethod
    def stash_pop(self, cwd: Path, ref: str, expected_sha: Optional[str] = None) -> None:
        """Apply a stash and remove it.

        With ``expected_sha``, refuse (StashMovedError) unless ``ref`` still names that commit.
        """

    @abstractmethod
    def stash_drop(self, cwd: Path, ref: str, expected_sha: Optional[str] = None) -> None:
        """Remove a stash entry, checked against ``expected_sha`` like ``stash_pop``."""
