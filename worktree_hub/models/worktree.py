"""Worktree data models."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class WorktreeRecord:
    """One entry of git's authoritative worktree list."""

    path: str
    head: str = ""
    branch: Optional[str] = None  # None when detached or bare
    bare: bool = False
    detached: bool = False
    locked: bool = False
    prunable: bool = False


@dataclass
class Worktree:
    """A working directory registered with a project's engine."""

    name: str
    path: Path
    branch: Optional[str]
    head: str
    is_current: bool = False
    exists: bool = True

    @property
    def ref_label(self) -> str:
        """Branch name, or the short commit for a detached head."""
        if self.branch:
            return self.branch
        return f"({self.head[:7]})" if self.head else "(unborn)"

    def __str__(self) -> str:
        marker = " *" if self.is_current else ""
        return f"{self.name} [{self.ref_label}] @ {self.path}{marker}"


@dataclass
class AdminRecord:
    """The engine's administrative record for one linked worktree.

    ``gitdir`` is the worktree path the record names, or None when the
    linkage file is missing or unreadable (``problem`` says which).
    """

    name: str
    admin_dir: Path
    gitdir: Optional[Path] = None
    problem: Optional[str] = None


@dataclass
class FileChange:
    """A single entry from ``git status``.

    Status letters follow git's XY convention; ``.`` means unchanged.
    """

    path: str
    index_status: str = "."
    worktree_status: str = "."
    orig_path: Optional[str] = None
    conflicted: bool = False

    @property
    def untracked(self) -> bool:
        return self.index_status == "?"

    @property
    def staged(self) -> bool:
        return not self.untracked and self.index_status != "."

    @property
    def unstaged(self) -> bool:
        return not self.untracked and self.worktree_status != "."


@dataclass
class WorktreeStatus:
    """Derived status of a worktree, recomputed on demand."""

    branch: Optional[str] = None
    head: str = ""
    upstream: Optional[str] = None
    ahead: int = 0
    behind: int = 0
    changes: List[FileChange] = field(default_factory=list)

    @property
    def staged(self) -> List[FileChange]:
        return [c for c in self.changes if c.staged]

    @property
    def unstaged(self) -> List[FileChange]:
        return [c for c in self.changes if c.unstaged]

    @property
    def untracked(self) -> List[FileChange]:
        return [c for c in self.changes if c.untracked]

    @property
    def conflicted(self) -> List[FileChange]:
        return [c for c in self.changes if c.conflicted]

    @property
    def is_dirty(self) -> bool:
        return bool(self.changes)

    @property
    def has_tracked_changes(self) -> bool:
        return any(not c.untracked for c in self.changes)


@dataclass
class Commit:
    """A commit as shown in the history view."""

    sha: str
    author: str
    date: str
    subject: str

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass
class StashEntry:
    """One stash list entry (``stash@{n}``)."""

    ref: str
    sha: str
    message: str
