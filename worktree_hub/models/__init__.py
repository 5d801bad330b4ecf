"""Data models for worktree-hub."""

from .project import Project, RepoStatus
from .worktree import (
    AdminRecord,
    Commit,
    FileChange,
    StashEntry,
    Worktree,
    WorktreeRecord,
    WorktreeStatus,
)
from .task import TaskEvent, TaskKey, TaskKind, TaskOutcome
from .editor import EDITORS, EditorOption

__all__ = [
    "Project",
    "RepoStatus",
    "AdminRecord",
    "Commit",
    "FileChange",
    "StashEntry",
    "Worktree",
    "WorktreeRecord",
    "WorktreeStatus",
    "TaskEvent",
    "TaskKey",
    "TaskKind",
    "TaskOutcome",
    "EDITORS",
    "EditorOption",
]
