"""Background task models."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class TaskKind(Enum):
    """Kinds of long-running operations submitted to the executor."""
    FETCH = "fetch"
    PULL = "pull"
    PUSH = "push"
    REBASE = "rebase"
    COMMIT = "commit"
    COMMIT_MESSAGE = "commit-message"
    REFRESH = "refresh"
    STATUS = "status"
    INDEX = "index"
    HISTORY = "history"
    STASH = "stash"
    LIFECYCLE = "lifecycle"
    CLEAN = "clean"
    SYNC = "sync"
    BRANCHES = "branches"


class TaskOutcome(Enum):
    """How a task finished."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed-out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TaskKey:
    """At most one task per key is in flight at any time."""
    worktree: str
    kind: TaskKind

    def __str__(self) -> str:
        return f"{self.kind.value}@{self.worktree}"


@dataclass
class TaskEvent:
    """Completion event delivered to the interactive loop."""
    key: TaskKey
    task_id: int
    outcome: TaskOutcome
    result: Any = None
    error: Optional[BaseException] = None
    context: Any = None  # opaque data supplied at submission

    @property
    def ok(self) -> bool:
        return self.outcome is TaskOutcome.SUCCEEDED
