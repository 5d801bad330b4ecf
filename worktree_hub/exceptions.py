"""Custom exceptions for worktree-hub"""

from typing import Optional


class WorktreeHubError(Exception):
    """Base exception for all worktree-hub errors."""
    pass


class NotAProjectError(WorktreeHubError):
    """Raised when a directory is not a valid bare-hub project."""

    def __init__(self, path: str, reason: Optional[str] = None):
        self.path = path
        self.reason = reason

        error_msg = f"'{path}' is not a worktree-hub project"
        if reason:
            error_msg += f": {reason}"

        super().__init__(error_msg)


class GitOperationError(WorktreeHubError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, target: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.target = target
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if target:
            error_msg += f" for '{target}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class GitNotFoundError(GitOperationError):
    """Exception raised when the git executable cannot be found."""

    def __init__(self, operation: str, executable: str = "git"):
        self.executable = executable
        super().__init__(operation, message=f"git executable '{executable}' not found")


class GitCommandFailedError(GitOperationError):
    """Exception raised when git exits with a non-zero status.

    The diagnostic text git wrote to stderr is kept verbatim in ``stderr``.
    """

    def __init__(
        self,
        operation: str,
        status: Optional[int] = None,
        stderr: str = "",
        target: Optional[str] = None,
    ):
        self.status = status
        self.stderr = stderr

        message = f"exit {status if status is not None else 'unknown'}"
        if stderr.strip():
            message += f": {stderr.strip()}"

        super().__init__(operation, target, message)


class RebaseConflictError(GitCommandFailedError):
    """Exception raised when a rebase stopped on conflicts and was aborted.

    ``conflict_diff`` holds the conflicted files' diff as it was before the
    abort, markers included.
    """

    def __init__(self, failure: GitCommandFailedError, conflict_diff: str):
        self.conflict_diff = conflict_diff
        super().__init__(failure.operation, failure.status, failure.stderr, failure.target)


class GitOutputParseError(GitOperationError):
    """Exception raised when machine-readable git output cannot be parsed."""

    def __init__(self, operation: str, detail: str):
        super().__init__(operation, message=f"unparsable output ({detail})")


class PathNotFoundError(GitOperationError):
    """Exception raised when a path handed to git does not exist."""

    def __init__(self, operation: str, path: str):
        self.path = path
        super().__init__(operation, path, "Path does not exist")


class BranchNotFoundError(GitOperationError):
    """Exception raised when a branch is not found locally or on the remote."""

    def __init__(self, branch: str):
        super().__init__("find_branch", branch, "Branch not found")


class NameConflictError(WorktreeHubError):
    """Exception raised when a worktree name collides with an existing one."""

    def __init__(self, name: str, reason: str = "a worktree with this name already exists"):
        self.name = name
        super().__init__(f"Cannot create worktree '{name}': {reason}")


class WorktreeNotFoundError(WorktreeHubError):
    """Exception raised when no worktree matches a name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Worktree '{name}' not found")


class UnsafeOverwriteError(WorktreeHubError):
    """Exception raised when uncommitted changes block a destructive operation."""

    def __init__(self, name: str, operation: str, override: str):
        self.name = name
        self.operation = operation
        self.override = override
        super().__init__(
            f"Worktree '{name}' has uncommitted changes; refusing to {operation} "
            f"(use {override} to override)"
        )


class StaleMetadataError(WorktreeHubError):
    """Exception raised when administrative records disagree with the disk."""

    def __init__(self, name: str, detail: str):
        self.name = name
        self.detail = detail
        super().__init__(f"Worktree '{name}' has stale metadata: {detail}")


class MigrationError(WorktreeHubError):
    """Exception raised when an in-place migration cannot complete.

    The repository is restored to its pre-migration layout before this is raised.
    """
    pass


class StashMovedError(GitOperationError):
    """Exception raised when a stash ref no longer names the entry it was read as.

    All worktrees share one stash list, so positions shift when another
    entry is pushed or dropped.
    """

    def __init__(self, operation: str, ref: str, expected_sha: str):
        self.ref = ref
        self.expected_sha = expected_sha
        super().__init__(
            operation, ref, f"{ref} no longer points at {expected_sha[:12]}, the stash list changed"
        )


class StashApplyError(WorktreeHubError):
    """Exception raised when teleported changes could not be applied.

    The changes remain recoverable under ``stash_ref`` in the source worktree.
    """

    def __init__(self, target: str, stash_ref: str, message: str):
        self.target = target
        self.stash_ref = stash_ref
        super().__init__(
            f"Failed to apply changes to '{target}': {message}. "
            f"Changes preserved in {stash_ref}"
        )


class TaskError(WorktreeHubError):
    """Base exception for background task failures."""
    pass


class TaskTimeoutError(TaskError):
    """Exception raised when a background task exceeds its time budget."""

    def __init__(self, description: str, timeout: float):
        self.timeout = timeout
        super().__init__(f"Task {description} timed out after {timeout:.0f}s")


class TaskCancelledError(TaskError):
    """Exception raised when a background task was cancelled."""

    def __init__(self, description: str):
        super().__init__(f"Task {description} was cancelled")


class TaskRejectedError(TaskError):
    """Exception raised when an identical task is already in flight."""

    def __init__(self, description: str):
        super().__init__(f"Task {description} is already running")


class CommitMessageError(WorktreeHubError):
    """Exception raised when the commit message service fails."""
    pass


class CommandLaunchError(WorktreeHubError):
    """Exception raised when an external command (``run`` or an editor) cannot be started."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Cannot run '{command}': {reason}")
