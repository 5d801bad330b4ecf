"""Blocking operations run on executor workers on behalf of the interface."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from worktree_hub.exceptions import GitOperationError
from worktree_hub.logging_config import get_logger
from worktree_hub.models.worktree import Worktree, WorktreeStatus
from worktree_hub.services.auditor import CleanReport, StaleStateAuditor
from worktree_hub.services.commit_message import CommitMessageService
from worktree_hub.services.lifecycle import WorktreeLifecycleManager
from worktree_hub.services.teleport import TeleportBridge, TeleportResult

logger = get_logger(__name__)


@dataclass
class RefreshResult:
    worktrees: List[Worktree]
    statuses: Dict[str, WorktreeStatus] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)


class ActionRunner:
    """Named operations the modal engine can request.

    Each ``op_<name>`` method runs on a worker thread, may block on git
    and returns a plain result. Nothing here touches interface state.
    """

    def __init__(
        self,
        lifecycle: WorktreeLifecycleManager,
        auditor: StaleStateAuditor,
        teleport: TeleportBridge,
        commit_messages: CommitMessageService,
    ):
        self.lifecycle = lifecycle
        self.auditor = auditor
        self.teleport_bridge = teleport
        self.commit_messages = commit_messages

    def run(self, operation: str, *args: Any) -> Any:
        handler = getattr(self, f"op_{operation}", None)
        if handler is None:
            raise ValueError(f"unknown operation '{operation}'")
        return handler(*args)

    def op_refresh(self) -> RefreshResult:
        """List worktrees and read the status of each one that exists.

        A worktree whose status cannot be read is reported in ``errors``
        instead of failing the whole refresh.
        """
        result = RefreshResult(worktrees=self.lifecycle.list())
        for wt in result.worktrees:
            if not wt.exists:
                continue
            try:
                result.statuses[wt.name] = self.lifecycle.gateway.status(wt.path)
            except GitOperationError as e:
                logger.warning(f"Could not read status of '{wt.name}': {e}")
                result.errors[wt.name] = str(e)
        return result

    def op_status(self, name: str) -> WorktreeStatus:
        return self.lifecycle.status(name)

    def op_history(self, name: str):
        return self.lifecycle.history(name)

    def op_stash_list(self, name: str):
        return self.lifecycle.stash_list(name)

    def op_add(self, name: str) -> Worktree:
        return self.lifecycle.add(name)

    def op_remove(self, name: str, force: bool = False) -> Worktree:
        return self.lifecycle.remove(name, force=force)

    def op_branches(self, name: str) -> List[str]:
        """Every branch the picker offers, remote-only ones included."""
        return self.lifecycle.branches(include_remote=True)

    def op_checkout(self, name: str, branch: str) -> Worktree:
        return self.lifecycle.checkout(name, branch)

    def op_fetch(self, name: str) -> None:
        self.lifecycle.fetch(name)

    def op_pull(self, name: str) -> None:
        self.lifecycle.pull(name)

    def op_push(self, name: str) -> None:
        self.lifecycle.push(name)

    def op_rebase(self, name: str) -> None:
        self.lifecycle.rebase(name)

    def op_commit(self, name: str, message: str) -> None:
        self.lifecycle.commit(name, message)

    def op_commit_message(self, name: str) -> str:
        """Generate a message for the staged diff; raises CommitMessageError on failure."""
        wt = self.lifecycle.get(name)
        diff = self.lifecycle.diff(name)
        return self.commit_messages.generate(diff, wt.branch or wt.name)

    def op_stage_all(self, name: str) -> None:
        self.lifecycle.stage_all(name)

    def op_unstage_all(self, name: str) -> None:
        self.lifecycle.unstage_all(name)

    def op_stash_save(self, name: str, message: str) -> bool:
        return self.lifecycle.stash_save(name, message)

    def op_stash_apply(self, name: str, ref: str, sha: Optional[str] = None) -> None:
        self.lifecycle.stash_apply(name, ref, sha)

    def op_stash_pop(self, name: str, ref: str, sha: Optional[str] = None) -> None:
        self.lifecycle.stash_pop(name, ref, sha)

    def op_stash_drop(self, name: str, ref: str, sha: Optional[str] = None) -> None:
        self.lifecycle.stash_drop(name, ref, sha)

    def op_teleport(self, source: str, target: str) -> TeleportResult:
        return self.teleport_bridge.teleport(self.lifecycle.get(source), self.lifecycle.get(target))

    def op_clean(self) -> CleanReport:
        return self.auditor.clean()

    def op_purge(self) -> CleanReport:
        return self.auditor.clean(artifacts=True)

    def op_sync(self):
        return self.lifecycle.sync()
