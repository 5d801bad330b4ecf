"""Moving uncommitted changes between worktrees through the stash."""

import uuid
from dataclasses import dataclass
from typing import Optional, Union, TYPE_CHECKING

from worktree_hub.constants import TELEPORT_TAG
from worktree_hub.exceptions import (
    GitOperationError,
    NameConflictError,
    StashApplyError,
    StashMovedError,
)
from worktree_hub.logging_config import get_logger
from worktree_hub.models.worktree import StashEntry, Worktree
from worktree_hub.services.git.gateway import RepositoryGateway

if TYPE_CHECKING:
    from worktree_hub.config import Config

logger = get_logger(__name__)


@dataclass
class TeleportResult:
    """What a teleport moved."""

    source: str
    target: str
    moved: bool
    stash_message: Optional[str] = None
    # Set when the changes were applied but the stash entry could not be dropped safely
    kept_stash: Optional[str] = None


class TeleportBridge:
    """Stash in the source worktree, apply in the target, drop only on success.

    All worktrees share the engine's stash list, so the entry is found
    again by its unique message rather than by position.
    """

    def __init__(self, gateway: RepositoryGateway, config: Optional[Union["Config", dict]] = None):
        self.gateway = gateway
        self.config = config or {}

    def _find(self, worktree: Worktree, message: str) -> Optional[StashEntry]:
        for entry in self.gateway.stash_list(worktree.path):
            # git prefixes the message with "On <branch>: "
            if entry.message == message or entry.message.endswith(f": {message}"):
                return entry
        return None

    def teleport(
        self,
        source: Worktree,
        target: Worktree,
        include_untracked: Optional[bool] = None,
    ) -> TeleportResult:
        """Move the uncommitted changes of ``source`` into ``target``.

        Returns:
            TeleportResult; ``moved`` is False when ``source`` had nothing to move

        Raises:
            NameConflictError: ``source`` and ``target`` are the same worktree
            GitOperationError: stashing failed; nothing was moved
            StashApplyError: applying failed; the changes stay in the stash named by ``stash_ref``
        """
        if source.path == target.path:
            raise NameConflictError(target.name, "cannot teleport a worktree onto itself")
        if include_untracked is None:
            include_untracked = self.config.get("include_untracked", True)

        status = self.gateway.status(source.path)
        if not status.is_dirty or (not include_untracked and not status.has_tracked_changes):
            logger.info(f"No changes to teleport from '{source.name}'")
            return TeleportResult(source=source.name, target=target.name, moved=False)

        message = f"{TELEPORT_TAG} {uuid.uuid4().hex[:12]} {source.name} -> {target.name}"
        created = self.gateway.stash_save(source.path, message, include_untracked)
        if not created:
            return TeleportResult(source=source.name, target=target.name, moved=False)

        entry = self._find(source, message)
        if entry is None:
            raise GitOperationError("teleport", source.name, f"stash '{message}' was saved but cannot be found")
        logger.debug(f"Stashed changes of '{source.name}' as {entry.ref} ({entry.sha})")

        try:
            self.gateway.stash_apply(target.path, entry.sha)
        except GitOperationError as e:
            # Re-read the ref; other stashes may have been pushed meanwhile
            current = self._find(source, message)
            stash_ref = current.ref if current else entry.sha
            logger.error(f"Teleport to '{target.name}' failed, changes kept in {stash_ref}: {e}")
            raise StashApplyError(target.name, stash_ref, str(e)) from e

        kept = self._drop(source, message)
        logger.info(f"Teleported changes from '{source.name}' to '{target.name}'")
        return TeleportResult(
            source=source.name, target=target.name, moved=True, stash_message=message, kept_stash=kept
        )

    def _drop(self, source: Worktree, message: str) -> Optional[str]:
        """Drop the teleport stash, checking its commit at drop time.

        Returns the ref left in place when the entry kept moving, else None.
        """
        for _ in range(2):
            entry = self._find(source, message)
            if entry is None:
                return None
            try:
                self.gateway.stash_drop(source.path, entry.ref, expected_sha=entry.sha)
                return None
            except StashMovedError:
                logger.debug(f"{entry.ref} moved before it could be dropped, looking it up again")
        entry = self._find(source, message)
        if entry is None:
            return None
        logger.warning(f"Changes were applied but {entry.ref} ({message}) was left in the stash list")
        return entry.ref
