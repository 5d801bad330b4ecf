"""Sharing untracked configuration files between worktrees."""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from worktree_hub.constants import SYNC_MANIFEST
from worktree_hub.logging_config import get_logger
from worktree_hub.models.project import Project
from worktree_hub.models.worktree import Worktree
from worktree_hub.utils.paths import canonical

logger = get_logger(__name__)

SYNC_ACTIONS = ("symlink", "copy")


@dataclass
class SyncEntry:
    """One manifest line: ``<action> <path>``."""

    action: str
    path: str
    line_number: int


@dataclass
class SyncResult:
    """An entry applied to one worktree."""

    worktree: str
    action: str
    path: str


def parse_manifest(text: str) -> List[SyncEntry]:
    """Parse the sync manifest. Blank lines and ``#`` comments are ignored."""
    entries = []
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        if len(parts) < 2:
            logger.debug(f"{SYNC_MANIFEST}:{number}: missing path, skipping")
            continue
        entries.append(SyncEntry(action=parts[0], path=parts[1], line_number=number))
    return entries


class SyncService:
    """Applies the project's sync manifest to worktrees.

    Sources are resolved against the project root; each entry is
    symlinked or copied to the same relative path inside a worktree.
    """

    def __init__(self, project: Project):
        self.project = project

    @property
    def manifest_path(self) -> Path:
        return self.project.root / SYNC_MANIFEST

    def load(self) -> List[SyncEntry]:
        if not self.manifest_path.is_file():
            logger.debug(f"No {SYNC_MANIFEST} manifest found, nothing to sync")
            return []
        return parse_manifest(self.manifest_path.read_text())

    def sync(self, worktrees: List[Worktree]) -> List[SyncResult]:
        """Apply the manifest to every worktree in ``worktrees``."""
        entries = self.load()
        results = []
        for wt in worktrees:
            if not wt.exists:
                continue
            for entry in entries:
                result = self._apply(entry, wt)
                if result is not None:
                    results.append(result)
        return results

    def _apply(self, entry: SyncEntry, worktree: Worktree) -> Optional[SyncResult]:
        if entry.action not in SYNC_ACTIONS:
            logger.debug(f"Unknown action '{entry.action}' on line {entry.line_number}, skipping")
            return None

        source = self.project.root / entry.path
        destination = worktree.path / entry.path
        relative = Path(entry.path)
        if relative.is_absolute() or ".." in relative.parts:
            logger.warning(f"Manifest path '{entry.path}' must stay inside the project, skipping")
            return None
        if not source.exists():
            logger.debug(f"Manifest source '{source}' does not exist, skipping")
            return None

        destination.parent.mkdir(parents=True, exist_ok=True)
        if entry.action == "symlink":
            self._clear(destination)
            os.symlink(canonical(source), destination)
        elif source.is_dir():
            if destination.is_symlink():
                destination.unlink()
            shutil.copytree(source, destination, symlinks=True, dirs_exist_ok=True)
        else:
            if destination.is_symlink():
                destination.unlink()
            shutil.copy2(source, destination)

        logger.info(f"{entry.action}: {entry.path} -> {worktree.name}")
        return SyncResult(worktree=worktree.name, action=entry.action, path=entry.path)

    @staticmethod
    def _clear(path: Path) -> None:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
