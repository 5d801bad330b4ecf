"""Stale worktree detection and build artifact cleanup."""

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set, Union, TYPE_CHECKING

from worktree_hub.config import DEFAULT_ARTIFACT_DIRS
from worktree_hub.logging_config import get_logger
from worktree_hub.models.project import Project
from worktree_hub.models.worktree import AdminRecord
from worktree_hub.services.git.gateway import RepositoryGateway
from worktree_hub.utils.paths import canonical, is_within

if TYPE_CHECKING:
    from worktree_hub.config import Config

logger = get_logger(__name__)


@dataclass
class StaleRecord:
    """An administrative record that no longer matches reality."""

    name: str
    reason: str
    path: Optional[Path] = None


@dataclass
class CleanReport:
    """Outcome of a clean run."""

    dry_run: bool
    stale: List[StaleRecord] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    artifacts: List[Path] = field(default_factory=list)
    skipped_current: Optional[Path] = None

    @property
    def stale_names(self) -> List[str]:
        return [record.name for record in self.stale]


class StaleStateAuditor:
    """Compares the engine's records with git's worktree list and the disk."""

    def __init__(
        self,
        project: Project,
        gateway: RepositoryGateway,
        config: Optional[Union["Config", dict]] = None,
        cwd: Optional[Union[str, Path]] = None,
    ):
        self.project = project
        self.gateway = gateway
        self.config = config or {}
        self.cwd = canonical(cwd if cwd is not None else os.getcwd())
        self.artifact_dirs: Set[str] = set(self.config.get("artifact_dirs", DEFAULT_ARTIFACT_DIRS))

    def find_stale(self) -> List[StaleRecord]:
        """Every admin record that is stale, in admin-directory order.

        A record is stale when its linkage file is missing or unreadable,
        the path it names does not exist, or git's list does not contain it.
        """
        registered = {
            canonical(record.path)
            for record in self.gateway.worktree_list(self.project.engine)
            if not record.bare
        }

        stale = []
        for record in self.gateway.admin_records(self.project.engine):
            reason = self._stale_reason(record, registered)
            if reason:
                logger.debug(f"Worktree record '{record.name}' is stale: {reason}")
                stale.append(StaleRecord(name=record.name, reason=reason, path=record.gitdir))
        return stale

    @staticmethod
    def _stale_reason(record: AdminRecord, registered: Set[Path]) -> Optional[str]:
        if record.problem:
            return record.problem
        if not record.gitdir.exists():
            return f"directory '{record.gitdir}' does not exist"
        if canonical(record.gitdir) not in registered:
            return f"'{record.gitdir}' is not in git's worktree list"
        return None

    def clean(self, artifacts: bool = False, dry_run: bool = False) -> CleanReport:
        """Prune stale records and, optionally, purge build artifacts.

        Args:
            artifacts: Also remove artifact directories from non-current worktrees
            dry_run: Report only; change nothing

        Returns:
            CleanReport listing stale records, pruned names and purged directories
        """
        report = CleanReport(dry_run=dry_run)
        report.stale = self.find_stale()

        if report.stale and not dry_run:
            before = {record.name for record in self.gateway.admin_records(self.project.engine)}
            self.gateway.worktree_prune(self.project.engine)
            after = {record.name for record in self.gateway.admin_records(self.project.engine)}
            report.removed = sorted(before - after)
            leftover = set(report.stale_names) & after
            if leftover:
                # Locked worktrees survive a prune
                logger.warning(f"Stale records not pruned by git: {', '.join(sorted(leftover))}")
            logger.info(f"Pruned {len(report.removed)} stale worktree record(s)")

        if artifacts:
            self._purge_artifacts(report, dry_run)
        return report

    def _current_worktree(self, paths: List[Path]) -> Optional[Path]:
        for path in paths:
            if is_within(self.cwd, path):
                return path
        return None

    def _purge_artifacts(self, report: CleanReport, dry_run: bool) -> None:
        worktrees = [
            canonical(record.path)
            for record in self.gateway.worktree_list(self.project.engine)
            if not record.bare
        ]
        current = self._current_worktree(worktrees)
        report.skipped_current = current

        for worktree in worktrees:
            if current is not None and worktree == current:
                logger.debug(f"Skipping current worktree {worktree}")
                continue
            if not worktree.is_dir():
                continue
            for target in self.find_artifacts(worktree):
                # Never touch the current worktree, even through a symlinked path
                if current is not None and is_within(target, current):
                    continue
                report.artifacts.append(target)
                if dry_run:
                    continue
                try:
                    shutil.rmtree(target)
                    logger.info(f"Removed build artifacts {target}")
                except OSError as e:
                    logger.error(f"Failed to remove artifact directory {target}: {e}")

    def find_artifacts(self, worktree: Path) -> List[Path]:
        """Artifact directories under ``worktree``, sorted by path; matches are not descended into."""
        found = []
        for dirpath, dirnames, _ in os.walk(worktree, followlinks=False):
            keep = []
            for dirname in sorted(dirnames):
                full = Path(dirpath) / dirname
                if dirname == ".git" or full.is_symlink():
                    continue
                if dirname in self.artifact_dirs:
                    found.append(full)
                else:
                    keep.append(dirname)
            dirnames[:] = keep
        return sorted(found)
