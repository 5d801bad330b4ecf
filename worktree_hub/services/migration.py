"""In-place migration of a standard repository into the bare-hub layout."""

import os
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union, TYPE_CHECKING

from worktree_hub.constants import MIGRATION_STAGING_PREFIX
from worktree_hub.exceptions import (
    GitOperationError,
    MigrationError,
    NotAProjectError,
    UnsafeOverwriteError,
)
from worktree_hub.logging_config import get_logger
from worktree_hub.models.project import Project
from worktree_hub.services.git.gateway import RepositoryGateway
from worktree_hub.services.git.parsing import parse_pointer_file
from worktree_hub.utils.paths import canonical

if TYPE_CHECKING:
    from worktree_hub.config import Config

logger = get_logger(__name__)


def branch_dir_name(branch: str) -> str:
    """Directory name used for a branch's worktree."""
    return branch.replace("/", "-")


@dataclass
class MigrationPlan:
    """What ``migrate`` will do (or did) to a repository."""

    root: Path
    engine: Path
    branch: str
    worktree: Path
    dirty: bool
    linked_worktrees: List[Path] = field(default_factory=list)
    steps: List[str] = field(default_factory=list)
    executed: bool = False


class _Journal:
    """Undo log for filesystem steps; replayed in reverse on failure."""

    def __init__(self):
        self._undo: List[Tuple[str, Callable[[], None]]] = []

    def record(self, description: str, undo: Callable[[], None]) -> None:
        self._undo.append((description, undo))

    def rollback(self) -> List[str]:
        """Undo every recorded step. Returns descriptions of steps that failed to undo."""
        failures = []
        for description, undo in reversed(self._undo):
            try:
                undo()
                logger.debug(f"Rolled back: {description}")
            except OSError as e:
                logger.error(f"Could not roll back '{description}': {e}")
                failures.append(description)
        self._undo.clear()
        return failures


class InPlaceMigration:
    """Convert the repository at ``root`` into a hub without changing its path.

    The new layout is built in a hidden staging directory inside ``root``
    and swapped in with renames. Each step is journalled so a failure
    restores the original layout.
    """

    def __init__(
        self,
        root: Union[str, Path],
        gateway: RepositoryGateway,
        config: Optional[Union["Config", dict]] = None,
    ):
        self.config = config or {}
        self.root = canonical(root)
        self.gateway = gateway
        self.engine_dir = self.config.get("engine_dir", ".bare")
        self.pointer_file = self.config.get("pointer_file", ".git")

    def plan(self) -> MigrationPlan:
        """Inspect the repository and describe the migration without touching it.

        Raises:
            NotAProjectError: ``root`` is not the top of a standard repository
            MigrationError: the repository cannot be migrated as it stands
        """
        git_dir = self.root / ".git"
        if not git_dir.is_dir():
            raise NotAProjectError(str(self.root), "not the root of a standard repository (no .git directory)")

        engine = self.root / self.engine_dir
        if engine.exists():
            raise MigrationError(f"'{engine}' already exists")

        status = self.gateway.status(self.root)
        if not status.branch:
            raise MigrationError("HEAD is detached; check out a branch before migrating")

        worktree = self.root / branch_dir_name(status.branch)
        linked = [
            Path(record.path)
            for record in self.gateway.worktree_list(git_dir)
            if not record.bare and canonical(record.path) != self.root
        ]

        plan = MigrationPlan(
            root=self.root,
            engine=engine,
            branch=status.branch,
            worktree=worktree,
            dirty=status.is_dirty,
            linked_worktrees=linked,
        )
        plan.steps = [
            f"copy {git_dir} into a staging engine and mark it bare",
            f"register worktree '{worktree.name}' for branch '{status.branch}'",
            f"move the working files into {worktree}",
            f"move the engine to {engine}",
            f"write pointer file {self.root / self.pointer_file}",
        ]
        if linked:
            plan.steps.append(f"repair {len(linked)} linked worktree(s)")
        if plan.dirty:
            plan.steps.append("carry uncommitted changes into the new worktree")
        return plan

    def run(self, force: bool = False, dry_run: bool = False) -> MigrationPlan:
        """Plan and, unless ``dry_run``, perform the migration.

        Raises:
            UnsafeOverwriteError: uncommitted changes exist and ``force`` is not set
            MigrationError: a step failed; the original layout has been restored
        """
        plan = self.plan()
        if dry_run:
            logger.info(f"Dry run: migration of {self.root} planned, nothing changed")
            return plan

        if plan.dirty and not force:
            raise UnsafeOverwriteError(self.root.name, "migrate", "--force")

        staging = self.root / f"{MIGRATION_STAGING_PREFIX}{uuid.uuid4().hex[:8]}"
        journal = _Journal()
        try:
            self._execute(plan, staging, journal)
        except (OSError, GitOperationError, MigrationError) as e:
            logger.error(f"Migration failed, rolling back: {e}")
            failures = journal.rollback()
            if failures:
                raise MigrationError(
                    f"migration failed ({e}) and rollback was incomplete: {', '.join(failures)}"
                ) from e
            raise MigrationError(f"migration failed and was rolled back: {e}") from e

        try:
            shutil.rmtree(staging)
        except OSError as e:
            logger.warning(f"Migration succeeded but staging directory {staging} was left behind: {e}")

        plan.executed = True
        logger.info(f"Migrated {self.root} to a bare hub")
        return plan

    def project(self) -> Project:
        return Project(root=self.root, engine_dir=self.engine_dir, pointer_file=self.pointer_file)

    def _rename(self, journal: _Journal, src: Path, dst: Path) -> None:
        os.rename(src, dst)
        journal.record(f"move {src} -> {dst}", lambda: os.rename(dst, src))

    def _execute(self, plan: MigrationPlan, staging: Path, journal: _Journal) -> None:
        git_dir = self.root / ".git"
        staged_engine = staging / self.engine_dir
        staged_worktree = staging / plan.worktree.name

        # Build phase: nothing outside the staging directory changes
        staging.mkdir()
        journal.record(f"create {staging}", lambda: shutil.rmtree(staging))

        shutil.copytree(git_dir, staged_engine, symlinks=True)
        self.gateway.config_set(staged_engine, "core.bare", "true")
        self.gateway.worktree_add(staged_engine, staged_worktree, branch=plan.branch, no_checkout=True)

        admin_dir = self._admin_dir(staged_worktree)
        old_index = staged_engine / "index"
        if old_index.exists():
            # Keep what was staged in the original working tree
            shutil.copy2(old_index, admin_dir / "index")
            old_index.unlink()

        # Swap phase: renames only
        self._rename(journal, git_dir, staging / ".git.orig")
        for entry in sorted(self.root.iterdir()):
            if entry == staging:
                continue
            self._rename(journal, entry, staged_worktree / entry.name)
        self._rename(journal, staged_engine, plan.engine)
        self._rename(journal, staged_worktree, plan.worktree)

        pointer = self.root / self.pointer_file
        pointer.write_text(self.project().pointer_text())
        journal.record(f"write {pointer}", lambda: pointer.unlink())

        # Relink the moved worktree with its admin record, then let git fix the rest
        moved_admin = plan.engine / "worktrees" / admin_dir.name
        (plan.worktree / ".git").write_text(f"gitdir: {moved_admin}\n")
        (moved_admin / "gitdir").write_text(f"{plan.worktree / '.git'}\n")
        self.gateway.worktree_repair(plan.engine, [plan.worktree, *plan.linked_worktrees])

    @staticmethod
    def _admin_dir(worktree: Path) -> Path:
        target = parse_pointer_file((worktree / ".git").read_text())
        if target is None:
            raise MigrationError(f"'{worktree / '.git'}' does not name an admin directory")
        return canonical(worktree / target)
