"""Worktree lifecycle management for bare-hub projects."""

import os
import shutil
import subprocess
import uuid
from pathlib import Path
from typing import List, Optional, Sequence, Union, TYPE_CHECKING

from worktree_hub.constants import RUN_WORKTREE_PREFIX
from worktree_hub.exceptions import (
    BranchNotFoundError,
    CommandLaunchError,
    GitOperationError,
    NameConflictError,
    NotAProjectError,
    StaleMetadataError,
    UnsafeOverwriteError,
    WorktreeNotFoundError,
)
from worktree_hub.logging_config import get_logger
from worktree_hub.models.project import Project
from worktree_hub.models.worktree import Commit, StashEntry, Worktree, WorktreeStatus
from worktree_hub.services.git.gateway import RepositoryGateway
from worktree_hub.services.git.operations import GitGateway
from worktree_hub.services.migration import InPlaceMigration, MigrationPlan, branch_dir_name
from worktree_hub.services.project_service import locate_project
from worktree_hub.services.sync_service import SyncResult, SyncService
from worktree_hub.utils.paths import canonical, is_within

if TYPE_CHECKING:
    from worktree_hub.config import Config

logger = get_logger(__name__)


class WorktreeLifecycleManager:
    """Creates, inspects and removes the worktrees of one project.

    Every git interaction goes through ``gateway``. ``cwd`` is the
    process's working directory at invocation time and decides which
    worktree counts as current.
    """

    def __init__(
        self,
        gateway: Optional[RepositoryGateway] = None,
        config: Optional[Union["Config", dict]] = None,
        project: Optional[Project] = None,
        cwd: Optional[Union[str, Path]] = None,
    ):
        self.config = config or {}
        self.gateway = gateway or GitGateway(self.config)
        self.project = project
        self.cwd = canonical(cwd if cwd is not None else os.getcwd())
        self.engine_dir = self.config.get("engine_dir", ".bare")
        self.pointer_file = self.config.get("pointer_file", ".git")
        self.main_branch = self.config.get("main_branch", "main")
        self.dev_branch = self.config.get("dev_branch", "dev")
        self.remote = self.config.get("remote", "origin")

    @classmethod
    def discover(
        cls,
        start: Optional[Union[str, Path]] = None,
        gateway: Optional[RepositoryGateway] = None,
        config: Optional[Union["Config", dict]] = None,
    ) -> "WorktreeLifecycleManager":
        """Build a manager for the project containing ``start`` (default: cwd)."""
        start = start if start is not None else os.getcwd()
        project = locate_project(start, config)
        return cls(gateway=gateway, config=config, project=project, cwd=start)

    def _require_project(self) -> Project:
        if self.project is None:
            raise NotAProjectError(str(self.cwd), "no project loaded")
        return self.project

    # Creation

    def init(
        self,
        project_root: Union[str, Path],
        source_url: Optional[str] = None,
        name: Optional[str] = None,
        force: bool = False,
    ) -> Project:
        """Create a project: the engine, the pointer file and the root directory.

        Args:
            project_root: Directory to create the project in (or under, with ``name``)
            source_url: Clone this repository into the engine; empty engine when None
            name: Subdirectory of ``project_root`` to use as the project root
            force: Initialize even when the root already holds other files

        Returns:
            The new (or already existing) Project

        Raises:
            NameConflictError: the root is not empty and ``force`` is not set
        """
        root = canonical(Path(project_root) / name if name else project_root)
        project = Project(root=root, engine_dir=self.engine_dir, pointer_file=self.pointer_file)

        if root.exists():
            try:
                existing = locate_project(root, self.config)
            except NotAProjectError:
                existing = None
            if existing is not None and existing.root == root:
                logger.info(f"{root} is already a project")
                self.project = existing
                return existing

            if any(root.iterdir()):
                if not force:
                    raise NameConflictError(root.name, "directory is not empty (use --force)")
                for entry in (project.engine, project.pointer):
                    if entry.exists():
                        raise NameConflictError(root.name, f"'{entry.name}' already exists")

        created_root = not root.exists()
        root.mkdir(parents=True, exist_ok=True)
        try:
            if source_url:
                self.gateway.clone_bare(source_url, project.engine)
            else:
                self.gateway.init_bare(project.engine, self.main_branch)
            project.pointer.write_text(project.pointer_text())

            if source_url:
                # Bare clones map remote branches straight onto local ones; restore tracking refs
                self.gateway.config_set(
                    project.engine, f"remote.{self.remote}.fetch", f"+refs/heads/*:refs/remotes/{self.remote}/*"
                )
                self.gateway.fetch(project.engine, self.remote)
        except Exception:
            if created_root:
                shutil.rmtree(root, ignore_errors=True)
            raise

        logger.info(f"Initialized project at {root}")
        self.project = project
        return project

    def setup(self) -> List[str]:
        """Make sure the main and dev worktrees exist.

        Returns:
            Names of the worktrees created; empty when both already existed
        """
        project = self._require_project()
        existing = {wt.name for wt in self.list()}
        created = []

        main_name = branch_dir_name(self.main_branch)
        if main_name not in existing:
            path = self._free_path(main_name)
            if not self.gateway.has_commits(project.engine):
                self.gateway.worktree_add(project.engine, path, new_branch=self.main_branch, orphan=True)
            else:
                self._add_for_branch(project, path, self.main_branch, fallback_start="HEAD")
            created.append(main_name)

        dev_name = branch_dir_name(self.dev_branch)
        if dev_name not in existing:
            path = self._free_path(dev_name)
            if not self.gateway.has_commits(project.engine):
                self.gateway.worktree_add(project.engine, path, new_branch=self.dev_branch, orphan=True)
            else:
                self._add_for_branch(project, path, self.dev_branch, fallback_start=self.main_branch)
            created.append(dev_name)

        if created:
            logger.info(f"Setup created worktrees: {', '.join(created)}")
        else:
            logger.info("Setup: main and dev worktrees already exist")
        return created

    def _add_for_branch(self, project: Project, path: Path, branch: str, fallback_start: Optional[str]) -> None:
        """Check out ``branch`` at ``path``: local, else tracking the remote, else new from ``fallback_start``."""
        engine = project.engine
        if self.gateway.local_branch_exists(engine, branch):
            self.gateway.worktree_add(engine, path, branch=branch)
        elif self.gateway.remote_branch_exists(engine, self.remote, branch):
            self.gateway.worktree_add(engine, path, new_branch=branch, start_point=f"{self.remote}/{branch}")
        elif fallback_start is not None:
            self.gateway.worktree_add(engine, path, new_branch=branch, start_point=fallback_start)
        else:
            raise BranchNotFoundError(branch)

    def _validate_name(self, name: str) -> None:
        project = self._require_project()
        if not name or not name.strip():
            raise NameConflictError(name, "name cannot be empty")
        if "/" in name or "\\" in name or name in (".", ".."):
            raise NameConflictError(name, "worktrees are flat peers; the name must be a single directory name")
        if name in (project.engine_dir, project.pointer_file):
            raise NameConflictError(name, "name is reserved for the engine")

    def _free_path(self, name: str) -> Path:
        """Path for a new worktree called ``name``, checked against collisions."""
        self._validate_name(name)
        project = self._require_project()
        if any(wt.name == name for wt in self.list()):
            raise NameConflictError(name)
        path = project.worktree_path(name)
        if path.exists() or path.is_symlink():
            raise NameConflictError(name, f"'{path}' already exists")
        return path

    def add(self, name: str, branch: Optional[str] = None) -> Worktree:
        """Create worktree ``name`` as a peer directory under the project root.

        With ``branch``, that branch is checked out; a branch that only exists
        on the remote gets a local tracking branch. Without it, the branch
        called ``name`` is used, created from the main branch when missing.

        Raises:
            NameConflictError: ``name`` is taken or is not a plain directory name
            BranchNotFoundError: ``branch`` exists neither locally nor on the remote
        """
        project = self._require_project()
        path = self._free_path(name)

        if not self.gateway.has_commits(project.engine):
            self.gateway.worktree_add(project.engine, path, new_branch=branch or name, orphan=True)
        elif branch:
            self._add_for_branch(project, path, branch, fallback_start=None)
        else:
            start = self.main_branch if self.gateway.local_branch_exists(project.engine, self.main_branch) else "HEAD"
            self._add_for_branch(project, path, name, fallback_start=start)

        logger.info(f"Added worktree '{name}' at {path}")
        return self.get(name)

    # Lookup

    def list(self) -> List[Worktree]:
        """Registered worktrees (the engine itself excluded), current one marked."""
        project = self._require_project()
        worktrees = []
        for record in self.gateway.worktree_list(project.engine):
            if record.bare:
                continue
            path = Path(record.path)
            worktrees.append(
                Worktree(
                    name=path.name,
                    path=path,
                    branch=record.branch,
                    head=record.head,
                    is_current=is_within(self.cwd, path),
                    exists=path.is_dir(),
                )
            )
        return worktrees

    def get(self, name: str) -> Worktree:
        """Find a worktree by directory name, then by exact branch name."""
        worktrees = self.list()
        for wt in worktrees:
            if wt.name == name:
                return wt
        for wt in worktrees:
            if wt.branch == name:
                return wt
        raise WorktreeNotFoundError(name)

    def current(self) -> Optional[Worktree]:
        """The worktree containing the working directory, if any."""
        for wt in self.list():
            if wt.is_current:
                return wt
        return None

    def switch(self, name: str) -> Path:
        """Resolve the absolute path of worktree ``name`` without changing anything.

        Raises:
            WorktreeNotFoundError: no worktree matches ``name``
            StaleMetadataError: the worktree is registered but its directory is gone
        """
        wt = self.get(name)
        if not wt.exists:
            raise StaleMetadataError(wt.name, f"directory '{wt.path}' no longer exists (run clean)")
        return wt.path

    # Mutation of existing worktrees

    def remove(self, name: str, force: bool = False) -> Worktree:
        """Unregister worktree ``name`` and delete its directory.

        Raises:
            UnsafeOverwriteError: the worktree has uncommitted changes and ``force`` is not set
        """
        project = self._require_project()
        wt = self.get(name)

        if not wt.exists:
            # Nothing left on disk; only the admin record remains
            logger.info(f"Directory of '{wt.name}' is already gone, pruning its record")
            self.gateway.worktree_prune(project.engine)
            return wt

        if not force and self.gateway.status(wt.path).is_dirty:
            raise UnsafeOverwriteError(wt.name, "remove", "--force")

        self.gateway.worktree_remove(project.engine, wt.path, force=force)
        logger.info(f"Removed worktree '{wt.name}'")
        return wt

    def checkout(self, name: str, branch: str, discard: bool = False) -> Worktree:
        """Point worktree ``name`` at ``branch``.

        Raises:
            UnsafeOverwriteError: uncommitted changes exist and ``discard`` is not set
            BranchNotFoundError: ``branch`` exists neither locally nor on the remote
        """
        project = self._require_project()
        wt = self.get(name)

        if not discard and self.gateway.status(wt.path).is_dirty:
            raise UnsafeOverwriteError(wt.name, "checkout", "--discard")

        if not (
            self.gateway.local_branch_exists(project.engine, branch)
            or self.gateway.remote_branch_exists(project.engine, self.remote, branch)
        ):
            raise BranchNotFoundError(branch)

        self.gateway.checkout(wt.path, branch, force=discard)
        logger.info(f"Worktree '{wt.name}' now on '{branch}'")
        return self.get(wt.name)

    # Conversion

    def convert(
        self,
        existing_repo: Union[str, Path],
        name: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> Project:
        """Build a new hub next to a standard repository, leaving the original untouched.

        Args:
            existing_repo: Root of the standard repository
            name: Directory name of the hub (default ``<repo>-hub``)
            branch: Branch for the initial worktree (default: the checked-out branch)

        Returns:
            The new Project
        """
        repo = canonical(existing_repo)
        git_dir = repo / ".git"
        if not git_dir.is_dir():
            raise NotAProjectError(str(repo), "not the root of a standard repository (no .git directory)")

        if branch is None:
            branch = self.gateway.status(repo).branch
            if not branch:
                raise GitOperationError("convert", str(repo), "HEAD is detached; pass a branch")

        hub = repo.parent / (name or f"{repo.name}-hub")
        if hub.exists():
            raise NameConflictError(hub.name, f"'{hub}' already exists")

        project = Project(root=hub, engine_dir=self.engine_dir, pointer_file=self.pointer_file)
        hub.mkdir(parents=True)
        try:
            self.gateway.clone_bare(str(repo), project.engine)
            project.pointer.write_text(project.pointer_text())

            origin_url = self.gateway.config_get(git_dir, f"remote.{self.remote}.url")
            if origin_url:
                self.gateway.config_set(project.engine, f"remote.{self.remote}.url", origin_url)
            self.gateway.config_set(
                project.engine, f"remote.{self.remote}.fetch", f"+refs/heads/*:refs/remotes/{self.remote}/*"
            )
            if origin_url is None:
                # Track the original repository's branches as the remote
                self.gateway.fetch(project.engine, self.remote)

            self.project = project
            self._add_for_branch(project, project.worktree_path(branch_dir_name(branch)), branch, None)
        except Exception:
            shutil.rmtree(hub, ignore_errors=True)
            self.project = None
            raise

        logger.info(f"Converted {repo} into hub {hub}")
        return project

    def migrate(
        self, repo_path: Optional[Union[str, Path]] = None, force: bool = False, dry_run: bool = False
    ) -> MigrationPlan:
        """Turn the standard repository at ``repo_path`` (default: cwd) into a hub in place."""
        migration = InPlaceMigration(repo_path if repo_path is not None else self.cwd, self.gateway, self.config)
        plan = migration.run(force=force, dry_run=dry_run)
        if plan.executed:
            self.project = migration.project()
        return plan

    # Inspection

    def status(self, name: str) -> WorktreeStatus:
        return self.gateway.status(self.get(name).path)

    def history(self, name: str, limit: Optional[int] = None) -> List[Commit]:
        limit = limit or self.config.get("history_limit", 50)
        return self.gateway.log(self.get(name).path, limit)

    def diff(self, name: str) -> str:
        """Staged diff when anything is staged, otherwise the unstaged diff."""
        wt = self.get(name)
        staged = bool(self.gateway.status(wt.path).staged)
        return self.gateway.diff(wt.path, staged=staged)

    def branches(self, include_remote: bool = False) -> List[str]:
        """Local branch names, followed by remote-only ones when ``include_remote``."""
        project = self._require_project()
        local = self.gateway.list_branches(project.engine)
        if not include_remote:
            return local
        known = set(local)
        remote = [b for b in self.gateway.list_branches(project.engine, remote=self.remote) if b not in known]
        return local + remote

    # Remote operations

    def fetch(self, name: str) -> None:
        self.gateway.fetch(self.get(name).path)

    def pull(self, name: str) -> None:
        self.gateway.pull(self.get(name).path)

    def push(self, name: str) -> None:
        """Push the worktree's branch, setting the upstream on first push."""
        wt = self.get(name)
        status = self.gateway.status(wt.path)
        if not status.branch:
            raise GitOperationError("push", wt.name, "HEAD is detached")
        self.gateway.push(wt.path, self.remote, status.branch, set_upstream=status.upstream is None)

    def rebase(self, name: str, upstream: Optional[str] = None) -> None:
        self.gateway.rebase(self.get(name).path, upstream or self.main_branch)

    # Index, commits and stashes

    def stage_all(self, name: str) -> None:
        self.gateway.stage(self.get(name).path)

    def unstage_all(self, name: str) -> None:
        self.gateway.unstage(self.get(name).path)

    def stage_file(self, name: str, path: str) -> None:
        self.gateway.stage(self.get(name).path, [path])

    def unstage_file(self, name: str, path: str) -> None:
        self.gateway.unstage(self.get(name).path, [path])

    def commit(self, name: str, message: str) -> None:
        if not message or not message.strip():
            raise GitOperationError("commit", name, "commit message cannot be empty")
        self.gateway.commit(self.get(name).path, message.strip())

    def stash_save(self, name: str, message: str, include_untracked: Optional[bool] = None) -> bool:
        if include_untracked is None:
            include_untracked = self.config.get("include_untracked", True)
        return self.gateway.stash_save(self.get(name).path, message, include_untracked)

    def stash_list(self, name: str) -> List[StashEntry]:
        return self.gateway.stash_list(self.get(name).path)

    def stash_apply(self, name: str, ref: str, sha: Optional[str] = None) -> None:
        # The commit names the entry even if other stashes were pushed since it was listed
        self.gateway.stash_apply(self.get(name).path, sha or ref)

    def stash_pop(self, name: str, ref: str, sha: Optional[str] = None) -> None:
        self.gateway.stash_pop(self.get(name).path, ref, expected_sha=sha)

    def stash_drop(self, name: str, ref: str, sha: Optional[str] = None) -> None:
        self.gateway.stash_drop(self.get(name).path, ref, expected_sha=sha)

    # Throwaway worktrees

    def run(self, command: Sequence[str], branch: Optional[str] = None, name: Optional[str] = None) -> int:
        """Run ``command`` in a temporary worktree that is always removed afterwards.

        The worktree is detached at ``branch`` (default: the main branch) so
        a branch checked out elsewhere can still be used.

        Returns:
            The command's exit code

        Raises:
            CommandLaunchError: the command could not be started
        """
        project = self._require_project()
        if not command:
            raise ValueError("no command given")

        name = name or f"{RUN_WORKTREE_PREFIX}{uuid.uuid4().hex[:8]}"
        path = self._free_path(name)
        self.gateway.worktree_add(project.engine, path, branch=branch or self.main_branch, detach=True)
        logger.info(f"Running {' '.join(command)} in temporary worktree {path}")
        try:
            try:
                return subprocess.run(list(command), cwd=path).returncode
            except OSError as e:
                raise CommandLaunchError(command[0], e.strerror or str(e)) from e
        finally:
            self.gateway.worktree_remove(project.engine, path, force=True)
            logger.info(f"Removed temporary worktree {path}")

    # Shared configuration

    def sync(self, name: Optional[str] = None) -> List[SyncResult]:
        """Apply the project's sync manifest to worktree ``name``, or to all of them."""
        project = self._require_project()
        worktrees = [self.get(name)] if name else self.list()
        return SyncService(project).sync(worktrees)
