"""Git command-line gateway built on GitPython's process runner."""

import git
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union, TYPE_CHECKING

from worktree_hub.exceptions import (
    GitCommandFailedError,
    GitNotFoundError,
    PathNotFoundError,
    RebaseConflictError,
    StashMovedError,
)
from worktree_hub.logging_config import get_logger
from worktree_hub.models.worktree import (
    AdminRecord,
    Commit,
    StashEntry,
    WorktreeRecord,
    WorktreeStatus,
)
from worktree_hub.services.git.gateway import RepositoryGateway
from worktree_hub.services.git.parsing import (
    LOG_FORMAT,
    STASH_FORMAT,
    parse_gitdir_file,
    parse_log,
    parse_stash_list,
    parse_status,
    parse_worktree_list,
)

if TYPE_CHECKING:
    from worktree_hub.config import Config

logger = get_logger(__name__)

# Background workers have no terminal: never prompt, never open an editor
GIT_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_EDITOR": "true",
    "GIT_SEQUENCE_EDITOR": "true",
    "GIT_MERGE_AUTOEDIT": "no",
    "GIT_OPTIONAL_LOCKS": "0",
}


class GitGateway(RepositoryGateway):
    """Production gateway that runs the git executable."""

    def __init__(self, config: Optional[Union["Config", dict]] = None):
        """Initialize the gateway.

        Args:
            config: Configuration dictionary or Config object; ``git_timeout``
                and ``git_executable`` are honoured
        """
        config = config or {}
        self.executable = config.get("git_executable") or "git"
        self.timeout = config.get("git_timeout", 300.0)

    def _run(
        self,
        operation: str,
        cwd: Path,
        args: Sequence[str],
        target: Optional[str] = None,
        ok_statuses: Tuple[int, ...] = (0,),
    ) -> Tuple[int, str]:
        """Run git in ``cwd`` and return (status, stdout).

        Raises:
            PathNotFoundError: ``cwd`` does not exist
            GitNotFoundError: the git executable could not be started
            GitCommandFailedError: git exited with a status outside ``ok_statuses``
        """
        cwd = Path(cwd)
        if not cwd.is_dir():
            raise PathNotFoundError(operation, str(cwd))

        command = [self.executable, *args]
        logger.debug(f"Running {' '.join(command)} in {cwd}")
        try:
            status, stdout, stderr = git.Git(str(cwd)).execute(
                command,
                with_extended_output=True,
                with_exceptions=False,
                kill_after_timeout=self.timeout,
                strip_newline_in_stdout=False,
                env=GIT_ENV,
            )
        except git.exc.GitCommandNotFound as e:
            logger.error(f"git executable '{self.executable}' not found: {e}")
            raise GitNotFoundError(operation, self.executable) from e

        if status not in ok_statuses:
            logger.debug(f"git {operation} failed (exit {status}): {stderr}")
            raise GitCommandFailedError(operation, status, stderr or "", target)
        return status, stdout or ""

    def _output(self, operation: str, cwd: Path, args: Sequence[str], target: Optional[str] = None) -> str:
        return self._run(operation, cwd, args, target)[1]

    @staticmethod
    def _git_dir_args(git_dir: Path) -> List[str]:
        return [f"--git-dir={git_dir}"]

    # Repository creation

    def init_bare(self, path: Path, initial_branch: str) -> None:
        path = Path(path)
        self._output("init", path.parent, ["init", "--bare", "--quiet", "--", str(path)], str(path))
        self._output(
            "init",
            path,
            [*self._git_dir_args(path), "symbolic-ref", "HEAD", f"refs/heads/{initial_branch}"],
            str(path),
        )
        logger.info(f"Initialized bare repository at {path}")

    def clone_bare(self, source: str, path: Path) -> None:
        path = Path(path)
        self._output("clone", path.parent, ["clone", "--bare", "--quiet", "--", source, str(path)], source)
        logger.info(f"Cloned {source} into {path}")

    def config_get(self, git_dir: Path, key: str) -> Optional[str]:
        status, stdout = self._run(
            "config", git_dir, [*self._git_dir_args(git_dir), "config", "--get", key], key, ok_statuses=(0, 1)
        )
        if status == 1:
            return None
        return stdout.strip()

    def config_set(self, git_dir: Path, key: str, value: str) -> None:
        self._output("config", git_dir, [*self._git_dir_args(git_dir), "config", key, value], key)

    def git_dir(self, cwd: Path) -> Path:
        return Path(self._output("rev-parse", cwd, ["rev-parse", "--absolute-git-dir"]).strip())

    # Worktrees

    def worktree_list(self, engine: Path) -> List[WorktreeRecord]:
        output = self._output(
            "worktree list", engine, [*self._git_dir_args(engine), "worktree", "list", "--porcelain", "-z"]
        )
        records = parse_worktree_list(output)
        logger.debug(f"Found {len(records)} worktree entries")
        return records

    def admin_records(self, engine: Path) -> List[AdminRecord]:
        engine = Path(engine)
        if not engine.is_dir():
            raise PathNotFoundError("admin records", str(engine))

        admin_root = engine / "worktrees"
        if not admin_root.is_dir():
            return []

        records = []
        for admin_dir in sorted(p for p in admin_root.iterdir() if p.is_dir()):
            record = AdminRecord(name=admin_dir.name, admin_dir=admin_dir)
            gitdir_file = admin_dir / "gitdir"
            try:
                record.gitdir = parse_gitdir_file(gitdir_file.read_text(), admin_dir)
                if record.gitdir is None:
                    record.problem = "empty gitdir file"
            except FileNotFoundError:
                record.problem = "missing gitdir file"
            except (OSError, UnicodeDecodeError) as e:
                record.problem = f"unreadable gitdir file: {e}"
            records.append(record)
        return records

    def worktree_add(
        self,
        engine: Path,
        path: Path,
        branch: Optional[str] = None,
        new_branch: Optional[str] = None,
        start_point: Optional[str] = None,
        orphan: bool = False,
        detach: bool = False,
        no_checkout: bool = False,
    ) -> None:
        args = [*self._git_dir_args(engine), "worktree", "add", "--quiet"]
        if no_checkout:
            args.append("--no-checkout")
        if orphan:
            args.append("--orphan")
        if detach:
            args.append("--detach")
        if new_branch:
            args.extend(["-b", new_branch])
        args.extend(["--", str(path)])
        if not orphan:
            if new_branch and start_point:
                args.append(start_point)
            elif not new_branch and branch:
                args.append(branch)

        self._output("worktree add", engine, args, str(path))
        logger.info(f"Added worktree at {path}")

    def worktree_remove(self, engine: Path, path: Path, force: bool = False) -> None:
        args = [*self._git_dir_args(engine), "worktree", "remove"]
        if force:
            args.append("--force")
        args.append(str(path))
        self._output("worktree remove", engine, args, str(path))
        logger.info(f"Removed worktree at {path}")

    def worktree_prune(self, engine: Path) -> None:
        self._output("worktree prune", engine, [*self._git_dir_args(engine), "worktree", "prune"])
        logger.info("Pruned stale worktree metadata")

    def worktree_repair(self, engine: Path, paths: Sequence[Path]) -> None:
        args = [*self._git_dir_args(engine), "worktree", "repair", *[str(p) for p in paths]]
        self._output("worktree repair", engine, args)

    # Branches

    def _ref_exists(self, cwd: Path, ref: str) -> bool:
        status, _ = self._run("show-ref", cwd, ["show-ref", "--verify", "--quiet", ref], ref, ok_statuses=(0, 1))
        return status == 0

    def local_branch_exists(self, cwd: Path, branch: str) -> bool:
        return self._ref_exists(cwd, f"refs/heads/{branch}")

    def remote_branch_exists(self, cwd: Path, remote: str, branch: str) -> bool:
        return self._ref_exists(cwd, f"refs/remotes/{remote}/{branch}")

    def list_branches(self, cwd: Path, remote: Optional[str] = None) -> List[str]:
        prefix = f"refs/remotes/{remote}" if remote else "refs/heads"
        out = self._output(
            "for-each-ref", cwd, ["for-each-ref", "--sort=refname", "--format=%(refname)", prefix]
        )
        names = [line[len(prefix) + 1:] for line in out.splitlines() if line.startswith(prefix + "/")]
        return [name for name in names if name != "HEAD"]

    def has_commits(self, cwd: Path) -> bool:
        return bool(self._output("rev-list", cwd, ["rev-list", "-n", "1", "--all"]).strip())

    def checkout(self, cwd: Path, branch: str, force: bool = False) -> None:
        args = ["checkout", "--quiet"]
        if force:
            args.append("--force")
        args.append(branch)
        self._output("checkout", cwd, args, branch)

    # Inspection

    def status(self, cwd: Path) -> WorktreeStatus:
        output = self._output("status", cwd, ["status", "--porcelain=v2", "--branch", "-z"], str(cwd))
        return parse_status(output)

    def diff(self, cwd: Path, staged: bool = False) -> str:
        args = ["diff", "--no-color", "--no-ext-diff"]
        if staged:
            args.append("--cached")
        return self._output("diff", cwd, args, str(cwd))

    def log(self, cwd: Path, limit: int, ref: Optional[str] = None) -> List[Commit]:
        if not self.has_commits(cwd):
            return []
        args = ["log", f"--max-count={limit}", f"--format={LOG_FORMAT}"]
        if ref:
            args.extend([ref, "--"])
        return parse_log(self._output("log", cwd, args, ref))

    # Remote operations

    def fetch(self, cwd: Path, remote: Optional[str] = None, prune: bool = True) -> None:
        args = ["fetch", "--quiet"]
        args.append(remote if remote else "--all")
        if prune:
            args.append("--prune")
        self._output("fetch", cwd, args, remote)

    def pull(self, cwd: Path) -> None:
        self._output("pull", cwd, ["pull", "--quiet"], str(cwd))

    def push(self, cwd: Path, remote: str, branch: str, set_upstream: bool = False) -> None:
        args = ["push", "--quiet"]
        if set_upstream:
            args.append("--set-upstream")
        args.extend([remote, branch])
        self._output("push", cwd, args, branch)

    def rebase(self, cwd: Path, upstream: str) -> None:
        try:
            self._output("rebase", cwd, ["rebase", "--quiet", upstream], upstream)
        except GitCommandFailedError as e:
            conflicts = self._conflict_diff(cwd)
            # Leave the worktree as it was before the rebase started
            try:
                self._output("rebase --abort", cwd, ["rebase", "--abort"])
            except GitCommandFailedError as abort_error:
                logger.warning(f"Could not abort rebase in {cwd}: {abort_error}")
            if conflicts:
                raise RebaseConflictError(e, conflicts) from e
            raise

    def _conflict_diff(self, cwd: Path) -> str:
        """Diff of the unmerged paths of a stopped rebase, or "" when there are none."""
        try:
            unmerged = self._output("diff", cwd, ["diff", "--name-only", "--diff-filter=U"]).splitlines()
            if not unmerged:
                return ""
            return self._output("diff", cwd, ["diff", "--", *unmerged])
        except GitCommandFailedError as e:
            logger.debug(f"Could not read conflicts in {cwd}: {e}")
            return ""

    # Index and commits

    def stage(self, cwd: Path, paths: Optional[Sequence[str]] = None) -> None:
        args = ["add", "--all", "--"]
        args.extend(paths if paths else ["."])
        self._output("add", cwd, args)

    def unstage(self, cwd: Path, paths: Optional[Sequence[str]] = None) -> None:
        targets = list(paths) if paths else ["."]
        if self.has_commits(cwd):
            self._output("reset", cwd, ["reset", "--quiet", "--", *targets])
        else:
            # No HEAD to reset to: drop the entries from the index instead
            self._output("rm --cached", cwd, ["rm", "--cached", "-r", "--quiet", "--", *targets])

    def commit(self, cwd: Path, message: str) -> None:
        self._output("commit", cwd, ["commit", "--quiet", "-m", message], str(cwd))

    # Stashes

    def _stash_head(self, cwd: Path) -> Optional[str]:
        status, stdout = self._run(
            "rev-parse", cwd, ["rev-parse", "--verify", "--quiet", "refs/stash"], ok_statuses=(0, 1)
        )
        return stdout.strip() if status == 0 else None

    def stash_save(self, cwd: Path, message: str, include_untracked: bool = False) -> bool:
        before = self._stash_head(cwd)
        args = ["stash", "push", "--quiet"]
        if include_untracked:
            args.append("--include-untracked")
        args.extend(["-m", message])
        self._output("stash push", cwd, args, str(cwd))
        created = self._stash_head(cwd) != before
        if not created:
            logger.debug(f"Nothing to stash in {cwd}")
        return created

    def stash_list(self, cwd: Path) -> List[StashEntry]:
        output = self._output("stash list", cwd, ["stash", "list", "-z", f"--format={STASH_FORMAT}"])
        return parse_stash_list(output)

    def stash_apply(self, cwd: Path, ref: str) -> None:
        self._output("stash apply", cwd, ["stash", "apply", "--quiet", ref], ref)

    def _check_stash_ref(self, operation: str, cwd: Path, ref: str, expected_sha: Optional[str]) -> None:
        if expected_sha is None:
            return
        status, stdout = self._run(
            "rev-parse", cwd, ["rev-parse", "--verify", "--quiet", ref], ok_statuses=(0, 1)
        )
        if status != 0 or stdout.strip() != expected_sha:
            raise StashMovedError(operation, ref, expected_sha)

    def stash_pop(self, cwd: Path, ref: str, expected_sha: Optional[str] = None) -> None:
        self._check_stash_ref("stash pop", cwd, ref, expected_sha)
        self._output("stash pop", cwd, ["stash", "pop", "--quiet", ref], ref)

    def stash_drop(self, cwd: Path, ref: str, expected_sha: Optional[str] = None) -> None:
        self._check_stash_ref("stash drop", cwd, ref, expected_sha)
        self._output("stash drop", cwd, ["stash", "drop", "--quiet", ref], ref)
