"""Tests for in-place migration"""
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from worktree_hub.exceptions import MigrationError, NotAProjectError, UnsafeOverwriteError
from worktree_hub.models.project import RepoStatus
from worktree_hub.services.git.operations import GitGateway
from worktree_hub.services.migration import InPlaceMigration, branch_dir_name
from worktree_hub.services.project_service import detect_repo_status, locate_project


def snapshot(root: Path):
    """Every path under ``root`` with its size and mtime."""
    entries = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            stat = path.lstat()
            entries[str(path.relative_to(root))] = (stat.st_size, stat.st_mtime_ns)
    return entries


@pytest.fixture
def repo_root(git_repo):
    return Path(git_repo.working_dir)


class TestBranchDirName:
    def test_slashes_become_dashes(self):
        assert branch_dir_name("feature/login") == "feature-login"
        assert branch_dir_name("main") == "main"


class TestMigrationPlan:
    """Test planning and dry runs."""

    def test_dry_run_with_uncommitted_changes_changes_nothing(self, repo_root, config):
        (repo_root / "README.md").write_text("uncommitted\n")
        (repo_root / "new.txt").write_text("untracked\n")
        before = snapshot(repo_root)

        plan = InPlaceMigration(repo_root, GitGateway(config), config).run(force=False, dry_run=True)

        assert plan.executed is False
        assert plan.dirty is True
        assert plan.branch == "main"
        assert plan.worktree == repo_root / "main"
        assert plan.steps
        assert snapshot(repo_root) == before
        assert detect_repo_status(repo_root) == RepoStatus.STANDARD

    def test_dirty_repository_requires_force(self, repo_root, config):
        (repo_root / "README.md").write_text("uncommitted\n")
        before = snapshot(repo_root)

        with pytest.raises(UnsafeOverwriteError):
            InPlaceMigration(repo_root, GitGateway(config), config).run()
        assert snapshot(repo_root) == before

    def test_not_a_repository(self, temp_dir, config):
        with pytest.raises(NotAProjectError):
            InPlaceMigration(temp_dir, GitGateway(config), config).plan()

    def test_detached_head_is_refused(self, git_repo, repo_root, config):
        git_repo.git.checkout("--detach")
        with pytest.raises(MigrationError):
            InPlaceMigration(repo_root, GitGateway(config), config).plan()


class TestMigrationRun:
    """Test real migrations."""

    def test_clean_migration(self, repo_root, config):
        plan = InPlaceMigration(repo_root, GitGateway(config), config).run()

        assert plan.executed
        assert detect_repo_status(repo_root) == RepoStatus.BARE_HUB
        project = locate_project(repo_root)
        assert project.root == repo_root
        assert (repo_root / ".git").read_text() == "gitdir: ./.bare\n"
        assert (repo_root / "main" / "README.md").read_text() == "# Test Repository\n"
        assert not any(p.name.startswith(".worktree-hub-migrate-") for p in repo_root.iterdir())

        gateway = GitGateway(config)
        status = gateway.status(repo_root / "main")
        assert status.branch == "main"
        assert not status.is_dirty

    def test_forced_migration_keeps_uncommitted_work(self, repo_root, config):
        (repo_root / "README.md").write_text("uncommitted\n")
        (repo_root / "staged.txt").write_text("staged\n")
        gateway = GitGateway(config)
        gateway.stage(repo_root, ["staged.txt"])

        InPlaceMigration(repo_root, gateway, config).run(force=True)

        worktree = repo_root / "main"
        assert (worktree / "README.md").read_text() == "uncommitted\n"
        status = gateway.status(worktree)
        assert [c.path for c in status.staged] == ["staged.txt"]
        assert [c.path for c in status.unstaged] == ["README.md"]

    def test_failure_rolls_back(self, repo_root, config):
        gateway = GitGateway(config)
        before = snapshot(repo_root)

        with patch.object(GitGateway, "worktree_repair", side_effect=OSError("disk full")):
            with pytest.raises(MigrationError):
                InPlaceMigration(repo_root, gateway, config).run()

        assert detect_repo_status(repo_root) == RepoStatus.STANDARD
        assert sorted(snapshot(repo_root)) == sorted(before)
        assert not gateway.status(repo_root).is_dirty

    def test_existing_engine_is_refused(self, repo_root, config):
        (repo_root / ".bare").mkdir()
        with pytest.raises(MigrationError):
            InPlaceMigration(repo_root, GitGateway(config), config).plan()
