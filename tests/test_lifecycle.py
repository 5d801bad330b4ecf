"""Tests for WorktreeLifecycleManager"""
import shutil
from pathlib import Path
from unittest.mock import Mock

import git
import pytest

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
from worktree_hub.models.worktree import WorktreeRecord, WorktreeStatus, FileChange
from worktree_hub.services.lifecycle import WorktreeLifecycleManager
from worktree_hub.services.project_service import locate_project

# worktree add --orphan arrived in git 2.42
requires_orphan_worktrees = pytest.mark.skipif(
    git.Git().version_info < (2, 42), reason="needs git 2.42 or newer for orphan worktrees"
)


class TestInit:
    """Test project creation."""

    @requires_orphan_worktrees
    def test_init_empty_project(self, temp_dir, config):
        manager = WorktreeLifecycleManager(config=config, cwd=temp_dir)
        project = manager.init(temp_dir, name="empty")

        assert project.engine.is_dir()
        assert project.pointer.read_text() == "gitdir: ./.bare\n"
        assert locate_project(project.root).root == project.root

        created = manager.setup()
        assert created == ["main", "dev"]
        names = [wt.name for wt in manager.list()]
        assert sorted(names) == ["dev", "main"]

    def test_init_is_idempotent(self, hub, config):
        manager = WorktreeLifecycleManager(config=config, cwd=hub.project.root)
        project = manager.init(hub.project.root)
        assert project.root == hub.project.root

    def test_init_refuses_non_empty_directory(self, temp_dir, config):
        root = temp_dir / "busy"
        root.mkdir()
        (root / "notes.txt").write_text("keep me\n")
        manager = WorktreeLifecycleManager(config=config, cwd=temp_dir)

        with pytest.raises(NameConflictError):
            manager.init(root)
        assert not (root / ".bare").exists()

        manager.init(root, force=True)
        assert (root / ".bare").is_dir()
        assert (root / "notes.txt").exists()

    def test_setup_is_idempotent(self, hub):
        assert hub.setup() == []


class TestAddSwitchRemove:
    """Test worktree creation, lookup and removal."""

    def test_list_marks_current(self, hub):
        worktrees = {wt.name: wt for wt in hub.list()}
        assert set(worktrees) == {"main", "dev"}
        assert worktrees["main"].is_current
        assert not worktrees["dev"].is_current
        assert worktrees["dev"].branch == "dev"

    def test_add_then_switch(self, hub):
        wt = hub.add("feature")
        path = hub.switch("feature")

        assert path == wt.path
        assert path.is_dir()
        assert path.parent == hub.project.root
        assert "feature" in [w.name for w in hub.list()]
        assert wt.branch == "feature"

    def test_add_existing_branch(self, hub):
        main_path = hub.switch("main")
        git.Repo(main_path).git.branch("topic")
        wt = hub.add("topic-wt", branch="topic")
        assert wt.branch == "topic"
        assert wt.path == hub.project.root / "topic-wt"

    def test_add_branch_checked_out_elsewhere(self, hub):
        with pytest.raises(GitOperationError):
            hub.add("other", branch="dev")

    def test_add_unknown_branch(self, hub):
        with pytest.raises(BranchNotFoundError):
            hub.add("x", branch="no-such-branch")
        assert not (hub.project.root / "x").exists()

    def test_add_name_conflicts(self, hub):
        with pytest.raises(NameConflictError):
            hub.add("main")
        with pytest.raises(NameConflictError):
            hub.add("nested/name")
        with pytest.raises(NameConflictError):
            hub.add(".bare")

        (hub.project.root / "occupied").mkdir()
        with pytest.raises(NameConflictError):
            hub.add("occupied")

    def test_get_by_branch_name(self, hub):
        assert hub.get("dev").name == "dev"
        with pytest.raises(WorktreeNotFoundError):
            hub.get("nothing")

    def test_switch_to_missing_directory(self, hub):
        shutil.rmtree(hub.project.root / "dev")
        with pytest.raises(StaleMetadataError):
            hub.switch("dev")

    def test_remove_clean(self, hub):
        hub.add("feature")
        hub.remove("feature")
        assert not (hub.project.root / "feature").exists()
        assert "feature" not in [wt.name for wt in hub.list()]

    def test_remove_dirty_requires_force(self, hub):
        wt = hub.add("feature")
        (wt.path / "wip.txt").write_text("work in progress\n")

        with pytest.raises(UnsafeOverwriteError) as exc_info:
            hub.remove("feature")
        assert "--force" in str(exc_info.value)
        assert (wt.path / "wip.txt").exists()

        hub.remove("feature", force=True)
        assert not wt.path.exists()

    def test_remove_missing_directory_prunes(self, hub):
        shutil.rmtree(hub.project.root / "dev")
        hub.remove("dev")
        assert "dev" not in [wt.name for wt in hub.list()]


class TestCheckout:
    """Test pointing a worktree at another branch."""

    def test_checkout_dirty_requires_discard(self, hub):
        main_path = hub.switch("main")
        git.Repo(main_path).git.branch("topic")
        wt = hub.add("feature")
        (wt.path / "README.md").write_text("edited\n")

        with pytest.raises(UnsafeOverwriteError) as exc_info:
            hub.checkout("feature", "topic")
        assert "--discard" in str(exc_info.value)

        updated = hub.checkout("feature", "topic", discard=True)
        assert updated.branch == "topic"

    def test_checkout_unknown_branch(self, hub):
        with pytest.raises(BranchNotFoundError):
            hub.checkout("dev", "no-such-branch")

    def test_branches_lists_remote_only_ones_last(self, hub, git_repo):
        git_repo.git.branch("upstream-only")
        hub.fetch("main")

        assert hub.branches() == ["dev", "main"]
        assert hub.branches(include_remote=True) == ["dev", "main", "upstream-only"]

    def test_checkout_remote_only_branch(self, hub, git_repo):
        git_repo.git.branch("upstream-only")
        hub.fetch("main")
        hub.add("spare")

        assert hub.checkout("spare", "upstream-only").branch == "upstream-only"
        assert "upstream-only" in hub.branches()


class TestGitOperations:
    """Test per-worktree git operations."""

    def test_commit_and_history(self, hub):
        path = hub.switch("dev")
        (path / "feature.txt").write_text("feature\n")
        hub.stage_all("dev")
        assert [c.path for c in hub.status("dev").staged] == ["feature.txt"]
        assert "feature" in hub.diff("dev")

        hub.commit("dev", "Add feature")
        history = hub.history("dev", limit=5)
        assert history[0].subject == "Add feature"
        assert not hub.status("dev").is_dirty

    def test_empty_commit_message(self, hub):
        with pytest.raises(GitOperationError):
            hub.commit("dev", "   ")

    def test_fetch_and_rebase(self, hub, git_repo):
        # New upstream commit on main in the source repository
        source = Path(git_repo.working_dir)
        (source / "upstream.txt").write_text("upstream\n")
        git_repo.index.add(["upstream.txt"])
        git_repo.index.commit("Upstream change")

        hub.fetch("dev")
        hub.rebase("dev", upstream="origin/main")
        assert (hub.switch("dev") / "upstream.txt").exists()

    def test_push_sets_upstream(self, hub, git_repo):
        wt = hub.add("pushed")
        (wt.path / "p.txt").write_text("p\n")
        hub.stage_all("pushed")
        hub.commit("pushed", "Pushed work")

        hub.push("pushed")
        assert hub.status("pushed").upstream == "origin/pushed"
        assert "pushed" in [h.name for h in git_repo.heads]

    def test_run_removes_temporary_worktree(self, hub, temp_dir):
        marker = temp_dir / "ran.txt"
        code = hub.run(["sh", "-c", f"pwd > {marker}"], name="tmp-run")
        assert code == 0
        assert marker.read_text().strip().endswith("tmp-run")
        assert "tmp-run" not in [wt.name for wt in hub.list()]
        assert not (hub.project.root / "tmp-run").exists()

    def test_run_propagates_exit_code(self, hub):
        assert hub.run(["sh", "-c", "exit 3"]) == 3

    def test_run_unknown_command_still_removes_worktree(self, hub):
        with pytest.raises(CommandLaunchError) as exc_info:
            hub.run(["definitely-not-a-command-xyz"], name="tmp-missing")
        assert "definitely-not-a-command-xyz" in str(exc_info.value)
        assert not (hub.project.root / "tmp-missing").exists()
        assert "tmp-missing" not in [wt.name for wt in hub.list()]


class TestSync:
    """Test applying the sync manifest."""

    def test_symlink_and_copy(self, hub):
        root = hub.project.root
        (root / ".env").write_text("SECRET=1\n")
        (root / "config").mkdir()
        (root / "config" / "local.json").write_text("{}\n")
        (root / ".worktrees.sync").write_text(
            "# shared files\nsymlink .env\ncopy config\nmove nothing\ncopy missing.txt\nsymlink ../escape\n"
        )

        results = hub.sync()
        applied = sorted((r.worktree, r.action, r.path) for r in results)
        assert applied == [
            ("dev", "copy", "config"),
            ("dev", "symlink", ".env"),
            ("main", "copy", "config"),
            ("main", "symlink", ".env"),
        ]
        assert (root / "dev" / ".env").is_symlink()
        assert (root / "dev" / "config" / "local.json").is_file()

    def test_no_manifest(self, hub):
        assert hub.sync("dev") == []


class TestConvertAndMocks:
    """Test conversion and gateway-level behaviour with a scripted gateway."""

    def test_convert_leaves_original_untouched(self, git_repo, config):
        source = Path(git_repo.working_dir)
        manager = WorktreeLifecycleManager(config=config, cwd=source)
        project = manager.convert(source)

        assert project.root == source.parent / "test_repo-hub"
        assert (source / ".git").is_dir()
        assert [wt.name for wt in manager.list()] == ["main"]
        assert (project.root / "main" / "README.md").exists()

    def test_convert_requires_standard_repository(self, temp_dir, config):
        manager = WorktreeLifecycleManager(config=config, cwd=temp_dir)
        with pytest.raises(NotAProjectError):
            manager.convert(temp_dir)

    def test_list_skips_bare_entry(self, mock_gateway, fake_project, config):
        main = fake_project.root / "main"
        main.mkdir()
        mock_gateway.worktree_list.return_value = [
            WorktreeRecord(path=str(fake_project.engine), bare=True),
            WorktreeRecord(path=str(main), head="abc", branch="main"),
            WorktreeRecord(path=str(fake_project.root / "gone"), head="def", branch="gone"),
        ]
        manager = WorktreeLifecycleManager(mock_gateway, config, fake_project, cwd=main)

        worktrees = manager.list()
        assert [(wt.name, wt.exists, wt.is_current) for wt in worktrees] == [
            ("main", True, True),
            ("gone", False, False),
        ]

    def test_remove_checks_status_before_removing(self, mock_gateway, fake_project, config):
        feature = fake_project.root / "feature"
        feature.mkdir()
        mock_gateway.worktree_list.return_value = [WorktreeRecord(path=str(feature), head="a", branch="feature")]
        mock_gateway.status.return_value = WorktreeStatus(changes=[FileChange(path="x", index_status="?", worktree_status="?")])
        manager = WorktreeLifecycleManager(mock_gateway, config, fake_project, cwd=fake_project.root)

        with pytest.raises(UnsafeOverwriteError):
            manager.remove("feature")
        mock_gateway.worktree_remove.assert_not_called()

    def test_operations_require_a_project(self, config, temp_dir):
        manager = WorktreeLifecycleManager(Mock(), config, project=None, cwd=temp_dir)
        with pytest.raises(NotAProjectError):
            manager.list()
