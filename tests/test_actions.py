"""Tests for ActionRunner"""
from pathlib import Path
from unittest.mock import Mock

import pytest

from worktree_hub.app.actions import ActionRunner
from worktree_hub.exceptions import GitCommandFailedError
from worktree_hub.models.worktree import Worktree, WorktreeStatus


def make_worktree(name, exists=True):
    return Worktree(name=name, path=Path("/p") / name, branch=name, head="abc", exists=exists)


@pytest.fixture
def lifecycle():
    return Mock()


@pytest.fixture
def runner(lifecycle):
    return ActionRunner(lifecycle, auditor=Mock(), teleport=Mock(), commit_messages=Mock())


class TestActionRunner:
    """Test operation dispatch."""

    def test_unknown_operation(self, runner):
        with pytest.raises(ValueError):
            runner.run("explode")

    def test_refresh_collects_per_worktree_errors(self, runner, lifecycle):
        lifecycle.list.return_value = [make_worktree("main"), make_worktree("broken"), make_worktree("gone", exists=False)]

        def status(path):
            if path.name == "broken":
                raise GitCommandFailedError("status", 128, "fatal: not a git repository")
            return WorktreeStatus(branch=path.name)

        lifecycle.gateway.status.side_effect = status

        result = runner.run("refresh")

        assert [wt.name for wt in result.worktrees] == ["main", "broken", "gone"]
        assert list(result.statuses) == ["main"]
        assert "not a git repository" in result.errors["broken"]

    def test_remove_passes_force(self, runner, lifecycle):
        runner.run("remove", "dev", True)
        lifecycle.remove.assert_called_once_with("dev", force=True)

    def test_commit_message_uses_the_diff_and_branch(self, runner, lifecycle):
        lifecycle.get.return_value = make_worktree("dev")
        lifecycle.diff.return_value = "+line"
        runner.commit_messages.generate.return_value = "feat: line"

        assert runner.run("commit_message", "dev") == "feat: line"
        runner.commit_messages.generate.assert_called_once_with("+line", "dev")

    def test_teleport_resolves_names(self, runner, lifecycle):
        main, dev = make_worktree("main"), make_worktree("dev")
        lifecycle.get.side_effect = {"main": main, "dev": dev}.get

        runner.run("teleport", "main", "dev")
        runner.teleport_bridge.teleport.assert_called_once_with(main, dev)

    def test_purge_includes_artifacts(self, runner):
        runner.run("purge")
        runner.auditor.clean.assert_called_once_with(artifacts=True)

    def test_branches_include_remote_only_ones(self, runner, lifecycle):
        lifecycle.branches.return_value = ["dev", "main", "upstream-only"]
        assert runner.run("branches", "dev") == ["dev", "main", "upstream-only"]
        lifecycle.branches.assert_called_once_with(include_remote=True)
