"""Tests for TeleportBridge"""
from pathlib import Path

import pytest

from worktree_hub.constants import TELEPORT_TAG
from worktree_hub.exceptions import GitCommandFailedError, NameConflictError, StashApplyError
from worktree_hub.models.worktree import FileChange, StashEntry, Worktree, WorktreeStatus
from worktree_hub.services.teleport import TeleportBridge


def make_worktree(root: Path, name: str) -> Worktree:
    return Worktree(name=name, path=root / name, branch=name, head="abc123")


class TestTeleport:
    """Test moving changes between real worktrees."""

    def test_moves_tracked_and_untracked_changes(self, hub, config):
        main, dev = hub.get("main"), hub.get("dev")
        (main.path / "README.md").write_text("moved edit\n")
        (main.path / "notes.txt").write_text("untracked\n")

        result = TeleportBridge(hub.gateway, config).teleport(main, dev)

        assert result.moved is True
        assert result.stash_message.startswith(TELEPORT_TAG)
        assert (dev.path / "README.md").read_text() == "moved edit\n"
        assert (dev.path / "notes.txt").read_text() == "untracked\n"
        assert not hub.status("main").is_dirty
        assert hub.stash_list("main") == []

    def test_clean_source_moves_nothing(self, hub, config):
        result = TeleportBridge(hub.gateway, config).teleport(hub.get("main"), hub.get("dev"))

        assert result.moved is False
        assert hub.stash_list("main") == []

    def test_untracked_only_without_include_untracked(self, hub, config):
        main, dev = hub.get("main"), hub.get("dev")
        (main.path / "notes.txt").write_text("untracked\n")

        result = TeleportBridge(hub.gateway, config).teleport(main, dev, include_untracked=False)

        assert result.moved is False
        assert (main.path / "notes.txt").exists()
        assert not (dev.path / "notes.txt").exists()

    def test_stash_pushed_elsewhere_before_the_drop_survives(self, hub, config, monkeypatch):
        main, dev = hub.get("main"), hub.get("dev")
        other = hub.add("other")
        (main.path / "README.md").write_text("moved edit\n")
        (other.path / "README.md").write_text("work in other\n")
        gateway = hub.gateway
        real_drop = gateway.stash_drop
        pushed = []

        def drop_after_another_push(cwd, ref, expected_sha=None):
            if not pushed:
                pushed.append(gateway.stash_save(other.path, "user stash in other"))
            real_drop(cwd, ref, expected_sha=expected_sha)

        monkeypatch.setattr(gateway, "stash_drop", drop_after_another_push)

        result = TeleportBridge(gateway, config).teleport(main, dev)

        assert pushed == [True]
        assert result.moved is True
        assert result.kept_stash is None
        assert (dev.path / "README.md").read_text() == "moved edit\n"
        assert [e.message for e in hub.stash_list("main")] == ["On other: user stash in other"]

    def test_same_worktree_is_refused(self, hub, config):
        main = hub.get("main")
        with pytest.raises(NameConflictError):
            TeleportBridge(hub.gateway, config).teleport(main, main)


class TestTeleportFailure:
    """Test that a failed apply keeps the changes recoverable."""

    def test_apply_failure_keeps_the_stash(self, mock_gateway, temp_dir):
        source, target = make_worktree(temp_dir, "main"), make_worktree(temp_dir, "dev")
        mock_gateway.status.return_value = WorktreeStatus(
            changes=[FileChange(path="README.md", index_status=".", worktree_status="M")]
        )
        mock_gateway.stash_save.return_value = True

        def stash_list(cwd):
            message = mock_gateway.stash_save.call_args[0][1]
            return [StashEntry(ref="stash@{0}", sha="feedbeef", message=f"On main: {message}")]

        mock_gateway.stash_list.side_effect = stash_list
        mock_gateway.stash_apply.side_effect = GitCommandFailedError("stash apply", 1, "CONFLICT (content)")

        with pytest.raises(StashApplyError) as exc_info:
            TeleportBridge(mock_gateway).teleport(source, target)

        assert exc_info.value.stash_ref == "stash@{0}"
        assert exc_info.value.target == "dev"
        mock_gateway.stash_apply.assert_called_once_with(target.path, "feedbeef")
        mock_gateway.stash_drop.assert_not_called()

    def test_nothing_stashed(self, mock_gateway, temp_dir):
        mock_gateway.status.return_value = WorktreeStatus(
            changes=[FileChange(path="README.md", index_status=".", worktree_status="M")]
        )
        mock_gateway.stash_save.return_value = False

        result = TeleportBridge(mock_gateway).teleport(make_worktree(temp_dir, "a"), make_worktree(temp_dir, "b"))

        assert result.moved is False
        mock_gateway.stash_apply.assert_not_called()
