"""Pytest fixtures for worktree-hub tests"""
import tempfile
from pathlib import Path
from unittest.mock import Mock

import git
import pytest

from worktree_hub.config import Config
from worktree_hub.models.project import Project
from worktree_hub.services.git.gateway import RepositoryGateway
from worktree_hub.services.lifecycle import WorktreeLifecycleManager


@pytest.fixture(autouse=True)
def git_identity(monkeypatch, tmp_path_factory):
    """Give every git process a fixed identity and no user or system config."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("WORKTREE_HUB_GIT_PATH", raising=False)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def git_repo(temp_dir):
    """Create a real standard Git repository with one commit on main."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)

    test_file = repo_path / "README.md"
    test_file.write_text("# Test Repository\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")
    repo.git.branch("-M", "main")

    yield repo

    repo.close()


@pytest.fixture
def hub(temp_dir, git_repo, config):
    """A bare-hub project cloned from ``git_repo`` with main and dev worktrees.

    The manager's working directory is the main worktree.
    """
    manager = WorktreeLifecycleManager(config=config, cwd=temp_dir)
    project = manager.init(temp_dir, source_url=git_repo.working_dir, name="hub")
    manager.setup()
    return WorktreeLifecycleManager(config=config, project=project, cwd=project.root / "main")


@pytest.fixture
def mock_gateway():
    """A scripted stand-in for the git gateway."""
    gateway = Mock(spec=RepositoryGateway)
    gateway.worktree_list.return_value = []
    gateway.admin_records.return_value = []
    gateway.stash_list.return_value = []
    return gateway


@pytest.fixture
def fake_project(temp_dir):
    """A project whose engine exists only as a directory (for mocked gateways)."""
    root = temp_dir / "fake"
    (root / ".bare").mkdir(parents=True)
    return Project(root=root)
