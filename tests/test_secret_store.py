"""Tests for the API key store"""
import os
import stat

import pytest

from worktree_hub.services.secret_store import (
    API_KEY_ENV,
    SecretStore,
    default_config_dir,
    mask_key,
)


@pytest.fixture
def store(temp_dir):
    return SecretStore(config_dir=temp_dir / "cfg", env={})


def file_mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


class TestSecretStore:
    """Test key storage and lookup."""

    def test_no_key(self, store):
        assert store.get_api_key() is None

    def test_set_and_get(self, store):
        path = store.set_api_key("  abc123  ")
        assert path == store.key_file
        assert store.get_api_key() == "abc123"
        assert file_mode(path) == 0o600

    def test_permissions_tightened_on_existing_file(self, store):
        store.config_dir.mkdir(parents=True)
        store.key_file.write_text("old\n")
        os.chmod(store.key_file, 0o644)

        store.set_api_key("new-key")

        assert file_mode(store.key_file) == 0o600
        assert store.get_api_key() == "new-key"

    def test_existing_file_is_private_before_the_key_is_written(self, store, monkeypatch):
        store.config_dir.mkdir(parents=True)
        store.key_file.write_text("old\n")
        os.chmod(store.key_file, 0o644)
        modes_at_write = []
        real_fdopen = os.fdopen

        def fdopen(fd, *args, **kwargs):
            modes_at_write.append(stat.S_IMODE(os.fstat(fd).st_mode))
            return real_fdopen(fd, *args, **kwargs)

        monkeypatch.setattr(os, "fdopen", fdopen)
        store.set_api_key("new-key")

        assert modes_at_write == [0o600]

    def test_environment_takes_precedence(self, temp_dir):
        store = SecretStore(config_dir=temp_dir / "cfg", env={API_KEY_ENV: "from-env"})
        store.set_api_key("from-file")
        assert store.get_api_key() == "from-env"

    def test_blank_environment_falls_back_to_file(self, temp_dir):
        store = SecretStore(config_dir=temp_dir / "cfg", env={API_KEY_ENV: "  "})
        store.set_api_key("from-file")
        assert store.get_api_key() == "from-file"

    def test_empty_key_is_rejected(self, store):
        with pytest.raises(ValueError):
            store.set_api_key("   ")
        assert not store.key_file.exists()

    def test_empty_file_means_no_key(self, store):
        store.config_dir.mkdir(parents=True)
        store.key_file.write_text("\n")
        assert store.get_api_key() is None


class TestHelpers:
    def test_default_config_dir(self, temp_dir):
        assert default_config_dir({"XDG_CONFIG_HOME": str(temp_dir)}) == temp_dir / "worktree-hub"

    def test_mask_key(self):
        assert mask_key("abcdefgh") == "****efgh"
        assert mask_key("abc") == "***"
