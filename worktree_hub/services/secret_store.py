"""Storage for the commit-message service credential."""

import os
import stat
from pathlib import Path
from typing import Mapping, Optional

from worktree_hub.logging_config import get_logger

logger = get_logger(__name__)

API_KEY_ENV = "GEMINI_API_KEY"
CONFIG_DIR_NAME = "worktree-hub"
KEY_FILE_NAME = "gemini_key"

# Owner read/write only
KEY_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR


def default_config_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """``$XDG_CONFIG_HOME/worktree-hub``, falling back to ``~/.config/worktree-hub``."""
    env = os.environ if env is None else env
    xdg = env.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / CONFIG_DIR_NAME


class SecretStore:
    """API key lookup: environment first, then a private file in the config directory."""

    def __init__(self, config_dir: Optional[Path] = None, env: Optional[Mapping[str, str]] = None):
        self.env = os.environ if env is None else env
        self.config_dir = Path(config_dir) if config_dir else default_config_dir(self.env)

    @property
    def key_file(self) -> Path:
        return self.config_dir / KEY_FILE_NAME

    def get_api_key(self) -> Optional[str]:
        """The stored key, or None when no key is configured."""
        key = self.env.get(API_KEY_ENV, "").strip()
        if key:
            logger.debug(f"Using API key from {API_KEY_ENV}")
            return key

        try:
            key = self.key_file.read_text().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read API key file {self.key_file}: {e}")
            return None
        return key or None

    def set_api_key(self, key: str) -> Path:
        """Write ``key`` to the key file, readable and writable by the owner only.

        Returns:
            Path of the key file

        Raises:
            ValueError: ``key`` is empty
        """
        key = (key or "").strip()
        if not key:
            raise ValueError("API key cannot be empty")

        self.config_dir.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.key_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, KEY_FILE_MODE)
        # os.open only applies the mode when it creates the file, and the umask still applies
        os.fchmod(fd, KEY_FILE_MODE)
        with os.fdopen(fd, "w") as handle:
            handle.write(key + "\n")
        logger.info(f"Stored API key in {self.key_file}")
        return self.key_file


def mask_key(key: str) -> str:
    """Show only the last four characters of a key."""
    if len(key) <= 4:
        return "*" * len(key)
    return "*" * (len(key) - 4) + key[-4:]
