"""Opening worktrees in an editor and remembering the user's choice."""

import subprocess
from pathlib import Path
from typing import Mapping, Optional, Union

from worktree_hub.exceptions import CommandLaunchError
from worktree_hub.logging_config import get_logger
from worktree_hub.models.editor import EditorOption, editor_for
from worktree_hub.services.secret_store import default_config_dir

logger = get_logger(__name__)

PREFERENCE_FILE_NAME = "editor"


class EditorLauncher:
    """Starts editors on a worktree directory.

    The preferred editor is stored as a single line in the config
    directory, next to the API key file.
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        default: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ):
        self.config_dir = Path(config_dir) if config_dir else default_config_dir(env)
        self.default = default

    @property
    def preference_file(self) -> Path:
        return self.config_dir / PREFERENCE_FILE_NAME

    def preferred(self) -> Optional[str]:
        """The stored editor command, else the configured default."""
        try:
            command = self.preference_file.read_text().strip()
        except FileNotFoundError:
            command = ""
        except OSError as e:
            logger.warning(f"Could not read editor preference {self.preference_file}: {e}")
            command = ""
        return command or self.default

    def set_preferred(self, command: str) -> Path:
        command = (command or "").strip()
        if not command:
            raise ValueError("editor command cannot be empty")
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.preference_file.write_text(command + "\n")
        logger.debug(f"Preferred editor is now '{command}'")
        return self.preference_file

    def open(self, editor: Union[EditorOption, str], path: Union[str, Path]) -> Optional[int]:
        """Open ``path`` in ``editor``.

        Terminal editors run in the foreground and their exit status is
        returned. Other editors are started detached and None is returned.

        Raises:
            CommandLaunchError: the editor could not be started
        """
        option = editor if isinstance(editor, EditorOption) else editor_for(editor)
        argv = [option.command, str(path)]
        logger.info(f"Opening {path} in {option.name}")
        try:
            if option.terminal:
                return subprocess.run(argv).returncode
            subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise CommandLaunchError(option.command, e.strerror or str(e)) from e
        return None
