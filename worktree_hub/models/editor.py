"""Editors a worktree can be opened in."""
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class EditorOption:
    """An editor launched as ``<command> <worktree path>``.

    Terminal editors take over the terminal until they exit; the others
    are started in the background.
    """
    name: str
    command: str
    terminal: bool = False


EDITORS: Tuple[EditorOption, ...] = (
    EditorOption("VS Code", "code"),
    EditorOption("Cursor", "cursor"),
    EditorOption("Zed", "zed"),
    EditorOption("Android Studio", "studio"),
    EditorOption("IntelliJ IDEA", "idea"),
    EditorOption("Vim", "vim", terminal=True),
)

TERMINAL_EDITORS = ("vim", "vi", "nvim", "nano", "emacs", "hx", "micro")


def editor_for(command: str) -> EditorOption:
    """The known editor for ``command``, or an ad-hoc option for anything else."""
    for option in EDITORS:
        if option.command == command:
            return option
    return EditorOption(command, command, terminal=command.rsplit("/", 1)[-1] in TERMINAL_EDITORS)


def editor_index(command: Optional[str]) -> int:
    """Position of ``command`` in ``EDITORS``, 0 when it is not listed."""
    for index, option in enumerate(EDITORS):
        if option.command == command:
            return index
    return 0
