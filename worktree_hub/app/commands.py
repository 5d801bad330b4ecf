"""Commands the modal engine hands back to the interface for execution."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Tuple

from worktree_hub.app.state import Mode
from worktree_hub.models.editor import EditorOption
from worktree_hub.models.task import TaskKey

# Key used for operations that concern the whole project rather than one worktree
PROJECT_SCOPE = "*"


@dataclass
class SubmitTask:
    """Run ``operation`` in the background under ``key``.

    ``mode`` is the mode the user was in when the task was requested; a
    failure returns the interface to it. ``worktree`` names the worktree
    the task reports on when ``key`` is project-wide.
    """

    key: TaskKey
    operation: str
    args: Tuple[Any, ...] = ()
    mode: Mode = Mode.NORMAL
    label: str = ""
    worktree: Optional[str] = None

    @property
    def target(self) -> str:
        return self.worktree or self.key.worktree


@dataclass
class Confirm:
    """Ask a yes/no question, then run ``then`` on yes."""

    message: str
    then: SubmitTask


@dataclass
class Prompt:
    """Ask for a line of text; the answer goes back through ``ModalEngine.handle_prompt``."""

    action: str
    title: str
    worktree: Optional[str] = None
    initial: str = ""
    mode: Mode = Mode.NORMAL


@dataclass
class Notify:
    message: str
    severity: str = "information"


@dataclass
class OpenEditor:
    """Open ``path`` in ``editor`` and remember it as the preferred one."""

    editor: EditorOption
    path: Path


@dataclass
class CancelTasks:
    """Drop every pending and running task of a removed worktree."""

    worktree: str


@dataclass
class SwitchAndExit:
    path: Path


@dataclass
class ShowHelp:
    pass


@dataclass
class Quit:
    pass
