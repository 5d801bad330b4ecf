"""Modal interaction engine: interface state, key handling and rendering."""

from worktree_hub.app.commands import (
    PROJECT_SCOPE,
    CancelTasks,
    Confirm,
    Notify,
    OpenEditor,
    Prompt,
    Quit,
    ShowHelp,
    SubmitTask,
    SwitchAndExit,
)
from worktree_hub.app.engine import ModalEngine, refresh_command
from worktree_hub.app.state import Mode, Overlay, UIState
from worktree_hub.app.view import Row, View, render_view

__all__ = [
    "PROJECT_SCOPE",
    "CancelTasks",
    "Confirm",
    "Mode",
    "ModalEngine",
    "Notify",
    "OpenEditor",
    "Overlay",
    "Prompt",
    "Quit",
    "Row",
    "ShowHelp",
    "SubmitTask",
    "SwitchAndExit",
    "UIState",
    "View",
    "refresh_command",
    "render_view",
]
