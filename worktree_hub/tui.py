"""Interactive TUI for worktree-hub using Textual."""

import os
from functools import partial
from pathlib import Path
from typing import List, Optional, Union, TYPE_CHECKING

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Static

from worktree_hub.__version__ import __version__
from worktree_hub.app import (
    CancelTasks,
    Confirm,
    ModalEngine,
    Notify,
    OpenEditor,
    Prompt,
    Quit,
    ShowHelp,
    SubmitTask,
    SwitchAndExit,
    UIState,
    refresh_command,
    render_view,
)
from worktree_hub.app.actions import ActionRunner
from worktree_hub.constants import HELP_TEXT
from worktree_hub.exceptions import CommandLaunchError, TaskRejectedError
from worktree_hub.logging_config import get_logger
from worktree_hub.models.task import TaskKind
from worktree_hub.services.auditor import StaleStateAuditor
from worktree_hub.services.commit_message import CommitMessageService
from worktree_hub.services.editor import EditorLauncher
from worktree_hub.services.executor import TaskExecutor
from worktree_hub.services.lifecycle import WorktreeLifecycleManager
from worktree_hub.services.teleport import TeleportBridge
from worktree_hub.ui.screens import ConfirmScreen, InfoScreen, PromptScreen
from worktree_hub.ui.widgets import NonExpandingHeader, WorktreeTable

if TYPE_CHECKING:
    from worktree_hub.config import Config

logger = get_logger(__name__)

TICK_INTERVAL = 0.1


class WorktreeHubApp(App[Optional[str]]):
    """Worktree browser. Exits with the selected worktree's path when switching."""

    TITLE = "Worktree Hub"
    SUB_TITLE = f"v{__version__}"

    CSS = """
    Screen {
        background: $surface;
    }

    WorktreeTable {
        height: 1fr;
    }

    #overlay {
        height: auto;
        max-height: 50%;
        border: round $accent;
        padding: 0 1;
        display: none;
    }

    #status-bar {
        dock: bottom;
        height: auto;
        background: $panel;
        padding: 0 1;
    }

    ToastRack {
        offset: 0 -3;
    }
    """

    def __init__(
        self,
        actions: ActionRunner,
        executor: TaskExecutor,
        engine: Optional[ModalEngine] = None,
        editors: Optional[EditorLauncher] = None,
        refresh_interval: float = 0.0,
    ):
        super().__init__()
        self.actions = actions
        self.executor = executor
        self.engine = engine or ModalEngine()
        self.editors = editors or EditorLauncher()
        self.refresh_interval = refresh_interval
        self.state = UIState()

    def compose(self) -> ComposeResult:
        """Create child widgets."""
        yield NonExpandingHeader(show_clock=True, icon="")
        yield WorktreeTable(id="worktree-table", cursor_type="row", zebra_stripes=True)
        yield Static(id="overlay")
        yield Static(id="status-bar")

    def on_mount(self) -> None:
        self.query_one(WorktreeTable).loading = True
        self.state.preferred_editor = self.editors.preferred()
        self.set_interval(TICK_INTERVAL, self._poll_tasks)
        if self.refresh_interval > 0:
            self.set_interval(self.refresh_interval, self._auto_refresh)
        self._execute([refresh_command()])

    def on_unmount(self) -> None:
        self.executor.shutdown(wait=False)

    # Input

    def on_key(self, event: events.Key) -> None:
        # Modal screens handle their own keys
        if len(self.screen_stack) > 1:
            return
        event.stop()
        event.prevent_default()
        self._execute(self.engine.handle_key(self.state, event.key, event.character))

    def _poll_tasks(self) -> None:
        events_ = self.executor.poll()
        if not events_:
            return
        commands = []
        for event in events_:
            if event.key.kind is TaskKind.REFRESH:
                self.query_one(WorktreeTable).loading = False
            commands.extend(self.engine.handle_event(self.state, event))
        self._execute(commands)

    def _auto_refresh(self) -> None:
        # Skip while a refresh is still running or a dialog is open
        if len(self.screen_stack) > 1 or self.executor.is_busy(refresh_command().key):
            return
        self._execute([refresh_command()])

    # Commands

    def _execute(self, commands: List[object]) -> None:
        for command in commands:
            if isinstance(command, SubmitTask):
                self._submit(command)
            elif isinstance(command, Confirm):
                self.push_screen(ConfirmScreen(command.message), callback=partial(self._confirmed, command.then))
            elif isinstance(command, Prompt):
                self.push_screen(PromptScreen(command.title, command.initial), callback=partial(self._answered, command))
            elif isinstance(command, Notify):
                self.notify(command.message, severity=command.severity)
            elif isinstance(command, OpenEditor):
                self._open_editor(command)
            elif isinstance(command, CancelTasks):
                self.executor.cancel_worktree(command.worktree)
            elif isinstance(command, ShowHelp):
                self.push_screen(InfoScreen(HELP_TEXT))
            elif isinstance(command, SwitchAndExit):
                self.exit(str(command.path))
                return
            elif isinstance(command, Quit):
                self.exit()
                return
        self._render_state()

    def _submit(self, command: SubmitTask) -> None:
        context = {"operation": command.operation, "mode": command.mode, "worktree": command.target}
        try:
            task_id = self.executor.submit(command.key, self.actions.run, command.operation, *command.args, context=context)
        except TaskRejectedError as e:
            self.notify(str(e), severity="warning")
            return
        logger.debug(f"Submitted {command.label or command.operation} as task {task_id}")
        self.engine.task_submitted(self.state, task_id, command)

    def _open_editor(self, command: OpenEditor) -> None:
        editor = command.editor
        try:
            self.editors.set_preferred(editor.command)
        except OSError as e:
            logger.warning(f"Could not save editor preference: {e}")
        try:
            if editor.terminal:
                with self.suspend():
                    self.editors.open(editor, command.path)
            else:
                self.editors.open(editor, command.path)
        except CommandLaunchError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"Opened {command.path.name} in {editor.name}")

    def _confirmed(self, task: SubmitTask, confirmed: Optional[bool]) -> None:
        if not confirmed:
            self.notify("Cancelled")
            return
        self._execute([task])

    def _answered(self, prompt: Prompt, value: Optional[str]) -> None:
        self._execute(self.engine.handle_prompt(self.state, prompt, value))

    # Rendering

    def _render_state(self) -> None:
        view = render_view(self.state)

        self.query_one(WorktreeTable).show_rows(view.rows, view.cursor)

        overlay = self.query_one("#overlay", Static)
        overlay.display = view.overlay_title is not None
        if view.overlay_title is not None:
            body = Text(view.overlay_title + "\n", style="bold")
            body.append("\n".join(view.overlay_lines), style="")
            overlay.update(body)

        line = Text(f"[{view.mode_label}]", style="bold")
        if view.filter_text is not None:
            line.append(f"  filter: {view.filter_text}▏")
        if view.message:
            line.append(f"  {view.message}", style="italic")
        line.append("\n" + view.hints, style="dim")
        self.query_one("#status-bar", Static).update(line)


def run_tui(
    config: Union["Config", dict],
    cwd: Optional[Union[str, Path]] = None,
    lifecycle: Optional[WorktreeLifecycleManager] = None,
) -> Optional[str]:
    """Run the TUI for the project containing ``cwd``.

    Returns:
        Path of the worktree to switch to, or None when the user quit
    """
    cwd = cwd if cwd is not None else os.getcwd()
    lifecycle = lifecycle or WorktreeLifecycleManager.discover(cwd, config=config)
    actions = ActionRunner(
        lifecycle=lifecycle,
        auditor=StaleStateAuditor(lifecycle.project, lifecycle.gateway, config, cwd),
        teleport=TeleportBridge(lifecycle.gateway, config),
        commit_messages=CommitMessageService(),
    )
    executor = TaskExecutor(workers=config.get("workers"), timeout=config.get("task_timeout", 600.0))
    logger.info(f"Starting TUI for {lifecycle.project.root}")
    editors = EditorLauncher(default=config.get("editor"))
    app = WorktreeHubApp(
        actions, executor, editors=editors, refresh_interval=config.get("refresh_interval", 0.0)
    )
    return app.run()
