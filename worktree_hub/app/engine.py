"""Key and task-event handling for the interactive interface.

The engine holds no state of its own and performs no I/O: it updates the
``UIState`` it is given and returns commands for the interface to carry
out. Keys are Textual key names (``"slash"``, ``"question_mark"``,
``"escape"``...); the typed character is passed separately so the filter
can accept any printable input.
"""

from typing import Any, Callable, Dict, List, Optional

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
from worktree_hub.app.state import Mode, Overlay, UIState
from worktree_hub.logging_config import get_logger
from worktree_hub.models.editor import EDITORS, editor_index
from worktree_hub.models.task import TaskEvent, TaskKey, TaskKind, TaskOutcome
from worktree_hub.models.worktree import Worktree

logger = get_logger(__name__)

MOVE_DOWN = ("j", "down")
MOVE_UP = ("k", "up")

OVERLAY_LOADERS = {
    Overlay.STATUS: ("status", TaskKind.STATUS),
    Overlay.HISTORY: ("history", TaskKind.HISTORY),
    Overlay.STASH_LIST: ("stash_list", TaskKind.STASH),
    Overlay.BRANCHES: ("branches", TaskKind.BRANCHES),
}

SUCCESS_MESSAGES = {
    "add": "Added worktree '{worktree}'",
    "remove": "Removed worktree '{worktree}'",
    "checkout": "Switched branch in '{worktree}'",
    "fetch": "Fetched '{worktree}'",
    "pull": "Pulled '{worktree}'",
    "push": "Pushed '{worktree}'",
    "rebase": "Rebased '{worktree}'",
    "commit": "Committed in '{worktree}'",
    "stage_all": "Staged all changes in '{worktree}'",
    "unstage_all": "Unstaged all changes in '{worktree}'",
    "stash_apply": "Applied stash in '{worktree}'",
    "stash_pop": "Popped stash in '{worktree}'",
    "stash_drop": "Dropped stash in '{worktree}'",
}

STASH_OPERATIONS = ("stash_save", "stash_apply", "stash_pop", "stash_drop")
INDEX_OPERATIONS = ("stage_all", "unstage_all")
# Overlays whose entries are picked with enter; moving past either end wraps
PICKERS = (Overlay.BRANCHES, Overlay.EDITORS)

Command = Any


def refresh_command(mode: Mode = Mode.NORMAL) -> SubmitTask:
    return SubmitTask(TaskKey(PROJECT_SCOPE, TaskKind.REFRESH), "refresh", mode=mode, label="refresh")


def _task(worktree: str, kind: TaskKind, operation: str, *args: Any, mode: Mode = Mode.NORMAL) -> SubmitTask:
    return SubmitTask(
        TaskKey(worktree, kind),
        operation,
        args if args else (worktree,),
        mode=mode,
        label=f"{operation} {worktree}",
    )


def _stash_task(worktree: str, operation: str, *args: Any, mode: Mode = Mode.NORMAL) -> SubmitTask:
    """A task that changes the stash list.

    Every worktree shares the engine's stash list, so these all run under
    one project-wide key.
    """
    return SubmitTask(
        TaskKey(PROJECT_SCOPE, TaskKind.STASH),
        operation,
        args,
        mode=mode,
        label=f"{operation} {worktree}",
        worktree=worktree,
    )


class ModalEngine:
    """Maps key presses and finished tasks onto state changes and commands."""

    def __init__(self):
        self._mode_handlers: Dict[Mode, Callable[[UIState, str, Optional[str]], List[Command]]] = {
            Mode.NORMAL: self._normal_key,
            Mode.MANAGE: self._manage_key,
            Mode.GIT: self._git_key,
            Mode.FILTER: self._filter_key,
        }

    # Keys

    def handle_key(self, state: UIState, key: str, character: Optional[str] = None) -> List[Command]:
        """Apply one key press. Keys the active mode does not bind are ignored."""
        # Status messages last until the next key press
        state.message = None
        if state.overlay is not None:
            return self._overlay_key(state, key)
        return self._mode_handlers[state.mode](state, key, character)

    @staticmethod
    def _move(state: UIState, key: str, down=MOVE_DOWN, up=MOVE_UP) -> bool:
        count = len(state.visible_indices())
        if key in down:
            state.selected = min(state.selected + 1, max(count - 1, 0))
            return True
        if key in up:
            state.selected = max(state.selected - 1, 0)
            return True
        return False

    @staticmethod
    def _leave(state: UIState) -> Mode:
        """Return to Normal after an action key, remembering where it was pressed."""
        previous = state.mode
        state.mode = Mode.NORMAL
        return previous

    def _normal_key(self, state: UIState, key: str, character: Optional[str]) -> List[Command]:
        if self._move(state, key):
            return []
        if key == "slash":
            state.mode = Mode.FILTER
            return []
        if key == "m":
            state.mode = Mode.MANAGE
            return []
        if key == "g":
            state.mode = Mode.GIT
            return []
        if key == "question_mark":
            return [ShowHelp()]
        if key in ("q", "escape"):
            return [Quit()]
        if key == "r":
            return [refresh_command()]

        wt = state.selected_worktree()
        if wt is None:
            return []
        if key == "enter":
            if not wt.exists:
                return [Notify(f"Directory of '{wt.name}' no longer exists (prune it from manage mode)", "warning")]
            return [SwitchAndExit(wt.path)]
        overlay = {"v": Overlay.STATUS, "l": Overlay.HISTORY, "z": Overlay.STASH_LIST}.get(key)
        if key == "e":
            return self._open_editor_picker(state, wt)
        if overlay is not None:
            return self._open_overlay(state, overlay, wt)
        return []

    def _manage_key(self, state: UIState, key: str, character: Optional[str]) -> List[Command]:
        if key == "escape":
            state.mode = Mode.NORMAL
            return []
        if self._move(state, key):
            return []
        if key == "a":
            mode = self._leave(state)
            return [Prompt("add", "Name of the new worktree", mode=mode)]
        if key == "c":
            mode = self._leave(state)
            task = SubmitTask(TaskKey(PROJECT_SCOPE, TaskKind.CLEAN), "clean", mode=mode, label="prune stale worktrees")
            return [Confirm("Prune stale worktree records?", task)]
        if key == "C":
            mode = self._leave(state)
            task = SubmitTask(TaskKey(PROJECT_SCOPE, TaskKind.CLEAN), "purge", mode=mode, label="purge artifacts")
            return [Confirm("Delete build artifacts from every worktree except the current one?", task)]
        if key == "s":
            mode = self._leave(state)
            return [SubmitTask(TaskKey(PROJECT_SCOPE, TaskKind.SYNC), "sync", mode=mode, label="sync")]

        wt = state.selected_worktree()
        if wt is None or key not in ("d", "D", "b", "B", "t"):
            return []
        mode = self._leave(state)
        if key == "d":
            return [Confirm(f"Remove worktree '{wt.name}'?", _task(wt.name, TaskKind.LIFECYCLE, "remove", wt.name, False, mode=mode))]
        if key == "D":
            return [
                Confirm(
                    f"Force-remove worktree '{wt.name}'? Uncommitted changes are lost.",
                    _task(wt.name, TaskKind.LIFECYCLE, "remove", wt.name, True, mode=mode),
                )
            ]
        if key == "b":
            return self._open_overlay(state, Overlay.BRANCHES, wt, mode=mode)
        if key == "B":
            return [Prompt("checkout", f"Branch to check out in '{wt.name}'", worktree=wt.name, mode=mode)]

        source = state.current_worktree()
        if source is None:
            state.mode = mode
            return [Notify("Not inside a worktree, nothing to teleport from", "warning")]
        if source.name == wt.name:
            state.mode = mode
            return [Notify("Select a different worktree as the teleport target", "warning")]
        return [
            Confirm(
                f"Move uncommitted changes from '{source.name}' to '{wt.name}'?",
                _stash_task(wt.name, "teleport", source.name, wt.name, mode=mode),
            )
        ]

    def _git_key(self, state: UIState, key: str, character: Optional[str]) -> List[Command]:
        if key == "escape":
            state.mode = Mode.NORMAL
            return []
        if self._move(state, key):
            return []

        wt = state.selected_worktree()
        if wt is None or key not in ("f", "p", "P", "R", "c", "C", "S"):
            return []
        mode = self._leave(state)
        if key == "f":
            return [_task(wt.name, TaskKind.FETCH, "fetch", mode=mode)]
        if key == "p":
            return [_task(wt.name, TaskKind.PULL, "pull", mode=mode)]
        if key == "P":
            return [_task(wt.name, TaskKind.PUSH, "push", mode=mode)]
        if key == "R":
            return [Confirm(f"Rebase '{wt.name}' onto the main branch?", _task(wt.name, TaskKind.REBASE, "rebase", mode=mode))]
        if key == "c":
            return [Prompt("commit", f"Commit message for '{wt.name}'", worktree=wt.name, mode=mode)]
        if key == "C":
            return [_task(wt.name, TaskKind.COMMIT_MESSAGE, "commit_message", mode=mode)]
        return [Prompt("stash", f"Stash message for '{wt.name}'", worktree=wt.name, mode=mode)]

    def _filter_key(self, state: UIState, key: str, character: Optional[str]) -> List[Command]:
        if key == "escape":
            state.filter_query = ""
            state.mode = Mode.NORMAL
            state.clamp_selection()
            return []
        if key == "enter":
            wt = state.selected_worktree()
            state.filter_query = ""
            state.mode = Mode.NORMAL
            state.selected = 0
            if wt is not None:
                state.select_name(wt.name)
            return []
        if self._move(state, key, down=("down",), up=("up",)):
            return []
        if key == "backspace":
            state.filter_query = state.filter_query[:-1]
        elif key == "ctrl+u":
            state.filter_query = ""
        elif character and len(character) == 1 and character.isprintable():
            state.filter_query += character
        else:
            return []
        state.selected = 0
        return []

    # Overlays

    def _open_overlay(
        self, state: UIState, overlay: Overlay, wt: Worktree, mode: Optional[Mode] = None
    ) -> List[Command]:
        if not wt.exists:
            return [Notify(f"Directory of '{wt.name}' no longer exists", "warning")]
        state.overlay = overlay
        state.overlay_target = wt.name
        state.overlay_selected = 0
        state.overlay_loading = True
        operation, kind = OVERLAY_LOADERS[overlay]
        return [_task(wt.name, kind, operation, mode=mode or state.mode)]

    @staticmethod
    def _open_editor_picker(state: UIState, wt: Worktree) -> List[Command]:
        """The editor list needs no loading; the preferred editor starts selected."""
        if not wt.exists:
            return [Notify(f"Directory of '{wt.name}' no longer exists", "warning")]
        state.overlay = Overlay.EDITORS
        state.overlay_target = wt.name
        state.overlay_selected = editor_index(state.preferred_editor)
        state.overlay_loading = False
        return []

    @staticmethod
    def close_overlay(state: UIState) -> None:
        state.overlay = None
        state.overlay_target = None
        state.overlay_selected = 0
        state.overlay_loading = False
        state.history = []
        state.stashes = []
        state.branches = []

    @staticmethod
    def _overlay_length(state: UIState) -> int:
        if state.overlay is Overlay.HISTORY:
            return len(state.history)
        if state.overlay is Overlay.STASH_LIST:
            return len(state.stashes)
        if state.overlay is Overlay.BRANCHES:
            return len(state.branches)
        if state.overlay is Overlay.EDITORS:
            return len(EDITORS)
        status = state.statuses.get(state.overlay_target or "")
        return len(status.changes) if status else 0

    def _move_overlay(self, state: UIState, step: int) -> None:
        count = self._overlay_length(state)
        if state.overlay in PICKERS:
            state.overlay_selected = (state.overlay_selected + step) % count if count else 0
        else:
            state.overlay_selected = max(0, min(state.overlay_selected + step, count - 1))

    def _overlay_key(self, state: UIState, key: str) -> List[Command]:
        if key in ("escape", "q"):
            self.close_overlay(state)
            return []
        if key in MOVE_DOWN:
            self._move_overlay(state, 1)
            return []
        if key in MOVE_UP:
            self._move_overlay(state, -1)
            return []

        target = state.overlay_target
        if target is None or state.overlay_loading:
            return []
        if state.overlay is Overlay.STATUS:
            if key == "A":
                return [_task(target, TaskKind.INDEX, "stage_all")]
            if key == "U":
                return [_task(target, TaskKind.INDEX, "unstage_all")]
        elif state.overlay is Overlay.STASH_LIST and state.stashes:
            entry = state.stashes[min(state.overlay_selected, len(state.stashes) - 1)]
            if key == "a":
                return [_stash_task(target, "stash_apply", target, entry.ref, entry.sha)]
            if key == "p":
                return [_stash_task(target, "stash_pop", target, entry.ref, entry.sha)]
            if key == "d":
                return [Confirm(f"Drop {entry.ref} ({entry.message})?", _stash_task(target, "stash_drop", target, entry.ref, entry.sha))]
        elif state.overlay is Overlay.BRANCHES and state.branches and key == "enter":
            branch = state.branches[min(state.overlay_selected, len(state.branches) - 1)]
            self.close_overlay(state)
            return [_task(target, TaskKind.LIFECYCLE, "checkout", target, branch)]
        elif state.overlay is Overlay.EDITORS and key == "enter":
            editor = EDITORS[min(state.overlay_selected, len(EDITORS) - 1)]
            wt = next((w for w in state.worktrees if w.name == target), None)
            self.close_overlay(state)
            if wt is None:
                return []
            state.preferred_editor = editor.command
            return [OpenEditor(editor, wt.path)]
        return []

    # Prompt answers

    def handle_prompt(self, state: UIState, prompt: Prompt, value: Optional[str]) -> List[Command]:
        """Turn the answer to ``prompt`` into a task. ``None`` means the prompt was cancelled."""
        if value is None:
            return []
        value = value.strip()
        if not value:
            return [Notify("Nothing entered, cancelled", "warning")]

        if prompt.action == "add":
            return [_task(value, TaskKind.LIFECYCLE, "add", value, mode=prompt.mode)]
        if prompt.worktree is None:
            return []
        if prompt.action == "checkout":
            return [_task(prompt.worktree, TaskKind.LIFECYCLE, "checkout", prompt.worktree, value, mode=prompt.mode)]
        if prompt.action == "commit":
            return [_task(prompt.worktree, TaskKind.COMMIT, "commit", prompt.worktree, value, mode=prompt.mode)]
        if prompt.action == "stash":
            return [_stash_task(prompt.worktree, "stash_save", prompt.worktree, value, mode=prompt.mode)]
        logger.debug(f"Ignoring answer to unknown prompt action '{prompt.action}'")
        return []

    # Task bookkeeping

    @staticmethod
    def task_submitted(state: UIState, task_id: int, command: SubmitTask) -> None:
        state.inflight[task_id] = TaskKey(command.target, command.key.kind)

    def handle_event(self, state: UIState, event: TaskEvent) -> List[Command]:
        """Apply a finished task to ``state``."""
        state.inflight.pop(event.task_id, None)
        context = event.context or {}
        operation = context.get("operation", "")
        mode = context.get("mode", Mode.NORMAL)
        worktree = context.get("worktree") or event.key.worktree

        if event.outcome is TaskOutcome.CANCELLED:
            logger.debug(f"Task {event.task_id} ({event.key}) was cancelled")
            return []
        if not event.ok:
            return self._failed(state, event, worktree, operation, mode)
        return self._succeeded(state, event, worktree, operation, mode)

    def _failed(
        self, state: UIState, event: TaskEvent, worktree: str, operation: str, mode: Mode
    ) -> List[Command]:
        message = str(event.error) if event.error is not None else f"{operation} failed"
        if worktree != PROJECT_SCOPE:
            state.errors[worktree] = message
        state.message = message
        if state.overlay_target == worktree:
            state.overlay_loading = False

        if operation == "commit_message":
            return [
                Notify(f"Could not generate a commit message: {message}", "warning"),
                Prompt("commit", f"Commit message for '{worktree}'", worktree=worktree, mode=mode),
            ]
        if state.overlay is None and state.mode is not Mode.FILTER:
            state.mode = mode
        return [Notify(message, "error")]

    def _succeeded(
        self, state: UIState, event: TaskEvent, worktree: str, operation: str, mode: Mode
    ) -> List[Command]:
        result = event.result
        state.errors.pop(worktree, None)

        if operation == "refresh":
            self._apply_refresh(state, result)
            return []
        if operation == "status":
            state.statuses[worktree] = result
            if state.overlay is Overlay.STATUS and state.overlay_target == worktree:
                state.overlay_loading = False
            return []
        if operation == "history":
            if state.overlay is Overlay.HISTORY and state.overlay_target == worktree:
                state.history = list(result)
                state.overlay_loading = False
            return []
        if operation == "stash_list":
            if state.overlay is Overlay.STASH_LIST and state.overlay_target == worktree:
                state.stashes = list(result)
                state.overlay_selected = min(state.overlay_selected, max(len(state.stashes) - 1, 0))
                state.overlay_loading = False
            return []
        if operation == "branches":
            if state.overlay is Overlay.BRANCHES and state.overlay_target == worktree:
                state.branches = list(result)
                current = next((wt.branch for wt in state.worktrees if wt.name == worktree), None)
                state.overlay_selected = state.branches.index(current) if current in state.branches else 0
                state.overlay_loading = False
            return []
        if operation == "commit_message":
            return [Prompt("commit", f"Commit message for '{worktree}'", worktree=worktree, initial=result, mode=mode)]

        state.message = self._describe(operation, worktree, result)
        commands: List[Command] = [Notify(state.message)]
        if operation == "remove":
            state.statuses.pop(worktree, None)
            state.errors.pop(worktree, None)
            if state.overlay_target == worktree:
                self.close_overlay(state)
            commands.insert(0, CancelTasks(worktree))
        if operation in INDEX_OPERATIONS and state.overlay is Overlay.STATUS and state.overlay_target == worktree:
            commands.append(_task(worktree, TaskKind.STATUS, "status"))
        if operation in STASH_OPERATIONS and state.overlay is Overlay.STASH_LIST and state.overlay_target == worktree:
            commands.append(_task(worktree, TaskKind.STASH, "stash_list"))
        commands.append(refresh_command())
        return commands

    @staticmethod
    def _describe(operation: str, worktree: str, result: Any) -> str:
        if operation == "teleport":
            if not result.moved:
                return f"No changes to teleport from '{result.source}'"
            if result.kept_stash:
                return f"Moved changes from '{result.source}' to '{result.target}', {result.kept_stash} left in the stash list"
            return f"Moved changes from '{result.source}' to '{result.target}'"
        if operation == "clean":
            return f"Pruned {len(result.removed)} stale worktree record(s)"
        if operation == "purge":
            return f"Removed {len(result.artifacts)} artifact director(ies)"
        if operation == "sync":
            return f"Applied {len(result)} sync entr(ies)"
        if operation == "stash_save":
            return f"Stashed changes in '{worktree}'" if result else f"No local changes to stash in '{worktree}'"
        template = SUCCESS_MESSAGES.get(operation, "{operation} finished for '{worktree}'")
        return template.format(operation=operation, worktree=worktree)

    def _apply_refresh(self, state: UIState, result) -> None:
        selected = state.selected_worktree()
        state.worktrees = list(result.worktrees)
        names = {wt.name for wt in state.worktrees}
        state.statuses = dict(result.statuses)
        state.errors = {name: error for name, error in state.errors.items() if name in names}
        state.errors.update(result.errors)
        state.selected = 0
        if selected is not None:
            state.select_name(selected.name)
        state.clamp_selection()
        if state.overlay_target is not None and state.overlay_target not in names:
            self.close_overlay(state)
