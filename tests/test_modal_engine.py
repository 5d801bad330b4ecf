"""Tests for the modal engine and view rendering"""
from pathlib import Path

import pytest

from worktree_hub.app import (
    PROJECT_SCOPE,
    CancelTasks,
    Confirm,
    Mode,
    ModalEngine,
    Notify,
    OpenEditor,
    Overlay,
    Prompt,
    Quit,
    ShowHelp,
    SubmitTask,
    SwitchAndExit,
    UIState,
    render_view,
)
from worktree_hub.app.actions import RefreshResult
from worktree_hub.constants import SYMBOL_BUSY, SYMBOL_CURRENT
from worktree_hub.exceptions import GitCommandFailedError
from worktree_hub.models.editor import EDITORS
from worktree_hub.models.task import TaskEvent, TaskKey, TaskKind, TaskOutcome
from worktree_hub.models.worktree import Commit, FileChange, StashEntry, Worktree, WorktreeStatus
from worktree_hub.services.teleport import TeleportResult


def make_worktree(name, current=False, exists=True):
    return Worktree(name=name, path=Path("/p") / name, branch=name, head="abc1234", is_current=current, exists=exists)


def event_for(command, outcome=TaskOutcome.SUCCEEDED, result=None, error=None, task_id=1):
    return TaskEvent(
        key=command.key,
        task_id=task_id,
        outcome=outcome,
        result=result,
        error=error,
        context={"operation": command.operation, "mode": command.mode, "worktree": command.target},
    )


@pytest.fixture
def engine():
    return ModalEngine()


@pytest.fixture
def state():
    return UIState(
        worktrees=[
            make_worktree("main", current=True),
            make_worktree("dev"),
            make_worktree("feature-login"),
        ]
    )


class TestNormalMode:
    """Test navigation and mode switching."""

    def test_movement_is_clamped(self, engine, state):
        engine.handle_key(state, "k")
        assert state.selected == 0
        for _ in range(5):
            engine.handle_key(state, "j")
        assert state.selected == 2
        engine.handle_key(state, "up")
        assert state.selected == 1

    def test_mode_switches(self, engine, state):
        engine.handle_key(state, "m")
        assert state.mode is Mode.MANAGE
        engine.handle_key(state, "escape")
        assert state.mode is Mode.NORMAL
        engine.handle_key(state, "g")
        assert state.mode is Mode.GIT
        engine.handle_key(state, "escape")
        engine.handle_key(state, "slash")
        assert state.mode is Mode.FILTER

    def test_help_quit_refresh(self, engine, state):
        assert engine.handle_key(state, "question_mark") == [ShowHelp()]
        assert engine.handle_key(state, "q") == [Quit()]
        [refresh] = engine.handle_key(state, "r")
        assert refresh.key == TaskKey(PROJECT_SCOPE, TaskKind.REFRESH)

    def test_unbound_keys_are_ignored(self, engine, state):
        assert engine.handle_key(state, "x") == []
        assert engine.handle_key(state, "f") == []
        assert state.mode is Mode.NORMAL
        assert state.selected == 0

    def test_enter_switches(self, engine, state):
        engine.handle_key(state, "j")
        assert engine.handle_key(state, "enter") == [SwitchAndExit(Path("/p/dev"))]

    def test_enter_on_missing_directory_warns(self, engine):
        state = UIState(worktrees=[make_worktree("gone", exists=False)])
        [command] = engine.handle_key(state, "enter")
        assert isinstance(command, Notify)
        assert command.severity == "warning"

    def test_keys_with_no_worktrees(self, engine):
        state = UIState()
        assert engine.handle_key(state, "j") == []
        assert engine.handle_key(state, "enter") == []
        assert engine.handle_key(state, "v") == []


class TestManageMode:
    """Test worktree management keys."""

    def test_remove_asks_for_confirmation(self, engine, state):
        engine.handle_key(state, "j")
        engine.handle_key(state, "m")
        [confirm] = engine.handle_key(state, "d")

        assert isinstance(confirm, Confirm)
        assert confirm.then.operation == "remove"
        assert confirm.then.args == ("dev", False)
        assert confirm.then.mode is Mode.MANAGE
        assert state.mode is Mode.NORMAL

    def test_force_remove(self, engine, state):
        engine.handle_key(state, "m")
        [confirm] = engine.handle_key(state, "D")
        assert confirm.then.args == ("main", True)

    def test_add_prompts_for_a_name(self, engine, state):
        engine.handle_key(state, "m")
        [prompt] = engine.handle_key(state, "a")
        assert prompt.action == "add"

        [task] = engine.handle_prompt(state, prompt, "  feature  ")
        assert task.operation == "add"
        assert task.args == ("feature",)
        assert task.key == TaskKey("feature", TaskKind.LIFECYCLE)

    def test_empty_or_cancelled_prompt(self, engine, state):
        prompt = Prompt("add", "Name")
        assert engine.handle_prompt(state, prompt, None) == []
        [notify] = engine.handle_prompt(state, prompt, "   ")
        assert notify.severity == "warning"

    def test_clean_and_purge_are_project_scoped(self, engine, state):
        engine.handle_key(state, "m")
        [clean] = engine.handle_key(state, "c")
        engine.handle_key(state, "m")
        [purge] = engine.handle_key(state, "C")

        assert clean.then.operation == "clean"
        assert purge.then.operation == "purge"
        assert clean.then.key == purge.then.key == TaskKey(PROJECT_SCOPE, TaskKind.CLEAN)

    def test_teleport_from_current_to_selected(self, engine, state):
        engine.handle_key(state, "j")
        engine.handle_key(state, "m")
        [confirm] = engine.handle_key(state, "t")
        assert confirm.then.operation == "teleport"
        assert confirm.then.args == ("main", "dev")

    def test_stash_changes_share_one_project_key(self, engine, state):
        engine.handle_key(state, "j")
        engine.handle_key(state, "m")
        [confirm] = engine.handle_key(state, "t")
        teleport = confirm.then
        engine.handle_key(state, "g")
        [prompt] = engine.handle_key(state, "S")
        [save] = engine.handle_prompt(state, prompt, "wip")

        assert teleport.key == save.key == TaskKey(PROJECT_SCOPE, TaskKind.STASH)
        assert (teleport.target, save.target) == ("dev", "dev")

        engine.task_submitted(state, 7, teleport)
        assert state.busy_worktrees() == ["dev"]

    def test_failed_stash_task_reports_on_its_worktree(self, engine, state):
        task = SubmitTask(TaskKey(PROJECT_SCOPE, TaskKind.STASH), "stash_save", ("dev", "wip"), worktree="dev")
        engine.handle_event(state, event_for(task, TaskOutcome.FAILED, error=GitCommandFailedError("stash push", 1)))
        assert "stash push" in state.errors["dev"]
        assert PROJECT_SCOPE not in state.errors

    def test_checkout_by_name_prompts(self, engine, state):
        engine.handle_key(state, "m")
        [prompt] = engine.handle_key(state, "B")
        assert prompt.action == "checkout"

        [task] = engine.handle_prompt(state, prompt, "origin-only")
        assert task.args == ("main", "origin-only")
        assert task.key == TaskKey("main", TaskKind.LIFECYCLE)

    def test_teleport_onto_current_is_refused(self, engine, state):
        engine.handle_key(state, "m")
        [notify] = engine.handle_key(state, "t")
        assert isinstance(notify, Notify)
        assert state.mode is Mode.MANAGE


class TestGitMode:
    """Test per-worktree git keys."""

    @pytest.mark.parametrize(
        "key,operation,kind",
        [
            ("f", "fetch", TaskKind.FETCH),
            ("p", "pull", TaskKind.PULL),
            ("P", "push", TaskKind.PUSH),
            ("C", "commit_message", TaskKind.COMMIT_MESSAGE),
        ],
    )
    def test_direct_operations(self, engine, state, key, operation, kind):
        engine.handle_key(state, "g")
        [task] = engine.handle_key(state, key)
        assert isinstance(task, SubmitTask)
        assert task.operation == operation
        assert task.key == TaskKey("main", kind)
        assert task.mode is Mode.GIT

    def test_rebase_is_confirmed(self, engine, state):
        engine.handle_key(state, "g")
        [confirm] = engine.handle_key(state, "R")
        assert confirm.then.operation == "rebase"

    def test_commit_prompt(self, engine, state):
        engine.handle_key(state, "g")
        [prompt] = engine.handle_key(state, "c")
        [task] = engine.handle_prompt(state, prompt, "Fix the thing")
        assert task.operation == "commit"
        assert task.args == ("main", "Fix the thing")


class TestFilterMode:
    """Test incremental filtering."""

    def test_typing_narrows_the_list(self, engine, state):
        engine.handle_key(state, "slash")
        for ch in "log":
            engine.handle_key(state, ch, ch)

        assert state.filter_query == "log"
        assert [wt.name for wt in state.visible()] == ["feature-login"]
        # Letters are text in filter mode, not commands
        engine.handle_key(state, "q", "q")
        assert state.mode is Mode.FILTER

    def test_backspace_and_clear(self, engine, state):
        engine.handle_key(state, "slash")
        engine.handle_key(state, "d", "d")
        engine.handle_key(state, "e", "e")
        engine.handle_key(state, "backspace")
        assert state.filter_query == "d"
        engine.handle_key(state, "ctrl+u")
        assert state.filter_query == ""

    def test_escape_clears_the_filter(self, engine, state):
        engine.handle_key(state, "slash")
        engine.handle_key(state, "d", "d")
        engine.handle_key(state, "escape")
        assert state.mode is Mode.NORMAL
        assert state.filter_query == ""
        assert len(state.visible()) == 3

    def test_enter_selects_the_match(self, engine, state):
        engine.handle_key(state, "slash")
        for ch in "dev":
            engine.handle_key(state, ch, ch)
        engine.handle_key(state, "enter")

        assert state.mode is Mode.NORMAL
        assert state.filter_query == ""
        assert state.selected_worktree().name == "dev"

    def test_no_matches(self, engine, state):
        engine.handle_key(state, "slash")
        for ch in "zzz":
            engine.handle_key(state, ch, ch)
        assert state.visible() == []
        assert state.selected_worktree() is None


class TestOverlays:
    """Test the status, history and stash overlays."""

    def test_open_loads_then_closes(self, engine, state):
        [task] = engine.handle_key(state, "l")
        assert state.overlay is Overlay.HISTORY
        assert state.overlay_loading
        assert task.operation == "history"

        commits = [Commit("a" * 40, "Ann", "2024-01-01T00:00:00", "First")]
        engine.handle_event(state, event_for(task, result=commits))
        assert state.history == commits
        assert not state.overlay_loading

        engine.handle_key(state, "escape")
        assert state.overlay is None
        assert state.history == []

    def test_overlay_keys_take_precedence(self, engine, state):
        engine.handle_key(state, "v")
        assert engine.handle_key(state, "m") == []
        assert state.mode is Mode.NORMAL

    def test_stash_actions(self, engine, state):
        [load] = engine.handle_key(state, "z")
        stashes = [StashEntry("stash@{0}", "aaa", "On main: one"), StashEntry("stash@{1}", "bbb", "On main: two")]
        engine.handle_event(state, event_for(load, result=stashes))

        engine.handle_key(state, "j")
        [pop] = engine.handle_key(state, "p")
        assert pop.operation == "stash_pop"
        assert pop.args == ("main", "stash@{1}", "bbb")

        [confirm] = engine.handle_key(state, "d")
        assert confirm.then.operation == "stash_drop"

        commands = engine.handle_event(state, event_for(pop))
        assert [c.operation for c in commands if isinstance(c, SubmitTask)] == ["stash_list", "refresh"]

    def test_stage_all_reloads_status(self, engine, state):
        [load] = engine.handle_key(state, "v")
        engine.handle_event(state, event_for(load, result=WorktreeStatus(branch="main")))
        [stage] = engine.handle_key(state, "A")
        assert stage.key == TaskKey("main", TaskKind.INDEX)

        commands = engine.handle_event(state, event_for(stage))
        assert [c.operation for c in commands if isinstance(c, SubmitTask)] == ["status", "refresh"]


class TestPickers:
    """Test the branch and editor pickers."""

    def test_branch_picker_checks_out_the_selection(self, engine, state):
        engine.handle_key(state, "j")
        engine.handle_key(state, "m")
        [load] = engine.handle_key(state, "b")
        assert load.operation == "branches"
        assert load.key == TaskKey("dev", TaskKind.BRANCHES)
        assert load.mode is Mode.MANAGE
        assert state.overlay is Overlay.BRANCHES

        engine.handle_event(state, event_for(load, result=["dev", "main", "topic"]))
        assert state.branches == ["dev", "main", "topic"]
        assert state.overlay_selected == 0

        engine.handle_key(state, "k")
        assert state.overlay_selected == 2
        engine.handle_key(state, "j")
        assert state.overlay_selected == 0
        engine.handle_key(state, "k")

        [checkout] = engine.handle_key(state, "enter")
        assert checkout.operation == "checkout"
        assert checkout.args == ("dev", "topic")
        assert checkout.key == TaskKey("dev", TaskKind.LIFECYCLE)
        assert state.overlay is None
        assert state.branches == []

    def test_branch_picker_starts_on_the_current_branch(self, engine, state):
        engine.handle_key(state, "m")
        [load] = engine.handle_key(state, "b")
        engine.handle_event(state, event_for(load, result=["dev", "main"]))

        assert state.overlay_selected == 1
        view = render_view(state)
        assert view.overlay_title == "Branches: main"
        assert view.overlay_lines == ["  dev", "> main *"]

    def test_enter_while_branches_load_does_nothing(self, engine, state):
        engine.handle_key(state, "m")
        engine.handle_key(state, "b")
        assert engine.handle_key(state, "enter") == []
        assert engine.handle_key(state, "q") == []
        assert state.overlay is None

    def test_editor_picker_opens_and_remembers(self, engine, state):
        state.preferred_editor = "zed"
        assert engine.handle_key(state, "e") == []
        assert state.overlay is Overlay.EDITORS
        assert EDITORS[state.overlay_selected].command == "zed"

        engine.handle_key(state, "j")
        [command] = engine.handle_key(state, "enter")
        assert command == OpenEditor(EDITORS[3], Path("/p/main"))
        assert state.preferred_editor == EDITORS[3].command
        assert state.overlay is None

    def test_editor_picker_wraps_to_the_terminal_editor(self, engine, state):
        engine.handle_key(state, "e")
        assert state.overlay_selected == 0
        engine.handle_key(state, "k")

        [command] = engine.handle_key(state, "enter")
        assert command.editor.command == "vim"
        assert command.editor.terminal

    def test_editor_picker_on_missing_directory(self, engine):
        state = UIState(worktrees=[make_worktree("gone", exists=False)])
        [notify] = engine.handle_key(state, "e")
        assert notify.severity == "warning"
        assert state.overlay is None

    def test_editor_overlay_marks_the_preferred_editor(self, engine, state):
        state.preferred_editor = "code"
        engine.handle_key(state, "e")
        view = render_view(state)
        assert view.overlay_lines[0] == "> VS Code (code)  preferred"
        assert len(view.overlay_lines) == len(EDITORS)


class TestTaskEvents:
    """Test how finished tasks update the state."""

    def test_failure_restores_the_mode_and_records_the_error(self, engine, state):
        engine.handle_key(state, "g")
        [task] = engine.handle_key(state, "p")
        engine.task_submitted(state, 7, task)
        assert state.busy_worktrees() == ["main"]

        error = GitCommandFailedError("pull", 1, "fatal: no upstream", "main")
        [notify] = engine.handle_event(state, event_for(task, TaskOutcome.FAILED, error=error, task_id=7))

        assert state.mode is Mode.GIT
        assert notify.severity == "error"
        assert "no upstream" in state.errors["main"]
        assert state.inflight == {}

    def test_cancelled_events_are_ignored(self, engine, state):
        task = SubmitTask(TaskKey("dev", TaskKind.FETCH), "fetch", ("dev",))
        assert engine.handle_event(state, event_for(task, TaskOutcome.CANCELLED)) == []
        assert state.errors == {}

    def test_generated_commit_message_prefills_the_prompt(self, engine, state):
        task = SubmitTask(TaskKey("main", TaskKind.COMMIT_MESSAGE), "commit_message", ("main",), mode=Mode.GIT)
        [prompt] = engine.handle_event(state, event_for(task, result="feat: add login"))
        assert prompt.action == "commit"
        assert prompt.initial == "feat: add login"

    def test_failed_commit_message_falls_back_to_manual_entry(self, engine, state):
        task = SubmitTask(TaskKey("main", TaskKind.COMMIT_MESSAGE), "commit_message", ("main",), mode=Mode.GIT)
        notify, prompt = engine.handle_event(state, event_for(task, TaskOutcome.FAILED, error=RuntimeError("no key")))
        assert notify.severity == "warning"
        assert prompt.action == "commit"
        assert prompt.initial == ""

    def test_remove_cancels_the_worktrees_tasks(self, engine, state):
        task = SubmitTask(TaskKey("dev", TaskKind.LIFECYCLE), "remove", ("dev", False))
        commands = engine.handle_event(state, event_for(task))
        assert commands[0] == CancelTasks("dev")
        assert isinstance(commands[1], Notify)
        assert commands[-1].operation == "refresh"

    def test_teleport_message(self, engine, state):
        task = SubmitTask(TaskKey(PROJECT_SCOPE, TaskKind.STASH), "teleport", ("main", "dev"), worktree="dev")
        engine.handle_event(state, event_for(task, result=TeleportResult("main", "dev", moved=True)))
        assert state.message == "Moved changes from 'main' to 'dev'"

    def test_message_clears_on_next_key(self, engine, state):
        state.message = "Pushed 'main'"
        engine.handle_key(state, "x")
        assert state.message is None

    def test_refresh_keeps_the_selection_by_name(self, engine, state):
        engine.handle_key(state, "j")
        engine.handle_key(state, "j")
        assert state.selected_worktree().name == "feature-login"

        result = RefreshResult(
            worktrees=[make_worktree("feature-login"), make_worktree("main", current=True)],
            statuses={"main": WorktreeStatus(branch="main")},
            errors={"feature-login": "status failed"},
        )
        engine.handle_event(state, event_for(SubmitTask(TaskKey(PROJECT_SCOPE, TaskKind.REFRESH), "refresh"), result=result))

        assert state.selected_worktree().name == "feature-login"
        assert state.errors == {"feature-login": "status failed"}

    def test_refresh_closes_overlay_of_vanished_worktree(self, engine, state):
        engine.handle_key(state, "j")
        engine.handle_key(state, "v")
        result = RefreshResult(worktrees=[make_worktree("main", current=True)], statuses={}, errors={})
        engine.handle_event(state, event_for(SubmitTask(TaskKey(PROJECT_SCOPE, TaskKind.REFRESH), "refresh"), result=result))

        assert state.overlay is None
        assert state.selected == 0


class TestRenderView:
    """Test the pure view."""

    def test_rows_and_markers(self, state):
        state.statuses["main"] = WorktreeStatus(
            branch="main",
            upstream="origin/main",
            ahead=2,
            changes=[FileChange(path="a.txt", index_status="M", worktree_status=".")],
        )
        state.inflight[3] = TaskKey("dev", TaskKind.FETCH)

        view = render_view(state)

        assert [row.name for row in view.rows] == ["main", "dev", "feature-login"]
        assert view.rows[0].marker == SYMBOL_CURRENT
        assert view.rows[0].changes == "+1"
        assert view.rows[0].sync == "↑2"
        assert view.rows[1].marker == SYMBOL_BUSY
        assert view.rows[1].busy
        assert view.rows[2].changes == ""
        assert view.cursor == 0
        assert view.mode_label == "NORMAL"

    def test_filter_and_overlay(self, engine, state):
        engine.handle_key(state, "slash")
        engine.handle_key(state, "d", "d")
        view = render_view(state)
        assert view.filter_text == "d"
        assert view.mode_label == "FILTER"

        engine.handle_key(state, "escape")
        engine.handle_key(state, "z")
        view = render_view(state)
        assert view.overlay_title == "Stashes: main"
        assert view.overlay_lines == ["Loading…"]

    def test_empty_state(self):
        view = render_view(UIState())
        assert view.rows == []
        assert view.cursor is None
