"""Command-line interface for worktree-hub"""

import json
import os
import sys
from argparse import Namespace
from typing import Dict, List, Optional

from rich.console import Console
from rich.text import Text

from worktree_hub.cli.args import build_parser, parse_args
from worktree_hub.cli.completion import generate_completion
from worktree_hub.config import Config
from worktree_hub.exceptions import (
    GitOperationError,
    RebaseConflictError,
    WorktreeHubError,
    WorktreeNotFoundError,
)
from worktree_hub.logging_config import get_log_file, get_logger, setup_logging
from worktree_hub.models.worktree import Worktree, WorktreeStatus
from worktree_hub.services.auditor import StaleStateAuditor
from worktree_hub.services.commit_message import CommitMessageService
from worktree_hub.services.display_service import DisplayService, worktree_to_dict
from worktree_hub.services.editor import EditorLauncher
from worktree_hub.services.lifecycle import WorktreeLifecycleManager
from worktree_hub.services.secret_store import SecretStore, mask_key
from worktree_hub.services.teleport import TeleportBridge
from worktree_hub.services.warp import is_warp_terminal, launch_config, render_launch_config, write_workflows
from worktree_hub.utils.threading import get_optimal_worker_count, get_python_threading_mode

logger = get_logger(__name__)

console = Console()
err_console = Console(stderr=True)


def _project_name_from_url(url: str) -> str:
    name = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    return name[:-4] if name.endswith(".git") else name


def _resolve_name(manager: WorktreeLifecycleManager, name: Optional[str]) -> str:
    """The given worktree name, or the current worktree's."""
    if name:
        return name
    current = manager.current()
    if current is None:
        raise WorktreeNotFoundError("(current directory)")
    return current.name


def _collect_statuses(manager: WorktreeLifecycleManager, worktrees: List[Worktree]) -> Dict[str, WorktreeStatus]:
    statuses = {}
    for wt in worktrees:
        if not wt.exists:
            continue
        try:
            statuses[wt.name] = manager.gateway.status(wt.path)
        except GitOperationError as e:
            logger.warning(f"Could not read status of '{wt.name}': {e}")
    return statuses


class CommandRunner:
    """Runs one parsed command and prints its result."""

    def __init__(self, args: Namespace, config: Config):
        self.args = args
        self.config = config
        self.cwd = os.getcwd()
        self.display = DisplayService(console, json_output=config.json_output)

    def manager(self) -> WorktreeLifecycleManager:
        return WorktreeLifecycleManager.discover(self.cwd, config=self.config)

    def say(self, message: str) -> None:
        if not self.config.json_output:
            console.print(message)

    def run(self, command: str) -> int:
        handler = getattr(self, f"cmd_{command.replace('-', '_')}")
        result = handler()
        return result if isinstance(result, int) else 0

    # Project creation

    def cmd_init(self):
        url = self.args.url
        name = self.args.name or (_project_name_from_url(url) if url else None)
        manager = WorktreeLifecycleManager(config=self.config, cwd=self.cwd)
        project = manager.init(self.cwd, source_url=url, name=name, force=self.args.force)
        workflows = None
        if self.args.warp:
            if is_warp_terminal():
                workflows = write_workflows(project.root)
            else:
                self.say("[yellow]Not running in Warp, skipped writing Warp workflows[/yellow]")
        if self.config.json_output:
            self.display.print_json(
                {
                    "root": str(project.root),
                    "engine": str(project.engine),
                    "warp_workflows": str(workflows) if workflows else None,
                }
            )
        self.say(f"[green]Initialized project at {project.root}[/green]")
        if workflows:
            self.say(f"Wrote Warp workflows to {workflows}")
        self.say("Next: [bold]worktree-hub setup[/bold] to create the main and dev worktrees")

    def cmd_setup(self):
        created = self.manager().setup()
        if self.config.json_output:
            self.display.print_json({"created": created})
        elif created:
            self.say(f"[green]Created worktrees: {', '.join(created)}[/green]")
        else:
            self.say("Main and dev worktrees already exist")

    def cmd_convert(self):
        manager = WorktreeLifecycleManager(config=self.config, cwd=self.cwd)
        project = manager.convert(self.cwd, name=self.args.name, branch=self.args.branch)
        if self.config.json_output:
            self.display.print_json({"root": str(project.root)})
        self.say(f"[green]Created hub at {project.root}[/green] (original repository untouched)")

    def cmd_migrate(self):
        manager = WorktreeLifecycleManager(config=self.config, cwd=self.cwd)
        plan = manager.migrate(self.cwd, force=self.args.force, dry_run=self.args.dry_run)
        if self.config.json_output:
            self.display.print_json(
                {
                    "root": str(plan.root),
                    "branch": plan.branch,
                    "worktree": str(plan.worktree),
                    "dirty": plan.dirty,
                    "steps": plan.steps,
                    "executed": plan.executed,
                }
            )
            return
        title = "Migrated" if plan.executed else "Migration plan (dry run)"
        self.say(f"[bold]{title}[/bold] for {plan.root}")
        for step in plan.steps:
            self.say(f"  • {step}")
        if plan.dirty and not plan.executed:
            self.say("[yellow]Uncommitted changes present; a real run needs --force[/yellow]")

    # Worktrees

    def cmd_add(self):
        wt = self.manager().add(self.args.name, self.args.branch)
        if self.config.json_output:
            self.display.print_json(worktree_to_dict(wt))
        self.say(f"[green]Added worktree '{wt.name}'[/green] ({wt.ref_label}) at {wt.path}")

    def cmd_remove(self):
        wt = self.manager().remove(self.args.name, force=self.args.force)
        self.say(f"[green]Removed worktree '{wt.name}'[/green]")

    def cmd_list(self):
        manager = self.manager()
        worktrees = manager.list()
        self.display.display_worktree_table(
            worktrees, _collect_statuses(manager, worktrees), show_legend=self.config.verbose
        )

    def cmd_switch(self):
        # Only the path goes to stdout so `cd "$(worktree-hub switch x)"` works
        print(self.manager().switch(self.args.name))

    def cmd_checkout(self):
        wt = self.manager().checkout(self.args.name, self.args.branch, discard=self.args.discard)
        self.say(f"[green]Worktree '{wt.name}' is now on {wt.ref_label}[/green]")

    def cmd_branches(self):
        branches = self.manager().branches(include_remote=self.args.remote)
        if self.config.json_output:
            self.display.print_json(branches)
            return
        for branch in branches:
            print(branch)

    def cmd_open(self):
        manager = self.manager()
        wt = manager.get(_resolve_name(manager, self.args.name))
        if not wt.exists:
            raise WorktreeHubError(f"directory of '{wt.name}' no longer exists")
        launcher = EditorLauncher(default=self.config.editor)
        command = self.args.editor or launcher.preferred()
        if not command:
            raise WorktreeHubError("no editor configured (pass --editor or run 'config set-editor')")
        if self.args.editor:
            launcher.set_preferred(command)
        status = launcher.open(command, wt.path)
        return status or 0

    def cmd_clean(self):
        manager = self.manager()
        auditor = StaleStateAuditor(manager.project, manager.gateway, self.config, self.cwd)
        report = auditor.clean(artifacts=self.args.artifacts, dry_run=self.args.dry_run)
        if self.config.json_output:
            self.display.print_json(
                {
                    "dry_run": report.dry_run,
                    "stale": [{"name": r.name, "reason": r.reason} for r in report.stale],
                    "removed": report.removed,
                    "artifacts": [str(p) for p in report.artifacts],
                }
            )
            return
        if not report.stale:
            self.say("No stale worktrees")
        for record in report.stale:
            self.say(f"  [yellow]{record.name}[/yellow]: {record.reason}")
        if report.dry_run:
            self.say(f"Would prune {len(report.stale)} stale record(s)")
        elif report.stale:
            self.say(f"[green]Pruned: {', '.join(report.removed) or 'nothing'}[/green]")
        if self.args.artifacts:
            verb = "Would delete" if report.dry_run else "Deleted"
            for path in report.artifacts:
                self.say(f"  {verb} {path}")
            if report.skipped_current:
                self.say(f"[dim]Skipped current worktree {report.skipped_current}[/dim]")

    def cmd_teleport(self):
        manager = self.manager()
        source = manager.current()
        if source is None:
            raise WorktreeNotFoundError("(current directory)")
        target = manager.get(self.args.target)
        result = TeleportBridge(manager.gateway, self.config).teleport(
            source, target, include_untracked=not self.args.no_untracked
        )
        if self.config.json_output:
            self.display.print_json(
                {"source": result.source, "target": result.target, "moved": result.moved, "kept_stash": result.kept_stash}
            )
        elif result.moved:
            self.say(f"[green]Moved changes from '{result.source}' to '{result.target}'[/green]")
            if result.kept_stash:
                self.say(f"[yellow]{result.kept_stash} was left in the stash list; drop it once checked[/yellow]")
        else:
            self.say(f"No changes to teleport from '{result.source}'")

    def cmd_sync(self):
        results = self.manager().sync(self.args.name)
        if self.config.json_output:
            self.display.print_json([{"worktree": r.worktree, "action": r.action, "path": r.path} for r in results])
            return
        if not results:
            self.say("Nothing to sync")
        for r in results:
            self.say(f"  {r.action} {r.path} → {r.worktree}")

    # Git operations

    def cmd_fetch(self):
        manager = self.manager()
        name = _resolve_name(manager, self.args.name)
        manager.fetch(name)
        self.say(f"[green]Fetched '{name}'[/green]")

    def cmd_pull(self):
        manager = self.manager()
        name = _resolve_name(manager, self.args.name)
        manager.pull(name)
        self.say(f"[green]Pulled '{name}'[/green]")

    def cmd_push(self):
        manager = self.manager()
        name = _resolve_name(manager, self.args.name)
        manager.push(name)
        self.say(f"[green]Pushed '{name}'[/green]")

    def cmd_rebase(self):
        manager = self.manager()
        name = _resolve_name(manager, self.args.name)
        try:
            manager.rebase(name, self.args.upstream)
        except RebaseConflictError as e:
            if not self.args.no_explain and not self.config.json_output:
                self._explain_conflict(e.conflict_diff)
            raise
        self.say(f"[green]Rebased '{name}' onto {self.args.upstream or self.config.main_branch}[/green]")

    def _explain_conflict(self, conflict_diff: str) -> None:
        explanation = CommitMessageService().explain(conflict_diff)
        if explanation is None:
            return
        err_console.print("[bold yellow]Conflict explanation (generated):[/bold yellow]")
        err_console.print(Text(explanation), soft_wrap=True)

    def cmd_run(self) -> int:
        if not self.args.cmd:
            raise WorktreeHubError("no command given (usage: run NAME -- COMMAND...)")
        return self.manager().run(self.args.cmd, branch=self.args.branch, name=self.args.name)

    # Credentials and preferences

    def cmd_config(self):
        action = self.args.config_command
        if action in ("set-editor", "get-editor"):
            return self._editor_config(action)
        store = SecretStore()
        if action == "set-key":
            path = store.set_api_key(self.args.key)
            self.say(f"[green]Saved API key to {path}[/green]")
            return
        key = store.get_api_key()
        if key is None:
            self.say("No API key configured")
            return 1
        print(mask_key(key))

    def _editor_config(self, action: str):
        launcher = EditorLauncher(default=self.config.editor)
        if action == "set-editor":
            path = launcher.set_preferred(self.args.editor)
            self.say(f"[green]Saved preferred editor to {path}[/green]")
            return
        command = launcher.preferred()
        if command is None:
            self.say("No preferred editor configured")
            return 1
        print(command)

    # Terminal integration

    def cmd_launch_config(self):
        manager = self.manager()
        worktrees = [wt for wt in manager.list() if wt.exists]
        layout = launch_config(manager.project.root.name, worktrees)
        if layout is None:
            raise WorktreeHubError("no worktrees to lay out (run 'setup' first)")
        if self.config.json_output:
            self.display.print_json(layout)
            return
        print(render_launch_config(layout), end="")
        if not self.config.quiet:
            err_console.print(
                "[dim]Save this as a .yaml file in Warp's launch configuration directory, "
                "or paste it into Warp's launch configuration editor.[/dim]"
            )

    def cmd_completions(self):
        print(generate_completion(build_parser(), self.args.shell), end="")

    # Interactive

    def cmd_tui(self):
        from worktree_hub.tui import run_tui

        path = run_tui(self.config, cwd=self.cwd)
        if path:
            print(path)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    parsed_args = None
    try:
        parsed_args = parse_args(argv)

        command = parsed_args.command
        if command is None:
            # Default to interactive if running in a TTY
            command = "tui" if sys.stdin.isatty() and sys.stdout.isatty() else "list"

        setup_logging(
            verbose=parsed_args.verbose,
            debug=parsed_args.debug,
            tui_mode=command == "tui",
            quiet=parsed_args.quiet,
        )
        console.quiet = parsed_args.quiet

        config = Config(
            main_branch=parsed_args.main_branch,
            dev_branch=parsed_args.dev_branch,
            workers=parsed_args.workers,
            refresh_interval=parsed_args.refresh_interval,
            verbose=parsed_args.verbose,
            debug=parsed_args.debug,
            json_output=parsed_args.json_output,
            quiet=parsed_args.quiet,
        )

        if parsed_args.debug:
            err_console.print("[yellow]Debug mode enabled[/yellow]")
            err_console.print(f"  Threading mode: {get_python_threading_mode()}")
            err_console.print(f"  Optimal workers: {get_optimal_worker_count(config.workers)}")
            err_console.print(f"  Log file: {get_log_file()}")
            for key, value in config.to_dict().items():
                err_console.print(f"  {key}: {value}")

        return CommandRunner(parsed_args, config).run(command)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except (WorktreeHubError, ValueError) as e:
        if parsed_args is not None and parsed_args.json_output:
            print(json.dumps({"status": "error", "message": str(e)}))
        else:
            err_console.print(Text.assemble(("Error: ", "red"), str(e)), soft_wrap=True)
        if parsed_args is not None and parsed_args.debug:
            err_console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
