"""Command-line argument parsing for worktree-hub."""

import argparse
import sys
from typing import List, Optional

from worktree_hub.__version__ import __version__
from worktree_hub.cli.completion import SHELLS


def _add_name(parser: argparse.ArgumentParser, help_text: str = "Worktree name (default: current worktree)") -> None:
    parser.add_argument("name", nargs="?", help=help_text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worktree-hub",
        description="Manage a bare-hub project: one bare repository with peer worktrees",
        epilog="Run without a command in a terminal to open the interactive browser.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--debug", action="store_true", help="Show debug information for troubleshooting")
    parser.add_argument("--json", action="store_true", dest="json_output", help="Machine-readable JSON output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only print errors and requested values")
    parser.add_argument("--version", action="version", version=f"worktree-hub {__version__}")
    parser.add_argument("--main-branch", default="main", help="Main branch name (default: main)")
    parser.add_argument("--dev-branch", default="dev", help="Development branch name (default: dev)")
    parser.add_argument(
        "--workers",
        type=int,
        metavar="N",
        help="Number of background workers in the TUI (default: auto-detect)",
    )
    parser.add_argument(
        "--refresh-interval",
        type=float,
        default=10.0,
        metavar="SECONDS",
        help="How often the TUI re-reads worktree status; 0 turns it off (default: 10)",
    )

    sub = parser.add_subparsers(dest="command", metavar="command")

    init = sub.add_parser("init", help="Create a project (optionally cloning a remote)")
    init.add_argument("url", nargs="?", help="Repository to clone into the engine")
    init.add_argument("--name", help="Project directory (default: derived from the URL, else the current directory)")
    init.add_argument("--force", action="store_true", help="Initialize inside a non-empty directory")
    init.add_argument(
        "--warp", action="store_true", help="Write Warp workflows to .warp/workflows when running in Warp"
    )

    sub.add_parser("setup", help="Create the main and dev worktrees")

    add = sub.add_parser("add", help="Add a worktree")
    add.add_argument("name", help="Worktree directory name")
    add.add_argument("branch", nargs="?", help="Existing local or remote branch (default: a new branch named NAME)")

    remove = sub.add_parser("remove", help="Remove a worktree")
    remove.add_argument("name", help="Worktree name")
    remove.add_argument("--force", action="store_true", help="Remove even with uncommitted changes")

    sub.add_parser("list", help="List worktrees with their status")

    switch = sub.add_parser("switch", help="Print the path of a worktree (for cd)")
    switch.add_argument("name", help="Worktree name or branch")

    checkout = sub.add_parser("checkout", help="Point a worktree at another branch")
    checkout.add_argument("name", help="Worktree name")
    checkout.add_argument("branch", help="Branch to check out")
    checkout.add_argument("--discard", action="store_true", help="Discard uncommitted changes")

    branches = sub.add_parser("branches", help="List branches that can be checked out")
    branches.add_argument("--remote", action="store_true", help="Include branches that only exist on the remote")

    open_ = sub.add_parser("open", help="Open a worktree in an editor")
    _add_name(open_)
    open_.add_argument("--editor", metavar="CMD", help="Editor command (default: the preferred editor)")

    convert = sub.add_parser("convert", help="Create a bare-hub copy of the repository next to it")
    convert.add_argument("--name", help="Directory name of the new hub (default: <repo>-hub)")
    convert.add_argument("--branch", help="Branch of the first worktree (default: the current branch)")

    migrate = sub.add_parser("migrate", help="Turn the current repository into a bare-hub project in place")
    migrate.add_argument("--force", action="store_true", help="Migrate even with uncommitted changes")
    migrate.add_argument("--dry-run", action="store_true", help="Show the plan without changing anything")

    clean = sub.add_parser("clean", help="Prune stale worktree records")
    clean.add_argument("--dry-run", action="store_true", help="Report only; change nothing")
    clean.add_argument("--artifacts", action="store_true", help="Also delete build artifacts outside the current worktree")

    teleport = sub.add_parser("teleport", help="Move uncommitted changes from the current worktree to another")
    teleport.add_argument("target", help="Target worktree")
    teleport.add_argument("--no-untracked", action="store_true", help="Leave untracked files behind")

    sync = sub.add_parser("sync", help="Apply the .worktrees.sync manifest")
    _add_name(sync, "Worktree name (default: all worktrees)")

    for command, help_text in (
        ("fetch", "Fetch all remotes"),
        ("pull", "Pull the worktree's upstream"),
        ("push", "Push the worktree's branch"),
    ):
        _add_name(sub.add_parser(command, help=help_text))

    rebase = sub.add_parser("rebase", help="Rebase a worktree onto another branch")
    rebase.add_argument("upstream", nargs="?", help="Branch to rebase onto (default: main branch)")
    rebase.add_argument("--name", help="Worktree name (default: current worktree)")
    rebase.add_argument(
        "--no-explain",
        action="store_true",
        help="Do not ask the text-generation service to explain conflicts",
    )

    run = sub.add_parser("run", help="Run a command in a temporary worktree")
    run.add_argument("name", help="Name for the temporary worktree")
    run.add_argument("--branch", help="Branch or commit to check out (default: main branch)")
    run.add_argument("cmd", nargs="*", help="Command to run; put it after -- when it takes options")

    config = sub.add_parser("config", help="Manage stored credentials and preferences")
    config_sub = config.add_subparsers(dest="config_command", metavar="action")
    config_sub.required = True
    set_key = config_sub.add_parser("set-key", help="Store the commit-message API key")
    set_key.add_argument("key", help="API key")
    config_sub.add_parser("get-key", help="Show the stored API key (masked)")
    set_editor = config_sub.add_parser("set-editor", help="Store the preferred editor command")
    set_editor.add_argument("editor", help="Editor command, e.g. code or vim")
    config_sub.add_parser("get-editor", help="Show the preferred editor command")

    sub.add_parser("launch-config", help="Print a Warp launch configuration with one pane per worktree")

    completions = sub.add_parser("completions", help="Print a shell completion script")
    completions.add_argument("shell", choices=SHELLS, help="Shell to complete for")

    sub.add_parser("tui", help="Open the interactive browser")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Everything after the first ``--`` is the command for ``run`` and is
    never read as options, so ``run tmp --branch dev -- make -j4`` works.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    trailing: List[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, trailing = argv[:split], argv[split + 1:]

    parser = build_parser()
    args = parser.parse_args(argv)
    if trailing:
        if args.command != "run":
            parser.error(f"unexpected arguments after --: {' '.join(trailing)}")
        args.cmd = list(args.cmd) + trailing
    return args
