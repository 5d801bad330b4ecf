"""Rich output for the command line."""

import json
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table

from worktree_hub.constants import CLI_COLORS, COLUMNS, LEGEND_TEXT
from worktree_hub.formatters import (
    format_changes,
    format_marker,
    format_sync,
    get_worktree_style_type,
)
from worktree_hub.logging_config import get_logger
from worktree_hub.models.worktree import Worktree, WorktreeStatus

logger = get_logger(__name__)


def worktree_to_dict(worktree: Worktree, status: Optional[WorktreeStatus] = None) -> dict:
    """Plain dictionary for ``--json`` output."""
    data = {
        "name": worktree.name,
        "path": str(worktree.path),
        "branch": worktree.branch,
        "head": worktree.head,
        "current": worktree.is_current,
        "exists": worktree.exists,
    }
    if status is not None:
        data.update(
            {
                "staged": len(status.staged),
                "unstaged": len(status.unstaged),
                "untracked": len(status.untracked),
                "ahead": status.ahead,
                "behind": status.behind,
                "upstream": status.upstream,
            }
        )
    return data


class DisplayService:
    def __init__(self, console: Optional[Console] = None, json_output: bool = False):
        self.console = console or Console()
        self.json_output = json_output

    def print_json(self, payload) -> None:
        # Plain print keeps the output machine-readable (no Rich markup)
        print(json.dumps(payload, indent=2, default=str))

    def display_worktree_table(
        self,
        worktrees: List[Worktree],
        statuses: Dict[str, WorktreeStatus],
        show_legend: bool = False,
    ) -> None:
        """Display a table of worktrees with their change and sync state."""
        if self.json_output:
            self.print_json([worktree_to_dict(wt, statuses.get(wt.name)) for wt in worktrees])
            return

        if not worktrees:
            self.console.print("No worktrees. Run [bold]worktree-hub setup[/bold] or [bold]add[/bold].")
            return

        table = Table()
        for col in COLUMNS:
            table.add_column(col.label, width=col.width or None)

        for wt in worktrees:
            status = statuses.get(wt.name)
            row_style = CLI_COLORS.get(get_worktree_style_type(wt, status))
            # Match COLUMNS order: marker, name, branch, changes, sync, path
            table.add_row(
                format_marker(wt),
                wt.name,
                wt.ref_label,
                format_changes(status),
                format_sync(status),
                str(wt.path),
                style=row_style,
            )

        self.console.print(table)
        if show_legend:
            self.console.print(LEGEND_TEXT)
