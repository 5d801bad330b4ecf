"""Shared constants for worktree-hub."""

from dataclasses import dataclass
from typing import List


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


# Shared by the CLI table and the TUI list
COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("current", "", 2),
    ColumnDefinition("name", "Worktree", 24),
    ColumnDefinition("branch", "Branch", 28),
    ColumnDefinition("changes", "Changes", 14),
    ColumnDefinition("sync", "Sync", 10),
    ColumnDefinition("path", "Path", 0),
]


# Symbol constants
SYMBOL_CURRENT = "@"
SYMBOL_MISSING = "✗"
SYMBOL_AHEAD = "↑"
SYMBOL_BEHIND = "↓"
SYMBOL_BUSY = "…"


# Sync manifest kept at the project root
SYNC_MANIFEST = ".worktrees.sync"

# Prefix of the hidden staging directory used while migrating in place
MIGRATION_STAGING_PREFIX = ".worktree-hub-migrate-"

# Teleport stash messages start with this tag
TELEPORT_TAG = "worktree-hub-teleport"

# Temporary worktrees created by ``run``
RUN_WORKTREE_PREFIX = "run-"


class WorktreeStyleType:
    """Style types for worktree rows."""

    CURRENT = "current"
    DIRTY = "dirty"
    MISSING = "missing"
    CLEAN = "clean"


# CLI colors (Rich color names)
CLI_COLORS = {
    WorktreeStyleType.CURRENT: "cyan",
    WorktreeStyleType.DIRTY: "yellow",
    WorktreeStyleType.MISSING: "red",
    WorktreeStyleType.CLEAN: None,  # Default color
}


# TUI colors (color names for Textual)
TUI_COLORS = {
    WorktreeStyleType.CURRENT: "cyan",
    WorktreeStyleType.DIRTY: "yellow",
    WorktreeStyleType.MISSING: "red",
    WorktreeStyleType.CLEAN: "green",
}


# Legend text for CLI summary
LEGEND_TEXT = """
Legend:
@ = Current worktree      ✗ = Directory missing (stale)
+ = Staged files          ~ = Unstaged files
? = Untracked files       ↑/↓ = Ahead/behind upstream
"""


HELP_TEXT = """\
[b]Normal[/b]
  j/k ↓/↑  move        /  filter       enter  switch
  m  manage mode       g  git mode     r  refresh
  v  status            l  history      z  stashes
  e  open in editor    ?  help         q/esc  quit

[b]Manage[/b]
  a  add worktree      d  remove       D  force remove
  b  pick a branch     B  checkout by name
  t  teleport changes here
  c  prune stale       C  purge artifacts
  s  sync configs      esc  back

[b]Git[/b]
  f  fetch   p  pull   P  push   R  rebase
  c  commit  C  commit with generated message
  S  stash save        esc  back

[b]Overlays[/b]
  status: A stage all, U unstage all
  stashes: a apply, p pop, d drop
  branches: enter checks out the selected branch
  editors: enter opens the worktree and remembers the choice
  esc/q  close
"""
