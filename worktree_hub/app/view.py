"""Pure rendering of ``UIState`` into plain display data."""

from dataclasses import dataclass, field
from typing import List, Optional

from worktree_hub.app.state import Mode, Overlay, UIState
from worktree_hub.constants import SYMBOL_BUSY
from worktree_hub.models.editor import EDITORS
from worktree_hub.formatters import (
    format_changes,
    format_marker,
    format_sync,
    get_worktree_style_type,
)

MODE_HINTS = {
    Mode.NORMAL: "j/k move  / filter  m manage  g git  v status  l log  z stash  e editor  r refresh  enter switch  ? help  q quit",
    Mode.MANAGE: "a add  d remove  D force remove  b branches  B checkout by name  t teleport here  c prune  C purge artifacts  s sync  esc back",
    Mode.GIT: "f fetch  p pull  P push  R rebase  c commit  C generate message  S stash  esc back",
    Mode.FILTER: "type to filter  ↑/↓ move  enter select  ctrl+u clear  esc cancel",
}

OVERLAY_HINTS = {
    Overlay.STATUS: "A stage all  U unstage all  esc close",
    Overlay.HISTORY: "j/k move  esc close",
    Overlay.STASH_LIST: "a apply  p pop  d drop  esc close",
    Overlay.BRANCHES: "j/k move  enter checkout  esc close",
    Overlay.EDITORS: "j/k move  enter open  esc close",
}


@dataclass
class Row:
    marker: str
    name: str
    branch: str
    changes: str
    sync: str
    path: str
    style: str
    busy: bool = False
    error: Optional[str] = None


@dataclass
class View:
    rows: List[Row]
    cursor: Optional[int]
    mode_label: str
    hints: str
    filter_text: Optional[str] = None
    overlay_title: Optional[str] = None
    overlay_lines: List[str] = field(default_factory=list)
    message: Optional[str] = None


def _overlay(state: UIState) -> List[str]:
    if state.overlay_loading:
        return ["Loading…"]

    if state.overlay is Overlay.STATUS:
        status = state.statuses.get(state.overlay_target or "")
        if status is None:
            return []
        header = f"{status.branch or '(detached)'}"
        if status.upstream:
            header += f" → {status.upstream}  {format_sync(status)}"
        lines = [header, ""]
        if not status.changes:
            lines.append("Nothing to commit, working tree clean")
        for change in status.changes:
            label = f"{change.index_status}{change.worktree_status}"
            name = f"{change.orig_path} -> {change.path}" if change.orig_path else change.path
            lines.append(f"{label} {name}")
        return lines

    if state.overlay is Overlay.HISTORY:
        if not state.history:
            return ["No commits yet"]
        return [f"{c.short_sha} {c.date[:10]} {c.author}: {c.subject}" for c in state.history]

    if state.overlay is Overlay.BRANCHES:
        if not state.branches:
            return ["No branches"]
        current = next((wt.branch for wt in state.worktrees if wt.name == state.overlay_target), None)
        return [f"{branch} *" if branch == current else branch for branch in state.branches]

    if state.overlay is Overlay.EDITORS:
        return [
            f"{option.name} ({option.command})" + ("  preferred" if option.command == state.preferred_editor else "")
            for option in EDITORS
        ]

    if not state.stashes:
        return ["No stashes"]
    return [f"{entry.ref}  {entry.message}" for entry in state.stashes]


def _mark_selection(lines: List[str], selected: int, offset: int) -> List[str]:
    marked = []
    for index, line in enumerate(lines):
        prefix = "> " if index - offset == selected else "  "
        marked.append(prefix + line)
    return marked


def render_view(state: UIState) -> View:
    """Build the display data for ``state``. Performs no I/O."""
    busy = set(state.busy_worktrees())
    rows = []
    for wt in state.visible():
        status = state.statuses.get(wt.name)
        marker = format_marker(wt)
        if wt.name in busy:
            marker = SYMBOL_BUSY
        rows.append(
            Row(
                marker=marker,
                name=wt.name,
                branch=wt.ref_label,
                changes=format_changes(status),
                sync=format_sync(status),
                path=str(wt.path),
                style=get_worktree_style_type(wt, status),
                busy=wt.name in busy,
                error=state.errors.get(wt.name),
            )
        )

    view = View(
        rows=rows,
        cursor=min(state.selected, len(rows) - 1) if rows else None,
        mode_label=state.mode.value.upper(),
        hints=MODE_HINTS[state.mode],
        message=state.message,
    )
    if state.mode is Mode.FILTER or state.filter_query:
        view.filter_text = state.filter_query

    if state.overlay is not None:
        lines = _overlay(state)
        view.overlay_title = f"{state.overlay.value.title()}: {state.overlay_target}"
        view.hints = OVERLAY_HINTS[state.overlay]
        if state.overlay is Overlay.STATUS and not state.overlay_loading:
            # Two header lines precede the file entries
            view.overlay_lines = _mark_selection(lines, state.overlay_selected, 2)
        elif state.history or state.stashes or state.branches or state.overlay is Overlay.EDITORS:
            view.overlay_lines = _mark_selection(lines, state.overlay_selected, 0)
        else:
            view.overlay_lines = lines
    return view
