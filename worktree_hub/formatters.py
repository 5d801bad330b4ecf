"""Formatting helpers shared by the CLI table and the TUI."""

from typing import Optional

from worktree_hub.constants import (
    SYMBOL_AHEAD,
    SYMBOL_BEHIND,
    SYMBOL_CURRENT,
    SYMBOL_MISSING,
    WorktreeStyleType,
)
from worktree_hub.models.worktree import Worktree, WorktreeStatus


def format_changes(status: Optional[WorktreeStatus]) -> str:
    """
    Format uncommitted changes as counts.

    Args:
        status: Worktree status, or None when not loaded yet

    Returns:
        e.g. "+2 ~1 ?3", "clean", or "" when unknown
    """
    if status is None:
        return ""
    parts = []
    if status.staged:
        parts.append(f"+{len(status.staged)}")
    if status.unstaged:
        parts.append(f"~{len(status.unstaged)}")
    if status.untracked:
        parts.append(f"?{len(status.untracked)}")
    if status.conflicted:
        parts.append(f"!{len(status.conflicted)}")
    return " ".join(parts) if parts else "clean"


def format_sync(status: Optional[WorktreeStatus]) -> str:
    """
    Format ahead/behind counts relative to the upstream.

    Returns:
        e.g. "↑2 ↓1", "synced", "no upstream", or "" when unknown
    """
    if status is None:
        return ""
    if not status.upstream:
        return "no upstream"
    parts = []
    if status.ahead:
        parts.append(f"{SYMBOL_AHEAD}{status.ahead}")
    if status.behind:
        parts.append(f"{SYMBOL_BEHIND}{status.behind}")
    return " ".join(parts) if parts else "synced"


def format_marker(worktree: Worktree) -> str:
    """Leading marker column: current or missing."""
    if not worktree.exists:
        return SYMBOL_MISSING
    return SYMBOL_CURRENT if worktree.is_current else ""


def get_worktree_style_type(worktree: Worktree, status: Optional[WorktreeStatus]) -> str:
    """Pick the row style for a worktree."""
    if not worktree.exists:
        return WorktreeStyleType.MISSING
    if worktree.is_current:
        return WorktreeStyleType.CURRENT
    if status is not None and status.is_dirty:
        return WorktreeStyleType.DIRTY
    return WorktreeStyleType.CLEAN
