"""Interface state owned by the interactive loop."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from worktree_hub.filtering import fuzzy_filter
from worktree_hub.models.task import TaskKey
from worktree_hub.models.worktree import Commit, StashEntry, Worktree, WorktreeStatus


class Mode(Enum):
    NORMAL = "normal"
    MANAGE = "manage"
    GIT = "git"
    FILTER = "filter"


class Overlay(Enum):
    STATUS = "status"
    HISTORY = "history"
    STASH_LIST = "stashes"
    BRANCHES = "branches"
    EDITORS = "editors"


@dataclass
class UIState:
    """Everything the view is rendered from.

    ``selected`` indexes the visible (possibly filtered) list, not
    ``worktrees`` directly. Worker threads never see this object; task
    results reach it only through the engine's event handling.
    """

    worktrees: List[Worktree] = field(default_factory=list)
    statuses: Dict[str, WorktreeStatus] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    mode: Mode = Mode.NORMAL
    overlay: Optional[Overlay] = None
    overlay_target: Optional[str] = None
    overlay_selected: int = 0
    overlay_loading: bool = False
    history: List[Commit] = field(default_factory=list)
    stashes: List[StashEntry] = field(default_factory=list)
    branches: List[str] = field(default_factory=list)
    preferred_editor: Optional[str] = None
    selected: int = 0
    filter_query: str = ""
    inflight: Dict[int, TaskKey] = field(default_factory=dict)
    message: Optional[str] = None

    def visible_indices(self) -> List[int]:
        """Indices into ``worktrees`` in display order."""
        names = [wt.name for wt in self.worktrees]
        return [index for index, _ in fuzzy_filter(self.filter_query, names)]

    def visible(self) -> List[Worktree]:
        return [self.worktrees[i] for i in self.visible_indices()]

    def selected_worktree(self) -> Optional[Worktree]:
        visible = self.visible()
        if not visible:
            return None
        return visible[min(self.selected, len(visible) - 1)]

    def current_worktree(self) -> Optional[Worktree]:
        for wt in self.worktrees:
            if wt.is_current:
                return wt
        return None

    def busy_worktrees(self) -> List[str]:
        return sorted({key.worktree for key in self.inflight.values()})

    def clamp_selection(self) -> None:
        count = len(self.visible_indices())
        self.selected = max(0, min(self.selected, count - 1)) if count else 0

    def select_name(self, name: str) -> None:
        """Move the selection to worktree ``name`` if it is visible."""
        for position, wt in enumerate(self.visible()):
            if wt.name == name:
                self.selected = position
                return
