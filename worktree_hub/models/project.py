"""Project model"""
from enum import Enum
from dataclasses import dataclass
from pathlib import Path


class RepoStatus(Enum):
    """What kind of repository a directory belongs to."""
    BARE_HUB = "bare-hub"
    STANDARD = "standard"
    NONE = "none"


@dataclass(frozen=True)
class Project:
    """A bare-hub project: one engine plus peer worktrees under ``root``.

    The engine owns the authoritative worktree list; worktrees refer back
    to it by name only.
    """
    root: Path
    engine_dir: str = ".bare"
    pointer_file: str = ".git"

    @property
    def engine(self) -> Path:
        return self.root / self.engine_dir

    @property
    def pointer(self) -> Path:
        return self.root / self.pointer_file

    @property
    def admin_root(self) -> Path:
        """Directory holding the engine's per-worktree administrative records."""
        return self.engine / "worktrees"

    def worktree_path(self, name: str) -> Path:
        return self.root / name

    def pointer_text(self) -> str:
        return f"gitdir: ./{self.engine_dir}\n"
