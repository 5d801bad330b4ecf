"""Configuration handling for worktree-hub"""

import os
from dataclasses import dataclass, field, fields
from typing import Optional, List

DEFAULT_ARTIFACT_DIRS = [
    "node_modules",
    "target",
    "build",
    "dist",
    ".gradle",
    "bin",
    "obj",
    "__pycache__",
    ".venv",
]


@dataclass
class Config:
    """Configuration for worktree-hub with validation."""

    # Project layout
    engine_dir: str = ".bare"
    pointer_file: str = ".git"
    main_branch: str = "main"
    dev_branch: str = "dev"
    remote: str = "origin"

    # Cleanup
    artifact_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_ARTIFACT_DIRS))

    # Teleport
    include_untracked: bool = True

    # Process and task limits (seconds)
    git_timeout: float = 300.0
    task_timeout: float = 600.0
    workers: Optional[int] = None  # None = auto-detect
    git_executable: Optional[str] = None

    history_limit: int = 50

    # Interface (seconds; 0 disables the periodic refresh)
    refresh_interval: float = 10.0
    editor: Optional[str] = None

    # Output modes
    verbose: bool = False
    debug: bool = False
    json_output: bool = False
    quiet: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_layout()
        self._validate_branches()
        self._validate_artifact_dirs()
        self._validate_timeouts()
        self._validate_workers()
        if self.git_executable is None:
            self.git_executable = os.environ.get("WORKTREE_HUB_GIT_PATH") or None

    def _validate_layout(self):
        """Engine and pointer names must be plain, distinct directory entries."""
        for name in ("engine_dir", "pointer_file"):
            value = getattr(self, name)
            if not value or not value.strip():
                raise ValueError(f"{name} cannot be empty")
            if "/" in value or "\\" in value or value in (".", ".."):
                raise ValueError(f"{name} must be a single path component, got '{value}'")
        if self.engine_dir == self.pointer_file:
            raise ValueError("engine_dir and pointer_file must differ")

    def _validate_branches(self):
        """Validate branch and remote names are not empty."""
        for name in ("main_branch", "dev_branch", "remote"):
            value = getattr(self, name)
            if not value or not value.strip():
                raise ValueError(f"{name} cannot be empty")
            setattr(self, name, value.strip())

    def _validate_artifact_dirs(self):
        """Artifact names are matched against single directory names only."""
        if not isinstance(self.artifact_dirs, list):
            raise ValueError("artifact_dirs must be a list")
        for name in self.artifact_dirs:
            if not name or "/" in name or name in (".", "..", ".git"):
                raise ValueError(f"invalid artifact directory name '{name}'")

    def _validate_timeouts(self):
        """Validate timeouts are positive."""
        if self.git_timeout <= 0:
            raise ValueError(f"git_timeout must be positive, got {self.git_timeout}")
        if self.task_timeout <= 0:
            raise ValueError(f"task_timeout must be positive, got {self.task_timeout}")
        if self.history_limit <= 0:
            raise ValueError(f"history_limit must be positive, got {self.history_limit}")
        if self.refresh_interval < 0:
            raise ValueError(f"refresh_interval cannot be negative, got {self.refresh_interval}")

    def _validate_workers(self):
        """Validate workers when given."""
        if self.workers is not None and self.workers <= 0:
            raise ValueError(f"workers must be positive, got {self.workers}")

    def to_dict(self) -> dict:
        """Convert config to a plain dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)
