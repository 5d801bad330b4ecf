"""Warp terminal workflows and launch configurations for a project."""

import math
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from worktree_hub.logging_config import get_logger
from worktree_hub.models.worktree import Worktree

logger = get_logger(__name__)

WARP_TERM_PROGRAM = "WarpTerminal"
WORKFLOWS_PATH = Path(".warp") / "workflows" / "worktrees.yaml"

WORKFLOWS: List[Dict[str, Any]] = [
    {
        "name": "Worktree Setup",
        "command": "worktree-hub setup",
        "description": "Create the main and dev worktrees",
    },
    {
        "name": "Worktree Add",
        "command": "worktree-hub add {{name}}",
        "description": "Add a worktree for a feature",
        "arguments": [{"name": "name", "description": "Worktree directory name, e.g. feature-xyz"}],
    },
    {
        "name": "Worktree List",
        "command": "worktree-hub list",
        "description": "List worktrees with their status",
    },
    {
        "name": "Worktree Push",
        "command": "worktree-hub push {{name}}",
        "description": "Push a worktree's branch",
        "arguments": [{"name": "name", "description": "Worktree to push"}],
    },
    {
        "name": "Worktree Switch",
        "command": 'cd "$(worktree-hub switch {{name}})"',
        "description": "Change into a worktree",
        "arguments": [{"name": "name", "description": "Worktree name or branch"}],
    },
]


def is_warp_terminal(env: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if env is None else env
    return env.get("TERM_PROGRAM") == WARP_TERM_PROGRAM


def write_workflows(project_root: Path) -> Path:
    """Write the project's Warp workflows file, replacing any earlier one."""
    path = Path(project_root) / WORKFLOWS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump_all(WORKFLOWS, handle, sort_keys=False)
    logger.info(f"Wrote Warp workflows to {path}")
    return path


def launch_config(project_name: str, worktrees: Sequence[Worktree]) -> Optional[Dict[str, Any]]:
    """A Warp launch configuration with one pane per worktree in a two-column grid.

    Returns None when there are no worktrees to show.
    """
    if not worktrees:
        return None
    columns = 2 if len(worktrees) > 1 else 1
    rows = math.ceil(len(worktrees) / columns)
    return {
        "name": project_name,
        "windows": [
            {
                "tabs": [
                    {
                        "title": "Worktrees",
                        "layout": {
                            "grid": {"rows": rows, "columns": columns},
                            "panes": [{"cwd": str(wt.path)} for wt in worktrees],
                        },
                    }
                ]
            }
        ],
    }


def render_launch_config(config: Dict[str, Any]) -> str:
    return yaml.safe_dump(config, sort_keys=False)
