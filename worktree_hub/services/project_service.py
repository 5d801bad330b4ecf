"""Locating bare-hub projects on disk."""

from pathlib import Path
from typing import Optional, Union, TYPE_CHECKING

from worktree_hub.exceptions import NotAProjectError
from worktree_hub.logging_config import get_logger
from worktree_hub.models.project import Project, RepoStatus
from worktree_hub.services.git.parsing import parse_pointer_file
from worktree_hub.utils.paths import canonical

if TYPE_CHECKING:
    from worktree_hub.config import Config

logger = get_logger(__name__)


def is_bare_repository(path: Path) -> bool:
    """Cheap structural check for a bare repository directory."""
    return (
        path.is_dir()
        and (path / "HEAD").is_file()
        and (path / "objects").is_dir()
        and (path / "refs").is_dir()
    )


def _read_pointer(pointer: Path) -> Optional[str]:
    try:
        return parse_pointer_file(pointer.read_text())
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Could not read pointer file {pointer}: {e}")
        return None


def _project_for_root(root: Path, engine_dir: str, pointer_file: str) -> Optional[Project]:
    """Return the project rooted at ``root`` or None if ``root`` is not one.

    Raises:
        NotAProjectError: the pointer names the engine but the engine is broken
    """
    pointer = root / pointer_file
    if not pointer.is_file():
        return None

    target = _read_pointer(pointer)
    if target is None:
        return None

    target_path = canonical(root / target)
    engine = canonical(root / engine_dir)
    if target_path != engine:
        # An ordinary linked worktree's .git file, not a hub pointer
        return None

    if not is_bare_repository(engine):
        raise NotAProjectError(str(root), f"pointer file names '{target}' but no valid engine exists there")
    return Project(root=canonical(root), engine_dir=engine_dir, pointer_file=pointer_file)


def _owning_engine(worktree_dir: Path) -> Optional[Path]:
    """For a linked worktree, the engine that owns its admin record."""
    dot_git = worktree_dir / ".git"
    if not dot_git.is_file():
        return None
    target = _read_pointer(dot_git)
    if target is None:
        return None
    admin_dir = canonical(worktree_dir / target)
    if admin_dir.parent.name != "worktrees":
        return None
    return admin_dir.parent.parent


def locate_project(
    start: Union[str, Path], config: Optional[Union["Config", dict]] = None
) -> Project:
    """Find the project containing ``start``.

    Walks up from ``start``. A directory whose pointer file resolves to a
    valid bare engine is the project root. A linked worktree's own ``.git``
    file leads to its owning project even when the worktree lives elsewhere.

    Args:
        start: Directory to start searching from
        config: Configuration with ``engine_dir`` and ``pointer_file``

    Returns:
        The located Project

    Raises:
        NotAProjectError: No project contains ``start``, or its pointer is broken
    """
    config = config or {}
    engine_dir = config.get("engine_dir", ".bare")
    pointer_file = config.get("pointer_file", ".git")
    start_path = canonical(start)

    for directory in [start_path, *start_path.parents]:
        project = _project_for_root(directory, engine_dir, pointer_file)
        if project is not None:
            logger.debug(f"Found project at {project.root}")
            return project

        engine = _owning_engine(directory)
        if engine is not None and engine.name == engine_dir:
            project = _project_for_root(engine.parent, engine_dir, pointer_file)
            if project is not None:
                logger.debug(f"Found project at {project.root} via worktree {directory}")
                return project

    raise NotAProjectError(str(start_path), f"no '{pointer_file}' pointing at a '{engine_dir}' engine found")


def detect_repo_status(path: Union[str, Path], config: Optional[Union["Config", dict]] = None) -> RepoStatus:
    """Classify ``path`` as part of a bare hub, a standard repository, or neither.

    Raises:
        NotAProjectError: a hub pointer names a missing or invalid engine
    """
    config = config or {}
    engine_dir = config.get("engine_dir", ".bare")
    pointer_file = config.get("pointer_file", ".git")
    start_path = canonical(path)

    for directory in [start_path, *start_path.parents]:
        if _project_for_root(directory, engine_dir, pointer_file) is not None:
            return RepoStatus.BARE_HUB
        engine = _owning_engine(directory)
        if engine is not None and engine.name == engine_dir:
            if _project_for_root(engine.parent, engine_dir, pointer_file) is not None:
                return RepoStatus.BARE_HUB
        if (directory / ".git").exists():
            return RepoStatus.STANDARD
    return RepoStatus.NONE
