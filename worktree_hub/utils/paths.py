"""Canonical path helpers."""

import os
from pathlib import Path
from typing import Union

PathLike = Union[str, "os.PathLike[str]"]


def canonical(path: PathLike) -> Path:
    """Return the absolute path with symlinks resolved.

    Works for paths that no longer exist; the missing tail is kept as given.
    """
    return Path(os.path.abspath(os.fspath(path))).resolve(strict=False)


def is_within(path: PathLike, root: PathLike) -> bool:
    """True when ``path`` is ``root`` or lies below it, compared canonically."""
    return canonical(path).is_relative_to(canonical(root))
