"""Parsers for git's machine-readable output formats.

Every parser here consumes NUL-delimited (``-z``) or explicitly
delimited output so paths with spaces, newlines or quotes survive.
"""

import re
from pathlib import Path
from typing import List, Optional

from worktree_hub.exceptions import GitOutputParseError
from worktree_hub.models.worktree import (
    Commit,
    FileChange,
    StashEntry,
    WorktreeRecord,
    WorktreeStatus,
)

# Field and record separators used in our --format strings
FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"

LOG_FORMAT = "%H%x1f%an%x1f%aI%x1f%s%x1e"
STASH_FORMAT = "%gd%x1f%H%x1f%gs"

_AB_RE = re.compile(r"^\+(\d+) -(\d+)$")


def parse_worktree_list(output: str) -> List[WorktreeRecord]:
    """Parse ``git worktree list --porcelain -z``.

    Each attribute is NUL-terminated and an empty attribute ends a record.
    """
    records: List[WorktreeRecord] = []
    current: Optional[WorktreeRecord] = None

    for field in output.split("\0"):
        if not field:
            if current is not None:
                records.append(current)
                current = None
            continue

        key, _, value = field.partition(" ")
        if key == "worktree":
            if current is not None:
                records.append(current)
            current = WorktreeRecord(path=value)
            continue

        if current is None:
            raise GitOutputParseError("worktree list", f"attribute '{key}' before any worktree")

        if key == "HEAD":
            current.head = value
        elif key == "branch":
            current.branch = value[len("refs/heads/"):] if value.startswith("refs/heads/") else value
        elif key == "bare":
            current.bare = True
        elif key == "detached":
            current.detached = True
        elif key == "locked":
            current.locked = True
        elif key == "prunable":
            current.prunable = True
        # Unknown attributes from newer git versions are ignored

    if current is not None:
        records.append(current)
    return records


def _change_from_xy(xy: str, path: str, orig_path: Optional[str] = None) -> FileChange:
    if len(xy) != 2:
        raise GitOutputParseError("status", f"bad XY field '{xy}'")
    return FileChange(path=path, index_status=xy[0], worktree_status=xy[1], orig_path=orig_path)


def parse_status(output: str) -> WorktreeStatus:
    """Parse ``git status --porcelain=v2 --branch -z``."""
    status = WorktreeStatus()
    fields = output.split("\0")
    i = 0
    while i < len(fields):
        entry = fields[i]
        i += 1
        if not entry:
            continue

        kind = entry[0]
        if kind == "#":
            _parse_branch_header(entry, status)
        elif kind == "1":
            parts = entry.split(" ", 8)
            if len(parts) != 9:
                raise GitOutputParseError("status", f"short ordinary entry '{entry}'")
            status.changes.append(_change_from_xy(parts[1], parts[8]))
        elif kind == "2":
            parts = entry.split(" ", 9)
            if len(parts) != 10 or i >= len(fields):
                raise GitOutputParseError("status", f"short rename entry '{entry}'")
            # The original path follows as its own NUL-terminated field
            orig_path = fields[i]
            i += 1
            status.changes.append(_change_from_xy(parts[1], parts[9], orig_path))
        elif kind == "u":
            parts = entry.split(" ", 10)
            if len(parts) != 11:
                raise GitOutputParseError("status", f"short unmerged entry '{entry}'")
            change = _change_from_xy(parts[1], parts[10])
            change.conflicted = True
            status.changes.append(change)
        elif kind == "?":
            status.changes.append(FileChange(path=entry[2:], index_status="?", worktree_status="?"))
        elif kind == "!":
            continue
        else:
            raise GitOutputParseError("status", f"unknown entry type '{kind}'")
    return status


def _parse_branch_header(entry: str, status: WorktreeStatus) -> None:
    _, _, rest = entry.partition(" ")
    key, _, value = rest.partition(" ")
    if key == "branch.oid":
        status.head = "" if value == "(initial)" else value
    elif key == "branch.head":
        status.branch = None if value == "(detached)" else value
    elif key == "branch.upstream":
        status.upstream = value
    elif key == "branch.ab":
        match = _AB_RE.match(value)
        if not match:
            raise GitOutputParseError("status", f"bad ahead/behind '{value}'")
        status.ahead = int(match.group(1))
        status.behind = int(match.group(2))


def parse_stash_list(output: str) -> List[StashEntry]:
    """Parse ``git stash list -z --format=%gd%x1f%H%x1f%gs``."""
    entries = []
    for record in output.split("\0"):
        record = record.strip("\n")
        if not record:
            continue
        parts = record.split(FIELD_SEP)
        if len(parts) != 3:
            raise GitOutputParseError("stash list", f"expected 3 fields, got {len(parts)}")
        entries.append(StashEntry(ref=parts[0], sha=parts[1], message=parts[2]))
    return entries


def parse_log(output: str) -> List[Commit]:
    """Parse ``git log --format=<LOG_FORMAT>``."""
    commits = []
    for record in output.split(RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        parts = record.split(FIELD_SEP)
        if len(parts) != 4:
            raise GitOutputParseError("log", f"expected 4 fields, got {len(parts)}")
        commits.append(Commit(sha=parts[0], author=parts[1], date=parts[2], subject=parts[3]))
    return commits


def parse_gitdir_file(text: str, admin_dir: Path) -> Optional[Path]:
    """Return the worktree directory named by an admin ``gitdir`` file.

    The file holds the path of the worktree's ``.git`` file, absolute or
    relative to the admin directory. Returns None when the content is empty.
    """
    value = text.strip()
    if not value:
        return None
    path = Path(value)
    if not path.is_absolute():
        path = admin_dir / path
    if path.name == ".git":
        path = path.parent
    return path


def parse_pointer_file(text: str) -> Optional[str]:
    """Return the target of a ``gitdir: <path>`` pointer file, or None."""
    line = text.strip()
    if not line.startswith("gitdir:"):
        return None
    target = line[len("gitdir:"):].strip()
    return target or None
