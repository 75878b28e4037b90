"""Locate agent session records on disk for a worktree."""

from datetime import datetime, timezone
from pathlib import Path

from logging_config import get_logger
from models import SessionRecord, standardize_path

logger = get_logger(__name__)

SESSION_EXTENSION = ".jsonl"
PATH_DELIMITER = "--"

# Earliest representable time, used when a file has no readable mtime
DISTANT_PAST = datetime.min.replace(tzinfo=timezone.utc)


def encode_worktree_path(worktree_path: Path) -> str:
    """Encode an absolute path the way the agent names its session directories."""
    return str(standardize_path(worktree_path)).replace("/", PATH_DELIMITER)


def find_session_directories(base_dir: Path, worktree_path: Path) -> list[Path]:
    """Subdirectories of base_dir that belong to the worktree.

    A directory matches when its name contains the encoded absolute path or
    the worktree's bare directory name. The second test is loose: worktrees
    whose names are substrings of one another (or share a trailing name)
    can claim the same directory.
    """
    if not base_dir.is_dir():
        return []

    encoded = encode_worktree_path(worktree_path)
    # Name of the normalized path, so a trailing "." or ".." names the real directory
    bare_name = standardize_path(worktree_path).name

    try:
        entries = sorted(base_dir.iterdir())
    except OSError as e:
        logger.warning(f"Failed to list session directory {base_dir}: {e}")
        return []

    matches = []
    for entry in entries:
        if entry.name.startswith("."):
            continue
        try:
            if not entry.is_dir():
                continue
        except OSError:
            continue
        name = entry.name
        if encoded in name or (bare_name and bare_name in name):
            matches.append(entry)
    return matches


def _modified_time(path: Path) -> datetime:
    try:
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    except (OSError, OverflowError, ValueError):
        return DISTANT_PAST


def scan_sessions(base_dir: Path, worktree_path: Path, extension: str = SESSION_EXTENSION) -> list[SessionRecord]:
    """Session records for a worktree, newest first."""
    records = []
    for directory in find_session_directories(base_dir, worktree_path):
        try:
            files = list(directory.iterdir())
        except OSError as e:
            logger.debug(f"Skipping unreadable session directory {directory}: {e}")
            continue
        for file_path in files:
            if file_path.name.startswith(".") or file_path.suffix != extension:
                continue
            records.append(SessionRecord(
                id=file_path.stem,
                path=file_path,
                last_modified=_modified_time(file_path),
            ))

    records.sort(key=lambda r: r.last_modified, reverse=True)
    return records
