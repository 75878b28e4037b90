"""Git operations for Bourbaki."""

import re
import shutil
from pathlib import Path
from typing import List

from logging_config import get_logger
from models import Worktree
from shell import DEFAULT_TIMEOUT, ShellResult, run_command

logger = get_logger(__name__)

_INSERTIONS_RE = re.compile(r"(\d+) insertion")
_DELETIONS_RE = re.compile(r"(\d+) deletion")


def which(cmd: str, path: str | None = None) -> str | None:
    """Find command in PATH (or in the given search path)."""
    return shutil.which(cmd, path=path)


def run_git(args: List[str], cwd: Path, timeout: float | None = DEFAULT_TIMEOUT) -> ShellResult:
    """Run ``git <args>`` in cwd with the inherited environment."""
    return run_command(["git"] + list(args), cwd=cwd, timeout=timeout)


def parse_porcelain_list(text: str) -> list[Worktree]:
    """Parse `git worktree list --porcelain`.

    One entry per ``worktree`` line, in output order. The display name is the
    last segment of the ``branch`` ref, or the directory name when detached.
    A ``bare`` line drops the record it belongs to.
    """
    results = []
    current_path: Path | None = None
    current_branch: str | None = None

    def flush():
        if current_path is not None:
            results.append(Worktree(name=current_branch or current_path.name, path=current_path))

    for line in text.splitlines():
        if line.startswith("worktree "):
            flush()
            current_path = Path(line[len("worktree "):])
            current_branch = None
        elif line.startswith("branch "):
            ref = line[len("branch "):].strip()
            current_branch = ref.split("/")[-1] or None
        elif line.strip() == "bare":
            current_path = None
            current_branch = None
    flush()
    return results


def list_worktrees(root_path: Path, timeout: float | None = DEFAULT_TIMEOUT) -> list[Worktree]:
    """List all worktrees of the repository at root_path.

    Returns an empty list when git fails; callers treat that as "no worktrees
    discovered".
    """
    cp = run_git(["worktree", "list", "--porcelain"], cwd=root_path, timeout=timeout)
    if not cp.ok:
        logger.warning(f"Failed to list worktrees for {root_path}: {cp.error or cp.stderr.strip()}")
        return []
    return parse_porcelain_list(cp.stdout)


def parse_shortstat(text: str) -> tuple[int, int]:
    """Parse output like " 3 files changed, 42 insertions(+), 10 deletions(-)".

    Returns (added, removed); a missing phrase counts as 0.
    """
    trimmed = text.strip()
    if not trimmed:
        return 0, 0

    added = 0
    removed = 0
    m = _INSERTIONS_RE.search(trimmed)
    if m:
        added = int(m.group(1))
    m = _DELETIONS_RE.search(trimmed)
    if m:
        removed = int(m.group(1))
    return added, removed


def diff_stats(worktree_path: Path, timeout: float | None = DEFAULT_TIMEOUT) -> tuple[int, int]:
    """Lines added/removed in the worktree against HEAD; (0, 0) on failure."""
    cp = run_git(["diff", "HEAD", "--shortstat"], cwd=worktree_path, timeout=timeout)
    if not cp.ok:
        logger.debug(f"diff stats unavailable for {worktree_path}")
        return 0, 0
    return parse_shortstat(cp.stdout)
