"""Recently opened worktrees."""

import time
from pathlib import Path

from config import RECENTS_MAX, load_config, save_config
from error_handler import handle_persistence_error
from models import standardize_path


class RecentWorktreeStore:
    """Most-recently-opened worktrees, newest first, kept in the settings file."""

    def __init__(self, cfg: dict | None = None, config_path: Path | None = None, limit: int = RECENTS_MAX):
        self.config_path = config_path
        self.cfg = cfg if cfg is not None else load_config(config_path)
        self.limit = limit

    @property
    def entries(self) -> list[dict]:
        return list(self.cfg.get("recent_worktrees", []))

    def record_open(self, path: Path, project_name: str, worktree_name: str):
        """Move the worktree to the front of the list."""
        s = str(standardize_path(path))
        recents = [r for r in self.cfg.get("recent_worktrees", []) if r.get("path") != s]
        recents.insert(0, {
            "path": s,
            "projectName": project_name,
            "worktreeName": worktree_name,
            "openedAt": time.time(),
        })
        self.cfg["recent_worktrees"] = recents[:self.limit]
        try:
            save_config(self.cfg, self.config_path)
        except OSError as e:
            handle_persistence_error(e, "save", self.config_path)
