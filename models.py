"""Data models for Bourbaki."""

import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


def standardize_path(path: Path | str) -> Path:
    """Absolute, normalized form of a path used as a worktree identity key.

    Symlinks are not resolved; ``~`` is expanded and ``.``/``..`` collapsed.
    """
    return Path(os.path.normpath(os.path.abspath(os.path.expanduser(str(path)))))


class SessionKind(Enum):
    """Kind of interactive session a tab runs."""

    AGENT = "agent"
    GIT = "git"
    DIFF = "diff"
    SHELL = "shell"

    @property
    def display_name(self) -> str:
        return self.value

    @property
    def is_tool(self) -> bool:
        """Whether the kind runs a user-configurable tool (everything but the plain shell)."""
        return self is not SessionKind.SHELL


class SessionStatus(Enum):
    """Status of the sessions open for a worktree, derived on demand."""

    RUNNING = "running"  # an agent session reports progress
    IDLE = "idle"  # agent session(s) open, none reporting progress
    TERMINAL_ONLY = "terminal-only"  # only non-agent sessions open
    STOPPED = "stopped"  # nothing open


@dataclass(frozen=True)
class SessionRecord:
    """A session log file found on disk for a worktree."""

    id: str  # file name without extension
    path: Path
    last_modified: datetime


@dataclass
class Worktree:
    """A git worktree belonging to a registered project."""

    name: str  # branch name, or directory name if detached
    path: Path
    added_lines: int | None = None
    removed_lines: int | None = None
    sessions: list[SessionRecord] = field(default_factory=list)

    @property
    def key(self) -> Path:
        return standardize_path(self.path)


@dataclass
class Project:
    """A registered git repository root."""

    root_path: Path
    name: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    worktrees: list[Worktree] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            self.name = Path(self.root_path).name

    def to_dict(self) -> dict:
        """Persisted form: worktrees are always rediscovered, never stored."""
        return {"id": self.id, "rootPath": str(self.root_path), "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        return cls(id=str(data["id"]), root_path=Path(data["rootPath"]), name=str(data["name"]))


@dataclass
class TerminalSession:
    """One open tab: an interactive command bound to a worktree.

    The rendering surface is owned by the session manager, keyed by ``id``.
    """

    kind: SessionKind
    worktree_path: Path
    title: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    has_notification: bool = False
    is_running: bool = False

    @property
    def key(self) -> Path:
        return standardize_path(self.worktree_path)
