"""Detect agent processes working inside a worktree."""

import os
from pathlib import Path
from typing import Iterable

import psutil
from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

from logging_config import get_logger
from models import standardize_path

logger = get_logger(__name__)

# Runtimes the agent is commonly launched under
RUNTIME_HINTS = ("node", "bun")
DEFAULT_AGENT_NAMES = ("pi",)


def _looks_like_agent(name: str, agent_names: Iterable[str]) -> bool:
    lowered = name.lower()
    if any(hint in lowered for hint in RUNTIME_HINTS):
        return True
    return lowered in {n.lower() for n in agent_names}


def find_agent_pids(agent_names: Iterable[str] = DEFAULT_AGENT_NAMES) -> list[int]:
    """PIDs of processes whose name suggests the agent or its runtime."""
    agent_names = tuple(agent_names)
    pids = []
    try:
        for proc in psutil.process_iter(["pid", "name"]):
            name = proc.info.get("name") or ""
            if _looks_like_agent(name, agent_names):
                pids.append(proc.info["pid"])
    except (psutil.Error, OSError) as e:
        logger.warning(f"Failed to list processes: {e}")
        return []
    return pids


def process_cwd(pid: int) -> str | None:
    """Current working directory of a process, or None if it cannot be read."""
    try:
        return psutil.Process(pid).cwd()
    except (psutil.Error, OSError):
        return None


def _is_within(path: str, directory: str) -> bool:
    return path == directory or path.startswith(directory.rstrip(os.sep) + os.sep)


def is_agent_running(directory: Path, agent_names: Iterable[str] = DEFAULT_AGENT_NAMES) -> bool:
    """Whether an agent-like process has its cwd inside directory.

    Blocking; run it off the owner thread. Any lookup failure counts as
    "not running".
    """
    target = str(standardize_path(directory))
    for pid in find_agent_pids(agent_names):
        cwd = process_cwd(pid)
        if cwd and _is_within(cwd, target):
            return True
    return False


class _ProbeSignals(QObject):
    finished = Signal(str, bool)


class _ProbeTask(QRunnable):
    """Runs the process probe for a batch of directories on the thread pool."""

    def __init__(self, directories: list[Path], agent_names: tuple[str, ...], signals: _ProbeSignals):
        super().__init__()
        self.directories = directories
        self.agent_names = agent_names
        self.signals = signals

    def run(self):
        for directory in self.directories:
            try:
                running = is_agent_running(directory, self.agent_names)
            except Exception as e:
                logger.warning(f"Agent probe failed for {directory}: {e}")
                running = False
            self.signals.finished.emit(str(directory), running)


class ProcessMonitor(QObject):
    """Runs agent probes off the owner thread and reports each result back on it."""

    agent_activity = Signal(str, bool)  # worktree path, running

    def __init__(self, agent_names: Iterable[str] = DEFAULT_AGENT_NAMES, thread_pool: QThreadPool | None = None, parent=None):
        super().__init__(parent)
        self.agent_names = tuple(agent_names)
        self._pool = thread_pool or QThreadPool.globalInstance()
        self._signals = _ProbeSignals(self)
        self._signals.finished.connect(self.agent_activity)

    def probe(self, directories: Iterable[Path]):
        """Schedule a probe of each directory; results arrive via ``agent_activity``."""
        dirs = [Path(d) for d in directories]
        if not dirs:
            return
        self._pool.start(_ProbeTask(dirs, self.agent_names, self._signals))
