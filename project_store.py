"""Registered projects, their persistence and the workspace refresh."""

import json
import time
from pathlib import Path

from PySide6.QtCore import QObject, QThreadPool, Signal

from config import get_command_timeout, get_sessions_dir, projects_path
from error_handler import handle_persistence_error
from logging_config import get_logger, log_performance
from metrics import time_operation
from models import Project, Worktree, standardize_path
from refresh import (
    FastPhaseSignals,
    FastPhaseTask,
    SlowPhaseSignals,
    SlowPhaseTask,
    apply_scan_results,
    build_scan_jobs,
    carry_forward,
    fast_phase_snapshot,
)
from session_scanner import SESSION_EXTENSION

logger = get_logger(__name__)


class ProjectStore(QObject):
    """Owns the project list. Lives on the owner thread; workers only report back."""

    projects_changed = Signal()
    refresh_started = Signal()
    refresh_finished = Signal()

    def __init__(
        self,
        storage_path: Path | None = None,
        cfg: dict | None = None,
        thread_pool: QThreadPool | None = None,
        parent=None,
    ):
        super().__init__(parent)
        cfg = cfg or {}
        self.storage_path = storage_path or projects_path()
        self.sessions_dir = get_sessions_dir(cfg)
        self.session_extension = cfg.get("session_extension") or SESSION_EXTENSION
        self.command_timeout = get_command_timeout(cfg)
        self.projects: list[Project] = []

        self._pool = thread_pool or QThreadPool.globalInstance()
        self._generation = 0
        # Newest refresh whose scans have been written back
        self._applied_generation = 0
        self._fast_started_at = 0.0
        self._slow_started_at = 0.0
        self.is_refreshing = False
        self._fast_signals = FastPhaseSignals(self)
        self._fast_signals.project_listed.connect(self._on_project_listed)
        self._fast_signals.finished.connect(self._on_fast_phase_finished)
        self._slow_signals = SlowPhaseSignals(self)
        self._slow_signals.finished.connect(self._on_slow_phase_finished)

        self.load()

    # Registry

    def find_project(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def add_project(self, path: Path, name: str | None = None) -> Project | None:
        """Register a repository root. Returns None if it is already registered."""
        resolved = standardize_path(path)
        if any(standardize_path(p.root_path) == resolved for p in self.projects):
            return None
        project = Project(root_path=resolved, name=name or resolved.name)
        self.projects.append(project)
        logger.info(f"Registered project {project.name} at {resolved}")
        self.save()
        self.projects_changed.emit()
        return project

    def remove_project(self, project_id: str):
        before = len(self.projects)
        self.projects = [p for p in self.projects if p.id != project_id]
        if len(self.projects) != before:
            self.save()
            self.projects_changed.emit()

    def move_project(self, from_index: int, to_index: int):
        """Reorder the project list."""
        if not (0 <= from_index < len(self.projects)):
            return
        project = self.projects.pop(from_index)
        to_index = max(0, min(to_index, len(self.projects)))
        self.projects.insert(to_index, project)
        self.save()
        self.projects_changed.emit()

    def update_worktrees(self, project_id: str, worktrees: list[Worktree]):
        project = self.find_project(project_id)
        if project is None:
            return
        project.worktrees = worktrees
        self.projects_changed.emit()

    def ordered_worktree_paths(self) -> list[Path]:
        """Worktree paths in display order: projects, then worktrees (root if none known)."""
        paths = []
        for project in self.projects:
            if project.worktrees:
                paths.extend(wt.path for wt in project.worktrees)
            else:
                paths.append(project.root_path)
        return paths

    # Refresh

    def refresh_all(self):
        """Re-list worktrees, then scan them, both on the thread pool.

        Each project's new worktree list is applied as soon as it arrives
        (``projects_changed``); ``refresh_finished`` is emitted once the
        latest refresh has applied its slow-phase results.
        """
        self._generation += 1
        generation = self._generation
        self.is_refreshing = True
        self.refresh_started.emit()

        self._fast_started_at = time.monotonic()
        self._pool.start(FastPhaseTask(generation, fast_phase_snapshot(self.projects),
                                       self.command_timeout, self._fast_signals))

    def _on_project_listed(self, generation: int, project_id: str, worktrees: list):
        if generation != self._generation:
            return
        project = self.find_project(project_id)
        if project is None:
            return
        project.worktrees = carry_forward(project.worktrees, worktrees)
        self.projects_changed.emit()

    def _on_fast_phase_finished(self, generation: int):
        if generation != self._generation:
            # A newer refresh owns the slow phase
            return
        log_performance(logger, "refresh.fast_phase", time.monotonic() - self._fast_started_at,
                        projects=len(self.projects))
        jobs = build_scan_jobs(self.projects)
        self._slow_started_at = time.monotonic()
        self._pool.start(SlowPhaseTask(generation, jobs, self.sessions_dir, self.session_extension,
                                       self.command_timeout, self._slow_signals))

    def _on_slow_phase_finished(self, generation: int, results: list):
        if generation < self._applied_generation:
            logger.debug(f"Dropping scans of refresh #{generation}; #{self._applied_generation} already applied")
            return
        self._applied_generation = generation
        with time_operation("refresh.apply"):
            applied = apply_scan_results(self.projects, results)
        logger.debug(f"Applied {applied}/{len(results)} worktree scans (refresh #{generation})")
        self.projects_changed.emit()
        if generation == self._generation:
            log_performance(logger, "refresh.slow_phase", time.monotonic() - self._slow_started_at,
                            worktrees=len(results))
            self.is_refreshing = False
            self.refresh_finished.emit()

    # Persistence

    def load(self):
        """Read the project list; a missing or malformed file means no projects."""
        if not self.storage_path.exists():
            self.projects = []
            return
        try:
            data = json.loads(self.storage_path.read_text(encoding="utf-8"))
            self.projects = [Project.from_dict(item) for item in data]
        except (OSError, ValueError, TypeError, KeyError) as e:
            handle_persistence_error(e, "load", self.storage_path)
            self.projects = []
        logger.debug(f"Loaded {len(self.projects)} projects from {self.storage_path}")

    def save(self):
        """Write the project list atomically (id, rootPath and name only)."""
        try:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.storage_path.with_name(f".{self.storage_path.name}.tmp")
            tmp.write_text(json.dumps([p.to_dict() for p in self.projects], indent=2), encoding="utf-8")
            tmp.replace(self.storage_path)
        except OSError as e:
            handle_persistence_error(e, "save", self.storage_path)
