"""Two-phase workspace refresh: list worktrees, then scan each one concurrently.

The fast phase re-lists every project's worktrees on a worker (one git call per
project, sequentially) and carries known diff stats and session records forward, so
a routine rescan never resets them to unknown. The slow phase computes diff
stats and session records for all worktrees in parallel and only writes them
back once every scan has finished.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from PySide6.QtCore import QObject, QRunnable, Signal

from git_utils import diff_stats, list_worktrees
from logging_config import get_logger
from metrics import time_operation
from models import Project, SessionRecord, Worktree, standardize_path
from session_scanner import SESSION_EXTENSION, scan_sessions
from shell import DEFAULT_TIMEOUT

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScanJob:
    """A worktree to scan, addressed by its position at fast-phase time."""
    project_id: str
    index: int
    path: Path


@dataclass
class ScanResult:
    project_id: str
    index: int
    path: Path
    added: int = 0
    removed: int = 0
    sessions: list[SessionRecord] = field(default_factory=list)


def list_project_worktrees(project: Project, timeout: float | None = DEFAULT_TIMEOUT) -> list[Worktree]:
    """Worktrees git reports for a project, or the project root itself if none."""
    worktrees = list_worktrees(project.root_path, timeout=timeout)
    if not worktrees:
        worktrees = [Worktree(name=project.name, path=project.root_path)]
    return worktrees


def carry_forward(old: list[Worktree], new: list[Worktree]) -> list[Worktree]:
    """Copy stats and session records from old entries onto new entries with the same path."""
    known = {wt.key: wt for wt in old}
    for wt in new:
        previous = known.get(wt.key)
        if previous is not None:
            wt.added_lines = previous.added_lines
            wt.removed_lines = previous.removed_lines
            wt.sessions = list(previous.sessions)
    return new


def fast_phase_snapshot(projects: list[Project]) -> list[Project]:
    """Detached copies (id, root and name only) that a worker may read safely."""
    return [Project(root_path=p.root_path, name=p.name, id=p.id) for p in projects]


def build_scan_jobs(projects: list[Project]) -> list[ScanJob]:
    return [
        ScanJob(project_id=project.id, index=i, path=wt.path)
        for project in projects
        for i, wt in enumerate(project.worktrees)
    ]


def scan_worktree(
    job: ScanJob,
    sessions_dir: Path,
    extension: str = SESSION_EXTENSION,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> ScanResult:
    """Diff stats and session records for one worktree; failures yield empty data."""
    result = ScanResult(project_id=job.project_id, index=job.index, path=job.path)
    try:
        result.added, result.removed = diff_stats(job.path, timeout=timeout)
    except Exception as e:
        logger.warning(f"Diff stats failed for {job.path}: {e}")
    try:
        result.sessions = scan_sessions(sessions_dir, job.path, extension)
    except Exception as e:
        logger.warning(f"Session scan failed for {job.path}: {e}")
    return result


def run_slow_phase(
    jobs: list[ScanJob],
    sessions_dir: Path,
    extension: str = SESSION_EXTENSION,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> list[ScanResult]:
    """Scan every worktree concurrently (one thread each) and wait for all of them."""
    if not jobs:
        return []
    results = []
    with ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="worktree-scan") as pool:
        futures = [pool.submit(scan_worktree, job, sessions_dir, extension, timeout) for job in jobs]
        for future in as_completed(futures):
            results.append(future.result())
    return results


def apply_scan_results(projects: list[Project], results: list[ScanResult]) -> int:
    """Write scan results into the worktrees they were computed for.

    Results whose project is gone, whose index is out of range, or whose
    slot now holds a different path are skipped. Returns the number applied.
    """
    by_id = {project.id: project for project in projects}
    applied = 0
    for result in results:
        project = by_id.get(result.project_id)
        if project is None or result.index >= len(project.worktrees):
            continue
        wt = project.worktrees[result.index]
        if wt.key != standardize_path(result.path):
            continue
        wt.added_lines = result.added
        wt.removed_lines = result.removed
        wt.sessions = list(result.sessions)
        applied += 1
    return applied


class FastPhaseSignals(QObject):
    project_listed = Signal(int, str, object)  # generation, project id, list[Worktree]
    finished = Signal(int)  # generation


class FastPhaseTask(QRunnable):
    """Lists worktrees project by project on the thread pool.

    Each project's listing is handed back as soon as it is known; projects
    are listed one after another, never in parallel.
    """

    def __init__(self, generation: int, projects: list[Project], timeout: float | None,
                 signals: FastPhaseSignals):
        super().__init__()
        self.generation = generation
        self.projects = projects
        self.timeout = timeout
        self.signals = signals

    def run(self):
        try:
            with time_operation("refresh.fast_phase"):
                for project in self.projects:
                    try:
                        worktrees = list_project_worktrees(project, timeout=self.timeout)
                    except Exception as e:
                        logger.warning(f"Listing worktrees failed for {project.root_path}: {e}")
                        worktrees = [Worktree(name=project.name, path=project.root_path)]
                    self.signals.project_listed.emit(self.generation, project.id, worktrees)
        finally:
            self.signals.finished.emit(self.generation)


class SlowPhaseSignals(QObject):
    finished = Signal(int, object)  # generation, list[ScanResult]


class SlowPhaseTask(QRunnable):
    """Runs the slow phase on the thread pool and hands the results back via a signal."""

    def __init__(self, generation: int, jobs: list[ScanJob], sessions_dir: Path,
                 extension: str, timeout: float | None, signals: SlowPhaseSignals):
        super().__init__()
        self.generation = generation
        self.jobs = jobs
        self.sessions_dir = sessions_dir
        self.extension = extension
        self.timeout = timeout
        self.signals = signals

    def run(self):
        try:
            results = run_slow_phase(self.jobs, self.sessions_dir, self.extension, self.timeout)
        except Exception as e:
            logger.error(f"Slow refresh phase failed: {e}", exc_info=True)
            results = []
        self.signals.finished.emit(self.generation, results)
