"""Tests for the two-phase refresh primitives."""

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock, patch

from models import Project, SessionRecord, Worktree
from refresh import (
    FastPhaseSignals,
    FastPhaseTask,
    ScanJob,
    ScanResult,
    apply_scan_results,
    build_scan_jobs,
    carry_forward,
    fast_phase_snapshot,
    list_project_worktrees,
    run_slow_phase,
)


def _record(name: str, ts: float) -> SessionRecord:
    return SessionRecord(id=name, path=Path(f"/s/{name}.jsonl"), last_modified=datetime.fromtimestamp(ts, tz=timezone.utc))


class TestFastPhase:
    """Tests for worktree listing and carry-forward."""

    def test_root_fallback_when_git_reports_nothing(self):
        project = Project(root_path=Path("/src/app"))
        with patch("refresh.list_worktrees", return_value=[]):
            result = list_project_worktrees(project)

        assert len(result) == 1
        assert result[0].path == Path("/src/app")
        assert result[0].name == "app"

    def test_carry_forward_keeps_known_data(self):
        sessions = [_record("a", 100)]
        old = [Worktree(name="main", path=Path("/src/app"), added_lines=4, removed_lines=2, sessions=sessions)]
        new = [
            Worktree(name="main", path=Path("/src/app/")),
            Worktree(name="feature", path=Path("/src/app-feature")),
        ]

        carry_forward(old, new)

        assert (new[0].added_lines, new[0].removed_lines, new[0].sessions) == (4, 2, sessions)
        assert new[1].added_lines is None
        assert new[1].sessions == []

    def test_rescan_with_unchanged_git_state_preserves_data(self):
        """Two listings in a row never reset counts to unknown."""
        project = Project(root_path=Path("/src/app"))
        listing = lambda *args, **kwargs: [
            Worktree(name="main", path=Path("/src/app")),
            Worktree(name="feature", path=Path("/src/app-feature")),
        ]
        with patch("refresh.list_worktrees", side_effect=listing):
            project.worktrees = carry_forward(project.worktrees, list_project_worktrees(project))
            project.worktrees[0].added_lines = 7
            project.worktrees[0].removed_lines = 1
            project.worktrees[1].added_lines = 0
            project.worktrees[1].removed_lines = 0
            project.worktrees[1].sessions = [_record("x", 5)]

            project.worktrees = carry_forward(project.worktrees, list_project_worktrees(project))

        assert [(wt.added_lines, wt.removed_lines) for wt in project.worktrees] == [(7, 1), (0, 0)]
        assert [r.id for r in project.worktrees[1].sessions] == ["x"]

    def test_snapshot_is_detached(self):
        project = Project(root_path=Path("/src/app"), worktrees=[Worktree(name="main", path=Path("/src/app"))])

        [copy] = fast_phase_snapshot([project])

        assert (copy.id, copy.root_path, copy.name) == (project.id, project.root_path, project.name)
        assert copy.worktrees == []
        assert copy is not project


class TestFastPhaseTask:
    """Tests for the worker that lists worktrees project by project."""

    def test_reports_each_project_in_order(self):
        broken = Project(root_path=Path("/src/broken"))
        healthy = Project(root_path=Path("/src/healthy"))
        signals = FastPhaseSignals()
        listed = []
        finished = Mock()
        signals.project_listed.connect(lambda gen, pid, wts: listed.append((gen, pid, wts)))
        signals.finished.connect(finished)

        def listing(root, timeout=None):
            if root == Path("/src/healthy"):
                return [Worktree(name="main", path=root), Worktree(name="wip", path=Path("/src/healthy-wip"))]
            return []

        with patch("refresh.list_worktrees", side_effect=listing):
            FastPhaseTask(3, [broken, healthy], 1.0, signals).run()

        assert [(gen, pid) for gen, pid, _ in listed] == [(3, broken.id), (3, healthy.id)]
        assert [wt.path for wt in listed[0][2]] == [Path("/src/broken")]
        assert [wt.name for wt in listed[1][2]] == ["main", "wip"]
        finished.assert_called_once_with(3)

    def test_listing_failure_falls_back_to_root(self):
        project = Project(root_path=Path("/src/app"))
        signals = FastPhaseSignals()
        listed = []
        signals.project_listed.connect(lambda gen, pid, wts: listed.append(wts))

        with patch("refresh.list_worktrees", side_effect=RuntimeError("git vanished")):
            FastPhaseTask(1, [project], 1.0, signals).run()

        assert [wt.path for wt in listed[0]] == [Path("/src/app")]


class TestSlowPhase:
    """Tests for the concurrent slow phase."""

    def test_scans_every_worktree(self, temp_dir: Path):
        projects = [
            Project(root_path=Path("/a"), worktrees=[Worktree(name="a", path=Path("/a")),
                                                     Worktree(name="a2", path=Path("/a2"))]),
            Project(root_path=Path("/b"), worktrees=[Worktree(name="b", path=Path("/b"))]),
        ]
        jobs = build_scan_jobs(projects)
        stats = {Path("/a"): (1, 2), Path("/a2"): (3, 4), Path("/b"): (5, 6)}

        with patch("refresh.diff_stats", side_effect=lambda path, timeout=None: stats[path]), \
                patch("refresh.scan_sessions", side_effect=lambda base, path, ext: [_record(path.name, 1)]):
            results = run_slow_phase(jobs, temp_dir)

        assert len(results) == 3
        assert apply_scan_results(projects, results) == 3
        assert [(wt.added_lines, wt.removed_lines) for wt in projects[0].worktrees] == [(1, 2), (3, 4)]
        assert projects[1].worktrees[0].sessions[0].id == "b"

    def test_failing_worktree_gets_empty_data(self, temp_dir: Path):
        jobs = [ScanJob("p", 0, Path("/ok")), ScanJob("p", 1, Path("/bad"))]

        def stats(path, timeout=None):
            if path == Path("/bad"):
                raise RuntimeError("git exploded")
            return (9, 9)

        with patch("refresh.diff_stats", side_effect=stats), \
                patch("refresh.scan_sessions", return_value=[]):
            results = {r.path: r for r in run_slow_phase(jobs, temp_dir)}

        assert (results[Path("/ok")].added, results[Path("/ok")].removed) == (9, 9)
        assert (results[Path("/bad")].added, results[Path("/bad")].removed) == (0, 0)

    def test_no_jobs(self, temp_dir: Path):
        assert run_slow_phase([], temp_dir) == []


class TestApplyScanResults:
    """Tests for apply_scan_results."""

    def test_skips_shifted_and_unknown_entries(self):
        project = Project(root_path=Path("/a"), worktrees=[Worktree(name="a", path=Path("/a"))])
        results = [
            ScanResult(project.id, 0, Path("/a"), 1, 1),
            ScanResult(project.id, 5, Path("/gone"), 2, 2),
            ScanResult(project.id, 0, Path("/other"), 3, 3),
            ScanResult("missing-project", 0, Path("/a"), 4, 4),
        ]

        assert apply_scan_results([project], results) == 1
        assert (project.worktrees[0].added_lines, project.worktrees[0].removed_lines) == (1, 1)
