"""Tests for agent process detection."""

from pathlib import Path
from unittest.mock import Mock, patch

import psutil

from process_monitor import ProcessMonitor, find_agent_pids, is_agent_running


def _proc(pid: int, name: str) -> Mock:
    proc = Mock()
    proc.info = {"pid": pid, "name": name}
    return proc


def _process_with_cwd(cwds: dict):
    def factory(pid):
        proc = Mock()
        cwd = cwds.get(pid)
        if isinstance(cwd, Exception):
            proc.cwd.side_effect = cwd
        else:
            proc.cwd.return_value = cwd
        return proc
    return factory


PROCESSES = [_proc(10, "node"), _proc(11, "bash"), _proc(12, "pi"), _proc(13, "pipewire"), _proc(14, "bun")]


class TestFindAgentPids:
    """Tests for find_agent_pids."""

    def test_filters_by_name(self):
        with patch("process_monitor.psutil.process_iter", return_value=PROCESSES):
            assert find_agent_pids() == [10, 12, 14]

    def test_listing_failure(self):
        with patch("process_monitor.psutil.process_iter", side_effect=psutil.AccessDenied()):
            assert find_agent_pids() == []


class TestIsAgentRunning:
    """Tests for is_agent_running."""

    def test_cwd_inside_directory(self):
        cwds = {10: "/home/dev/other", 12: "/home/dev/project/src", 14: None}
        with patch("process_monitor.psutil.process_iter", return_value=PROCESSES), \
                patch("process_monitor.psutil.Process", side_effect=_process_with_cwd(cwds)):
            assert is_agent_running(Path("/home/dev/project")) is True

    def test_exact_cwd(self):
        with patch("process_monitor.psutil.process_iter", return_value=[_proc(10, "node")]), \
                patch("process_monitor.psutil.Process", side_effect=_process_with_cwd({10: "/home/dev/project"})):
            assert is_agent_running(Path("/home/dev/project")) is True

    def test_sibling_directory_does_not_match(self):
        """A shared name prefix is not containment."""
        with patch("process_monitor.psutil.process_iter", return_value=[_proc(10, "node")]), \
                patch("process_monitor.psutil.Process", side_effect=_process_with_cwd({10: "/home/dev/project-b"})):
            assert is_agent_running(Path("/home/dev/project")) is False

    def test_cwd_lookup_failure_is_not_running(self):
        cwds = {10: psutil.AccessDenied(pid=10), 12: psutil.NoSuchProcess(pid=12), 14: psutil.ZombieProcess(pid=14)}
        with patch("process_monitor.psutil.process_iter", return_value=PROCESSES), \
                patch("process_monitor.psutil.Process", side_effect=_process_with_cwd(cwds)):
            assert is_agent_running(Path("/home/dev/project")) is False

    def test_no_candidates(self):
        with patch("process_monitor.psutil.process_iter", return_value=[_proc(11, "bash")]):
            assert is_agent_running(Path("/home/dev/project")) is False


class TestProcessMonitor:
    """Tests for the off-thread ProcessMonitor."""

    def test_reports_each_directory(self, process_events_until):
        monitor = ProcessMonitor()
        results = {}
        monitor.agent_activity.connect(lambda path, running: results.__setitem__(path, running))

        def fake_probe(directory, agent_names):
            return Path(directory).name == "busy"

        with patch("process_monitor.is_agent_running", side_effect=fake_probe):
            monitor.probe([Path("/w/busy"), Path("/w/quiet")])
            assert process_events_until(lambda: len(results) == 2)

        assert results == {"/w/busy": True, "/w/quiet": False}

    def test_probe_failure_reports_not_running(self, process_events_until):
        monitor = ProcessMonitor()
        results = {}
        monitor.agent_activity.connect(lambda path, running: results.__setitem__(path, running))

        with patch("process_monitor.is_agent_running", side_effect=RuntimeError("boom")):
            monitor.probe([Path("/w/broken")])
            assert process_events_until(lambda: len(results) == 1)

        assert results == {"/w/broken": False}
