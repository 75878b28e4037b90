"""Tests for the surface contract and desktop notifications."""

from pathlib import Path
from unittest.mock import patch

from shell import ShellResult
from terminal import TerminalSurface, initial_input_for, post_desktop_notification


class TestSurface:
    """Tests for TerminalSurface and its bridge."""

    def test_initial_input(self):
        assert initial_input_for("clear && exec pi") == "clear && exec pi\n"
        assert initial_input_for(None) is None
        assert initial_input_for("") is None

    def test_detach_clears_callbacks(self):
        surface = TerminalSurface(Path("/w/app"))
        surface.bridge.on_title_change = lambda title: None
        surface.bridge.on_goto_tab = lambda target: True

        surface.bridge.detach()
        surface.close_surface()

        assert surface.bridge.on_title_change is None
        assert surface.bridge.on_goto_tab is None
        assert surface.closed


class TestDesktopNotification:
    """Tests for post_desktop_notification."""

    def test_linux_uses_notify_send(self):
        with patch("terminal.sys.platform", "linux"), \
                patch("terminal.run_command", return_value=ShellResult(args=[], returncode=0)) as run:
            assert post_desktop_notification("pi", "Task finished")
        run.assert_called_once_with(["notify-send", "pi", "Task finished"])

    def test_macos_escapes_quotes(self):
        with patch("terminal.sys.platform", "darwin"), \
                patch("terminal.run_command", return_value=ShellResult(args=[], returncode=0)) as run:
            post_desktop_notification('say "hi"', "done")
        script = run.call_args.args[0][2]
        assert 'with title "say \\"hi\\""' in script

    def test_failure_is_reported_not_raised(self):
        with patch("terminal.sys.platform", "linux"), \
                patch("terminal.run_command",
                      return_value=ShellResult(args=[], returncode=None, error="not found")):
            assert post_desktop_notification("pi", "done") is False
