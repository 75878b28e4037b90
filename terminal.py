"""Rendering-surface contract and desktop notifications for Bourbaki.

Terminal rendering and PTY handling belong to an embedded terminal engine.
This module defines what the session manager needs from it: a surface
created for a working directory with an optional first input line, a
teardown operation, and a bridge of callback slots the surface invokes.
"""

import sys
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from PySide6.QtCore import QRunnable, QThreadPool

from logging_config import get_logger
from shell import run_command

logger = get_logger(__name__)


class ProgressState(Enum):
    """Progress report states emitted by the surface (OSC 9;4)."""
    REMOVE = 0
    SET = 1
    ERROR = 2
    INDETERMINATE = 3
    PAUSE = 4


class GotoTab(Enum):
    """Relative tab-navigation targets; absolute targets are plain ints >= 0."""
    PREVIOUS = -1
    NEXT = -2
    LAST = -3


GotoTarget = Union[GotoTab, int]


class SurfaceBridge:
    """Callback slots a rendering surface invokes.

    Slots left as None are ignored by the surface. ``detach`` clears every
    slot so a released surface can no longer reach its manager.
    """

    def __init__(self):
        self.on_title_change: Optional[Callable[[str], None]] = None
        self.on_close_request: Optional[Callable[[], None]] = None
        self.on_progress_report: Optional[Callable[[ProgressState], None]] = None
        self.on_desktop_notification: Optional[Callable[[str, str], None]] = None
        self.on_new_tab: Optional[Callable[[], bool]] = None
        self.on_close_tab: Optional[Callable[[], bool]] = None
        self.on_goto_tab: Optional[Callable[[GotoTarget], bool]] = None

    def detach(self):
        """Drop every callback."""
        self.on_title_change = None
        self.on_close_request = None
        self.on_progress_report = None
        self.on_desktop_notification = None
        self.on_new_tab = None
        self.on_close_tab = None
        self.on_goto_tab = None


class TerminalSurface:
    """Base class for rendering surfaces supplied by the terminal engine."""

    def __init__(self, working_directory: Path, initial_input: str | None = None):
        self.working_directory = working_directory
        self.initial_input = initial_input
        self.bridge = SurfaceBridge()
        self.closed = False

    def close_surface(self):
        """Release the surface's resources. Subclasses stop their process here."""
        self.closed = True


SurfaceFactory = Callable[[Path, Optional[str]], TerminalSurface]


def initial_input_for(command: str | None) -> str | None:
    """First line typed into a new surface: the command followed by a newline."""
    return f"{command}\n" if command else None


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def post_desktop_notification(title: str, body: str) -> bool:
    """Show an OS notification; best effort, returns whether it was delivered."""
    if sys.platform == "darwin":
        script = f'display notification "{_escape(body)}" with title "{_escape(title)}"'
        result = run_command(["osascript", "-e", script])
    elif sys.platform.startswith("win"):
        logger.debug(f"Desktop notifications not supported on this platform: {title}")
        return False
    else:
        result = run_command(["notify-send", title, body])

    if not result.ok:
        logger.debug(f"Desktop notification not delivered: {result.error or result.stderr.strip()}")
    return result.ok


class _NotificationTask(QRunnable):
    """Posts one desktop notification on the thread pool."""

    def __init__(self, title: str, body: str):
        super().__init__()
        self.title = title
        self.body = body

    def run(self):
        try:
            post_desktop_notification(self.title, self.body)
        except Exception as e:
            logger.debug(f"Desktop notification failed: {e}")


def notify_in_background(title: str, body: str, thread_pool: QThreadPool | None = None):
    """Queue a desktop notification without waiting for the notifier process."""
    (thread_pool or QThreadPool.globalInstance()).start(_NotificationTask(title, body))
