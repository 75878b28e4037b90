"""User-configurable tool commands and their availability on PATH."""

import os
from pathlib import Path
from typing import Mapping

from PySide6.QtCore import QObject, QRunnable, QThreadPool, QTimer, Signal

from config import (
    DEFAULT_TOOL_COMMANDS,
    TOOL_COMMAND_KEYS,
    get_tool_command,
    load_config,
    save_config,
    set_tool_command,
)
from error_handler import handle_configuration_error
from git_utils import which
from logging_config import get_logger
from models import SessionKind

logger = get_logger(__name__)

DEBOUNCE_MS = 500
FALLBACK_PATH = "/usr/bin:/bin:/usr/sbin:/sbin"

# Session kinds backed by a configurable tool (the plain shell is not)
TOOL_KINDS = (SessionKind.AGENT, SessionKind.GIT, SessionKind.DIFF)


def extra_search_dirs(home: Path) -> list[str]:
    """Common install locations that GUI-launched processes often miss."""
    return [
        "/usr/local/bin",
        "/opt/homebrew/bin",
        "/opt/homebrew/sbin",
        str(home / ".local" / "bin"),
        str(home / ".cargo" / "bin"),
        str(home / ".bun" / "bin"),
        str(home / ".local" / "share" / "mise" / "shims"),
    ]


def build_search_path(current_path: str | None, home: Path) -> str:
    """Extra directories first, then the original PATH; empties and duplicates dropped."""
    combined = extra_search_dirs(home) + (current_path or FALLBACK_PATH).split(os.pathsep)
    seen = set()
    deduped = []
    for entry in combined:
        if entry and entry not in seen:
            seen.add(entry)
            deduped.append(entry)
    return os.pathsep.join(deduped)


def first_token(command: str) -> str | None:
    """Executable name of a command string: its first whitespace-delimited word."""
    parts = command.split()
    return parts[0] if parts else None


def find_missing_tools(checks: list[tuple[SessionKind, str | None]], search_path: str) -> dict[SessionKind, str]:
    """Map each kind whose executable cannot be resolved to an error message."""
    errors = {}
    for kind, exe in checks:
        if not exe:
            continue
        if which(exe, path=search_path) is None:
            errors[kind] = f"{exe} not found in PATH"
    return errors


class _CheckSignals(QObject):
    finished = Signal(int, object)  # generation, dict[SessionKind, str]


class _CheckTask(QRunnable):
    """Resolves executables on the thread pool."""

    def __init__(self, generation: int, checks, search_path: str, signals: _CheckSignals):
        super().__init__()
        self.generation = generation
        self.checks = checks
        self.search_path = search_path
        self.signals = signals

    def run(self):
        try:
            errors = find_missing_tools(self.checks, self.search_path)
        except Exception as e:
            logger.warning(f"Tool availability check failed: {e}")
            errors = {}
        self.signals.finished.emit(self.generation, errors)


class ToolSettings(QObject):
    """Holds the agent/git/diff commands and which of them resolve on PATH.

    ``tool_errors`` maps a session kind to an advisory message; a kind that is
    absent is available (or not yet checked). Each check replaces the map.
    """

    commands_changed = Signal()
    availability_changed = Signal()
    checking_changed = Signal(bool)

    def __init__(
        self,
        cfg: dict | None = None,
        config_path: Path | None = None,
        debounce_ms: int = DEBOUNCE_MS,
        environ: Mapping[str, str] | None = None,
        home: Path | None = None,
        thread_pool: QThreadPool | None = None,
        parent=None,
    ):
        super().__init__(parent)
        self.config_path = config_path
        self.cfg = cfg if cfg is not None else load_config(config_path)
        self.tool_errors: dict[SessionKind, str] = {}
        self.is_checking = False

        environ = os.environ if environ is None else environ
        # Computed once; checks snapshot it
        self.search_path = build_search_path(environ.get("PATH"), home or Path.home())

        self._pool = thread_pool or QThreadPool.globalInstance()
        self._check_generation = 0
        self._signals = _CheckSignals(self)
        self._signals.finished.connect(self._on_check_finished)

        self._pending: dict[SessionKind, str] = {}
        self._timers: dict[SessionKind, QTimer] = {}
        for kind in TOOL_KINDS:
            timer = QTimer(self)
            timer.setSingleShot(True)
            timer.setInterval(debounce_ms)
            timer.timeout.connect(lambda k=kind: self._flush_edit(k))
            self._timers[kind] = timer

    # Commands

    def command(self, kind: SessionKind) -> str | None:
        """Raw configured command for a tool kind; None for the plain shell."""
        if kind not in TOOL_KINDS:
            return None
        return get_tool_command(self.cfg, kind.value)

    def command_for(self, kind: SessionKind) -> str | None:
        """Shell line that starts the tool, replacing the shell so the surface closes with it."""
        command = self.command(kind)
        if command is None:
            return None
        return f"clear && exec {command}"

    def executable_name(self, kind: SessionKind) -> str | None:
        command = self.command(kind)
        return first_token(command) if command else None

    def set_command(self, kind: SessionKind, value: str) -> bool:
        """Store a command (trimmed). Empty input is ignored and returns False."""
        if kind not in TOOL_KINDS:
            return False
        trimmed = value.strip()
        if not trimmed:
            return False
        if trimmed == self.command(kind):
            return True
        set_tool_command(self.cfg, kind.value, trimmed)
        self._persist(kind)
        self.commands_changed.emit()
        return True

    def reset_to_default(self, kind: SessionKind):
        """Restore the built-in command and validate right away."""
        if kind not in TOOL_KINDS:
            return
        self.cancel_pending_edit(kind)
        self.apply_command(kind, DEFAULT_TOOL_COMMANDS[TOOL_COMMAND_KEYS[kind.value]])

    def apply_command(self, kind: SessionKind, value: str):
        """Store the command and re-check availability; empty input is a no-op."""
        if self.set_command(kind, value):
            self.check_availability()

    def _persist(self, kind: SessionKind):
        try:
            save_config(self.cfg, self.config_path)
        except OSError as e:
            handle_configuration_error(e, config_key=TOOL_COMMAND_KEYS[kind.value])

    # Debounced edits

    def edit_command(self, kind: SessionKind, value: str):
        """Record an in-progress edit; only the last edit within the quiet period is applied."""
        timer = self._timers.get(kind)
        if timer is None:
            return
        self._pending[kind] = value
        # Restarting an active single-shot timer drops the earlier schedule
        timer.start()

    def cancel_pending_edit(self, kind: SessionKind):
        timer = self._timers.get(kind)
        if timer is not None:
            timer.stop()
        self._pending.pop(kind, None)

    def has_pending_edit(self, kind: SessionKind) -> bool:
        timer = self._timers.get(kind)
        return timer is not None and timer.isActive()

    def _flush_edit(self, kind: SessionKind):
        if kind not in self._pending:
            return
        self.apply_command(kind, self._pending.pop(kind))

    # Availability

    def check_availability(self):
        """Resolve every tool's executable off the owner thread."""
        self._check_generation += 1
        checks = [(kind, self.executable_name(kind)) for kind in TOOL_KINDS]
        if not self.is_checking:
            self.is_checking = True
            self.checking_changed.emit(True)
        self._pool.start(_CheckTask(self._check_generation, checks, self.search_path, self._signals))

    def _on_check_finished(self, generation: int, errors: dict):
        if generation != self._check_generation:
            # Superseded by a newer check
            return
        self.tool_errors = dict(errors)
        self.is_checking = False
        for kind, message in self.tool_errors.items():
            logger.info(f"Tool unavailable for {kind.value} sessions: {message}")
        self.availability_changed.emit()
        self.checking_changed.emit(False)

    def is_available(self, kind: SessionKind) -> bool:
        return kind not in self.tool_errors

    def unavailable_tools(self) -> list[tuple[SessionKind, str]]:
        return [(kind, self.tool_errors[kind]) for kind in TOOL_KINDS if kind in self.tool_errors]
