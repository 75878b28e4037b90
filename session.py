"""Session (tab) management for worktrees."""

from pathlib import Path
from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal

from logging_config import get_logger
from models import SessionKind, SessionStatus, TerminalSession, standardize_path
from terminal import (
    GotoTab,
    GotoTarget,
    ProgressState,
    SurfaceFactory,
    TerminalSurface,
    initial_input_for,
    notify_in_background,
)

logger = get_logger(__name__)

APP_TITLE = "Bourbaki"

# Commands used when no ToolSettings is attached
DEFAULT_COMMANDS = {
    SessionKind.AGENT: "clear && exec pi",
    SessionKind.GIT: "clear && exec lazygit",
    SessionKind.DIFF: "clear && exec lumen diff",
    SessionKind.SHELL: None,
}


class SessionManager(QObject):
    """Tracks open sessions, which worktree they belong to and which one is selected.

    Sessions are kept in creation order. Each session's rendering surface is
    held in a table keyed by session id; surface callbacks look the session up
    by id, so callbacks arriving after a close are ignored.
    """

    sessions_changed = Signal()
    selection_changed = Signal()
    session_updated = Signal(str)  # session id
    tool_error = Signal(str)

    def __init__(
        self,
        surface_factory: SurfaceFactory,
        tool_settings=None,
        project_store=None,
        recent_store=None,
        notifier: Optional[Callable[[str, str], object]] = notify_in_background,
        parent=None,
    ):
        super().__init__(parent)
        self.surface_factory = surface_factory
        self.tool_settings = tool_settings
        self.project_store = project_store
        self.recent_store = recent_store
        self.notifier = notifier

        self.sessions: list[TerminalSession] = []
        self.selected_session_id: str | None = None
        self.selected_worktree_path: Path | None = None
        self._surfaces: dict[str, TerminalSurface] = {}
        # Worktrees where an agent runs outside the app (see display_status)
        self.external_agent_paths: set[Path] = set()

    # Queries

    def get_session(self, session_id: str) -> TerminalSession | None:
        return next((s for s in self.sessions if s.id == session_id), None)

    def surface_for(self, session_id: str) -> TerminalSurface | None:
        return self._surfaces.get(session_id)

    def sessions_for(self, worktree_path: Path) -> list[TerminalSession]:
        key = standardize_path(worktree_path)
        return [s for s in self.sessions if s.key == key]

    @property
    def visible_sessions(self) -> list[TerminalSession]:
        """Sessions of the selected worktree only."""
        if self.selected_worktree_path is None:
            return []
        return self.sessions_for(self.selected_worktree_path)

    @property
    def selected_session(self) -> TerminalSession | None:
        if self.selected_session_id is None:
            return None
        return next((s for s in self.visible_sessions if s.id == self.selected_session_id), None)

    @property
    def has_running_terminals(self) -> bool:
        return bool(self.sessions)

    # Worktree selection

    def select_worktree(self, path: Path):
        """Show a worktree: keep the current session if it belongs there, else
        select its first session, else open an agent session for it."""
        key = standardize_path(path)
        self.selected_worktree_path = Path(path)
        self._record_recent(key)

        current = self.get_session(self.selected_session_id) if self.selected_session_id else None
        if current is not None and current.key == key:
            self.selection_changed.emit()
            return

        existing = self.sessions_for(key)
        if existing:
            self.select_session(existing[0].id)
            return

        self.create_session(SessionKind.AGENT, Path(path))

    def _record_recent(self, key: Path):
        if self.recent_store is None:
            return
        project_name, worktree_name = self.resolve_names(key)
        self.recent_store.record_open(key, project_name, worktree_name)

    def resolve_names(self, path: Path) -> tuple[str, str]:
        """(project name, worktree name) for a path, falling back to its directory name."""
        key = standardize_path(path)
        if self.project_store is not None:
            for project in self.project_store.projects:
                for wt in project.worktrees:
                    if wt.key == key:
                        return project.name, wt.name
                if standardize_path(project.root_path) == key:
                    return project.name, project.name
        return key.name, key.name

    def window_title(self) -> str:
        if self.selected_worktree_path is None:
            return APP_TITLE
        key = standardize_path(self.selected_worktree_path)
        if self.project_store is not None:
            for project in self.project_store.projects:
                for wt in project.worktrees:
                    if wt.key == key:
                        return f"{project.name} · {wt.name}"
                if standardize_path(project.root_path) == key:
                    return project.name
        return key.name

    @property
    def active_worktree_paths(self) -> list[Path]:
        """Worktrees with open sessions, in project/worktree display order when known."""
        if self.project_store is None:
            seen = set()
            paths = []
            for s in self.sessions:
                if s.key not in seen:
                    seen.add(s.key)
                    paths.append(s.worktree_path)
            return paths

        active = {s.key for s in self.sessions}
        return [p for p in self.project_store.ordered_worktree_paths() if standardize_path(p) in active]

    def select_worktree_by_index(self, index: int):
        paths = self.active_worktree_paths
        if 0 <= index < len(paths):
            self.select_worktree(paths[index])

    # Session lifecycle

    def command_for(self, kind: SessionKind) -> str | None:
        if self.tool_settings is not None:
            return self.tool_settings.command_for(kind)
        return DEFAULT_COMMANDS[kind]

    def open_tool_session(self, kind: SessionKind, working_directory: Path) -> str | None:
        """Create a session unless its tool is known to be missing; then emit ``tool_error``."""
        if self.tool_settings is not None and not self.tool_settings.is_available(kind):
            message = self.tool_settings.tool_errors.get(kind, f"{kind.value} tool is not available")
            logger.info(f"Not opening {kind.value} session: {message}")
            self.tool_error.emit(message)
            return None
        return self.create_session(kind, working_directory)

    def create_session(self, kind: SessionKind, working_directory: Path) -> str:
        """Open a new session in working_directory and select it."""
        working_directory = Path(working_directory)
        self.selected_worktree_path = working_directory

        surface = self.surface_factory(working_directory, initial_input_for(self.command_for(kind)))
        session = TerminalSession(kind=kind, worktree_path=working_directory, title=kind.display_name)
        self._wire(session.id, surface, working_directory)

        self._surfaces[session.id] = surface
        self.sessions.append(session)
        self.selected_session_id = session.id
        logger.debug(f"Created {kind.value} session {session.id[:8]} in {working_directory}")
        self.sessions_changed.emit()
        self.selection_changed.emit()
        return session.id

    def _wire(self, session_id: str, surface: TerminalSurface, working_directory: Path):
        bridge = surface.bridge
        bridge.on_title_change = lambda title: self._on_title_change(session_id, title)
        bridge.on_close_request = lambda *_: self.close_session(session_id)
        bridge.on_progress_report = lambda state: self._on_progress(session_id, state)
        bridge.on_desktop_notification = lambda title, body: self._on_notification(session_id, title, body)
        bridge.on_new_tab = lambda: self._on_new_tab(session_id, working_directory)
        bridge.on_close_tab = lambda *_: self._on_close_tab(session_id)
        bridge.on_goto_tab = lambda target: self._on_goto_tab(session_id, target)

    def close_session(self, session_id: str):
        """Remove a session and release its surface; unknown ids are ignored."""
        index = next((i for i, s in enumerate(self.sessions) if s.id == session_id), None)
        if index is None:
            return
        self.sessions.pop(index)
        surface = self._surfaces.pop(session_id, None)
        if surface is not None:
            surface.bridge.detach()
            surface.close_surface()
        logger.debug(f"Closed session {session_id[:8]}")

        if self.selected_session_id == session_id:
            visible = self.visible_sessions
            if visible:
                self.selected_session_id = visible[0].id
            else:
                self.selected_session_id = None
                wp = self.selected_worktree_path
                if wp is not None and not self.sessions_for(wp):
                    self.selected_worktree_path = None
            self.selection_changed.emit()
        self.sessions_changed.emit()

    # Session selection

    def select_session(self, session_id: str):
        session = self.get_session(session_id)
        if session is None:
            return
        self.selected_session_id = session_id
        if session.has_notification:
            session.has_notification = False
            self.session_updated.emit(session_id)
        self.selection_changed.emit()

    def _visible_index(self) -> tuple[list[TerminalSession], int | None]:
        visible = self.visible_sessions
        index = next((i for i, s in enumerate(visible) if s.id == self.selected_session_id), None)
        return visible, index

    def select_next(self):
        visible, index = self._visible_index()
        if index is None or len(visible) < 2:
            return
        self.select_session(visible[(index + 1) % len(visible)].id)

    def select_previous(self):
        visible, index = self._visible_index()
        if index is None or len(visible) < 2:
            return
        self.select_session(visible[(index - 1) % len(visible)].id)

    def select_by_index(self, index: int):
        visible = self.visible_sessions
        if 0 <= index < len(visible):
            self.select_session(visible[index].id)

    def select_last(self):
        visible = self.visible_sessions
        if visible:
            self.select_session(visible[-1].id)

    # Status

    def session_status(self, worktree_path: Path) -> SessionStatus:
        sessions = self.sessions_for(worktree_path)
        agents = [s for s in sessions if s.kind is SessionKind.AGENT]
        if agents:
            if any(s.is_running for s in agents):
                return SessionStatus.RUNNING
            return SessionStatus.IDLE
        if sessions:
            return SessionStatus.TERMINAL_ONLY
        return SessionStatus.STOPPED

    def display_status(self, worktree_path: Path) -> SessionStatus:
        """Like session_status, but an agent running outside the app counts as idle."""
        status = self.session_status(worktree_path)
        if status is SessionStatus.STOPPED and standardize_path(worktree_path) in self.external_agent_paths:
            return SessionStatus.IDLE
        return status

    def set_external_agent_activity(self, worktree_path: str, running: bool):
        """Slot for ProcessMonitor.agent_activity."""
        key = standardize_path(worktree_path)
        if running:
            self.external_agent_paths.add(key)
        else:
            self.external_agent_paths.discard(key)

    # Surface callbacks

    def _on_title_change(self, session_id: str, title: str):
        session = self.get_session(session_id)
        if session is None:
            return
        session.title = title
        self.session_updated.emit(session_id)

    def _on_progress(self, session_id: str, state: ProgressState):
        session = self.get_session(session_id)
        if session is None:
            return
        if state in (ProgressState.SET, ProgressState.INDETERMINATE):
            running = True
        elif state is ProgressState.REMOVE:
            running = False
        else:
            return
        if session.is_running != running:
            session.is_running = running
            self.session_updated.emit(session_id)

    def _on_notification(self, session_id: str, title: str, body: str):
        session = self.get_session(session_id)
        if session is None:
            return
        if self.selected_session_id != session_id:
            session.has_notification = True
            self.session_updated.emit(session_id)
        if self.notifier is not None:
            self.notifier(title, body)

    def _on_new_tab(self, session_id: str, working_directory: Path) -> bool:
        if self.get_session(session_id) is None:
            return False
        self.create_session(SessionKind.SHELL, working_directory)
        return True

    def _on_close_tab(self, session_id: str) -> bool:
        if self.get_session(session_id) is None:
            return False
        self.close_session(session_id)
        return True

    def _on_goto_tab(self, session_id: str, target: GotoTarget) -> bool:
        if self.get_session(session_id) is None:
            return False
        if target is GotoTab.PREVIOUS:
            self.select_previous()
        elif target is GotoTab.NEXT:
            self.select_next()
        elif target is GotoTab.LAST:
            self.select_last()
        elif isinstance(target, int) and target >= 0:
            self.select_by_index(target)
        else:
            return False
        return True
