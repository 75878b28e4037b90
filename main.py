#!/usr/bin/env python3
"""
Bourbaki headless entry point.

Registers any repositories given on the command line, checks tool
availability, refreshes every project once and logs a status line per
worktree.
"""

import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QTimer

from config import _config_dir, load_config
from error_handler import ErrorCategory, ErrorSeverity, handle_error
from logging_config import configure_qt_logging, get_logger, setup_logging
from metrics import initialize_metrics
from models import SessionKind
from process_monitor import ProcessMonitor
from project_store import ProjectStore
from recent_worktrees import RecentWorktreeStore
from session import SessionManager
from terminal import TerminalSurface
from tool_settings import ToolSettings

logger = get_logger(__name__)


def _report(store: ProjectStore, manager: SessionManager, tools: ToolSettings):
    for kind, message in tools.unavailable_tools():
        logger.warning(f"{kind.value}: {message}")
    for project in store.projects:
        for wt in project.worktrees:
            added = "?" if wt.added_lines is None else wt.added_lines
            removed = "?" if wt.removed_lines is None else wt.removed_lines
            logger.info(
                f"{project.name} · {wt.name}: +{added} -{removed}, "
                f"{len(wt.sessions)} session records, {manager.display_status(wt.path).value}"
            )


def main(argv: list[str]) -> int:
    cfg = load_config()
    setup_logging(level=cfg.get("log_level", "INFO"), log_to_file=True, log_to_console=True)
    initialize_metrics(_config_dir(), enabled=bool(cfg.get("enable_metrics")))

    app = QCoreApplication(argv)
    app.setApplicationName("Bourbaki")
    configure_qt_logging()

    store = ProjectStore(cfg=cfg)
    tools = ToolSettings(cfg=cfg)
    recents = RecentWorktreeStore(cfg=cfg)
    # No terminal engine in headless mode
    manager = SessionManager(TerminalSurface, tool_settings=tools, project_store=store,
                             recent_store=recents, notifier=None)
    monitor = ProcessMonitor(agent_names=[tools.executable_name(SessionKind.AGENT) or "pi"])
    monitor.agent_activity.connect(manager.set_external_agent_activity)

    for arg in argv[1:]:
        path = Path(arg).expanduser()
        if not path.is_dir():
            logger.error(f"Not a directory: {path}")
            continue
        store.add_project(path)

    pending = {"refresh", "tools"}
    probes = {"remaining": 0}

    def finish(part: str):
        pending.discard(part)
        if not pending:
            _report(store, manager, tools)
            app.quit()

    def on_refreshed():
        paths = [wt.path for p in store.projects for wt in p.worktrees]
        probes["remaining"] = len(paths)
        if not paths:
            finish("refresh")
            return
        monitor.probe(paths)

    def on_probe(path: str, running: bool):
        probes["remaining"] -= 1
        if probes["remaining"] <= 0:
            finish("refresh")

    store.refresh_finished.connect(on_refreshed)
    monitor.agent_activity.connect(on_probe)
    tools.availability_changed.connect(lambda: finish("tools"))

    QTimer.singleShot(0, tools.check_availability)
    QTimer.singleShot(0, store.refresh_all)
    return app.exec()


def run():
    try:
        sys.exit(main(sys.argv))
    except Exception as e:
        handle_error(e, ErrorCategory.STARTUP, ErrorSeverity.CRITICAL)
        sys.exit(1)


if __name__ == "__main__":
    run()
