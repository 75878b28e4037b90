"""Pytest configuration and fixtures for Bourbaki tests."""

import shutil
import subprocess
import tempfile
import time
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from PySide6.QtCore import QCoreApplication


@pytest.fixture(scope="session", autouse=True)
def qapp() -> QCoreApplication:
    """A Qt core application so timers and queued signals can be delivered."""
    app = QCoreApplication.instance() or QCoreApplication([])
    return app


@pytest.fixture
def process_events_until(qapp) -> Callable[..., bool]:
    """Spin the Qt event loop until a predicate holds or the timeout expires."""

    def wait(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            QCoreApplication.processEvents()
            if predicate():
                return True
            time.sleep(0.01)
        QCoreApplication.processEvents()
        return predicate()

    return wait


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp()).resolve()
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


def _git(args: list[str], cwd: Path):
    subprocess.run(["git"] + args, cwd=cwd, check=True, capture_output=True)


@pytest.fixture
def temp_git_repo(temp_dir: Path) -> Path:
    """Create a temporary git repository with one commit on 'main'."""
    repo = temp_dir / "repo"
    repo.mkdir()
    _git(["init"], repo)
    _git(["checkout", "-b", "main"], repo)
    _git(["config", "user.name", "Test User"], repo)
    _git(["config", "user.email", "test@example.com"], repo)
    _git(["config", "commit.gpgsign", "false"], repo)

    readme_file = repo / "README.md"
    readme_file.write_text("# Test Repository\nline two\nline three\n")
    _git(["add", "README.md"], repo)
    _git(["commit", "-m", "Initial commit"], repo)

    return repo


@pytest.fixture
def sample_config(temp_dir: Path) -> dict:
    """Provide a sample configuration for testing."""
    return {
        "tool_commands": {
            "toolCommand.agent": "pi",
            "toolCommand.git": "lazygit",
            "toolCommand.diff": "lumen diff",
        },
        "sessions_dir": str(temp_dir / "sessions"),
        "session_extension": ".jsonl",
        "command_timeout": 5.0,
        "recent_worktrees": [],
        "log_level": "INFO",
        "enable_metrics": False,
    }


@pytest.fixture
def config_file(temp_dir: Path, sample_config: dict) -> Path:
    """Create a temporary config file for testing."""
    import json

    config_path = temp_dir / "settings.json"
    config_path.write_text(json.dumps(sample_config, indent=2))
    return config_path
