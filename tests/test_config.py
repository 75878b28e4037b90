"""Tests for configuration management functionality."""

import json
from pathlib import Path

from config import (
    DEFAULT_CONFIG,
    get_command_timeout,
    get_sessions_dir,
    get_tool_command,
    load_config,
    save_config,
    set_tool_command,
)


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_config_existing_file(self, config_file: Path, sample_config: dict):
        """Test loading configuration from existing file."""
        assert load_config(config_file) == sample_config

    def test_load_config_nonexistent_file(self, temp_dir: Path):
        config = load_config(temp_dir / "nonexistent.json")
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_load_config_malformed(self, temp_dir: Path):
        """Malformed files fall back to defaults instead of raising."""
        path = temp_dir / "settings.json"
        path.write_text("{ nope")
        assert load_config(path) == DEFAULT_CONFIG

        path.write_text("[1, 2, 3]")
        assert load_config(path) == DEFAULT_CONFIG

    def test_load_config_fills_missing_keys(self, temp_dir: Path):
        path = temp_dir / "settings.json"
        path.write_text(json.dumps({"tool_commands": {"toolCommand.git": "tig"}, "log_level": "DEBUG"}))

        config = load_config(path)

        assert config["log_level"] == "DEBUG"
        assert config["tool_commands"] == {
            "toolCommand.agent": "pi",
            "toolCommand.git": "tig",
            "toolCommand.diff": "lumen diff",
        }
        assert config["command_timeout"] == 5.0

    def test_defaults_are_not_shared(self, temp_dir: Path):
        config = load_config(temp_dir / "missing.json")
        config["recent_worktrees"].append({"path": "/x"})
        assert DEFAULT_CONFIG["recent_worktrees"] == []


class TestSaveConfig:
    """Tests for save_config function."""

    def test_save_creates_parent_directories(self, temp_dir: Path, sample_config: dict):
        path = temp_dir / "nested" / "dir" / "settings.json"

        save_config(sample_config, path)

        assert json.loads(path.read_text()) == sample_config
        assert not (path.parent / ".settings.json.tmp").exists()

    def test_save_then_load(self, temp_dir: Path, sample_config: dict):
        path = temp_dir / "settings.json"
        set_tool_command(sample_config, "diff", "delta")

        save_config(sample_config, path)

        assert get_tool_command(load_config(path), "diff") == "delta"


class TestAccessors:
    """Tests for the typed config accessors."""

    def test_tool_command_falls_back_to_default(self):
        assert get_tool_command({}, "agent") == "pi"
        assert get_tool_command({"tool_commands": {"toolCommand.git": ""}}, "git") == "lazygit"

    def test_sessions_dir_expands_user(self):
        assert get_sessions_dir({"sessions_dir": "~/sessions"}) == Path.home() / "sessions"

    def test_command_timeout(self):
        assert get_command_timeout({"command_timeout": "2.5"}) == 2.5
        assert get_command_timeout({"command_timeout": "soon"}) == 5.0
        assert get_command_timeout({}) == 5.0
