"""Configuration management for Bourbaki."""

import copy
import json
import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

APP_NAME = "Bourbaki"
RECENTS_MAX = 15

# Stable keys for the user-configurable tool commands
TOOL_COMMAND_KEYS = {
    "agent": "toolCommand.agent",
    "git": "toolCommand.git",
    "diff": "toolCommand.diff",
}

DEFAULT_TOOL_COMMANDS = {
    "toolCommand.agent": "pi",
    "toolCommand.git": "lazygit",
    "toolCommand.diff": "lumen diff",
}

DEFAULT_CONFIG = {
    "tool_commands": dict(DEFAULT_TOOL_COMMANDS),  # dict[str, str]
    "sessions_dir": str(Path.home() / ".pi" / "agent" / "sessions"),  # str
    "session_extension": ".jsonl",  # str
    "command_timeout": 5.0,  # float, seconds for git/process calls
    "recent_worktrees": [],  # list[dict]
    "log_level": "INFO",  # str
    "enable_metrics": False,  # bool
}


def _config_dir() -> Path:
    """Get the platform-specific configuration directory."""
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        return Path(base) / APP_NAME
    elif sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    else:
        base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(base) / APP_NAME


def _config_path() -> Path:
    """Get the configuration file path."""
    return _config_dir() / "settings.json"


def projects_path() -> Path:
    """Get the path of the persisted project list."""
    return _config_dir() / "projects.json"


def load_config(path: Path | None = None) -> dict:
    """Load configuration from file, falling back to defaults."""
    p = path or _config_path()
    try:
        with p.open("r", encoding="utf-8") as f:
            cfg = json.load(f)
        if not isinstance(cfg, dict):
            raise ValueError(f"expected a JSON object, got {type(cfg).__name__}")
    except FileNotFoundError:
        return copy.deepcopy(DEFAULT_CONFIG)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to load config from {p}: {e}")
        return copy.deepcopy(DEFAULT_CONFIG)

    # Fill any missing keys with defaults
    for k, v in DEFAULT_CONFIG.items():
        cfg.setdefault(k, copy.deepcopy(v))
    tool_commands = cfg.get("tool_commands")
    if not isinstance(tool_commands, dict):
        cfg["tool_commands"] = dict(DEFAULT_TOOL_COMMANDS)
    else:
        for k, v in DEFAULT_TOOL_COMMANDS.items():
            tool_commands.setdefault(k, v)
    return cfg


def save_config(cfg: dict, path: Path | None = None):
    """Save configuration to file."""
    p = path or _config_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(f".{p.name}.tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(cfg, f, indent=2)
    tmp.replace(p)


def get_tool_command(cfg: dict, kind: str) -> str:
    """Get the configured command string for a tool kind ('agent', 'git', 'diff')."""
    key = TOOL_COMMAND_KEYS[kind]
    return cfg.get("tool_commands", {}).get(key) or DEFAULT_TOOL_COMMANDS[key]


def set_tool_command(cfg: dict, kind: str, command: str):
    """Store the command string for a tool kind."""
    cfg.setdefault("tool_commands", {})[TOOL_COMMAND_KEYS[kind]] = command


def get_sessions_dir(cfg: dict) -> Path:
    """Get the base directory holding agent session records."""
    return Path(cfg.get("sessions_dir") or DEFAULT_CONFIG["sessions_dir"]).expanduser()


def get_command_timeout(cfg: dict) -> float:
    """Get the timeout applied to external git/process calls."""
    try:
        return float(cfg.get("command_timeout", DEFAULT_CONFIG["command_timeout"]))
    except (TypeError, ValueError):
        return DEFAULT_CONFIG["command_timeout"]
