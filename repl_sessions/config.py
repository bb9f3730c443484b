"""
Configuration: JSON config file, environment overrides, CLI overrides.

Config file location (priority order):
  1. ``--config`` CLI flag
  2. ``REPL_SESSIONS_CONFIG`` env var
  3. ``typer.get_app_dir("repl_sessions")/config.json``

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console

APP_NAME = "repl_sessions"
CONFIG_ENV = "REPL_SESSIONS_CONFIG"
SESSIONS_DIR_ENV = "REPL_SESSIONS_DIR"
HISTORY_FILE_ENV = "REPL_SESSIONS_HISTORY"

err_console = Console(stderr=True)


def get_app_dir() -> Path:
    return Path(typer.get_app_dir(APP_NAME))


def get_config_file_path(config_path: Optional[str] = None) -> Path:
    """Return the resolved config file path based on the priority chain."""
    if config_path:
        return Path(config_path).expanduser()
    env_val = os.getenv(CONFIG_ENV)
    if env_val:
        return Path(env_val).expanduser()
    return get_app_dir() / "config.json"


def load_config_file(config_file: Path) -> Dict[str, Any]:
    """Load the config JSON. Returns an empty dict if missing or unreadable."""
    if not config_file.exists():
        return {}
    try:
        with open(config_file, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        err_console.print(f"[yellow]Warning: could not load config {config_file}: {exc}[/yellow]")
        return {}
    if not isinstance(data, dict):
        err_console.print(f"[yellow]Warning: config {config_file} is not a JSON object, ignoring it[/yellow]")
        return {}
    return data


@dataclass
class SessionConfig:
    """Effective settings after file, environment and flag overrides."""

    sessions_dir: Path
    history_file: Path
    auto_save: bool = False
    auto_save_min_commands: int = 5
    auto_save_interval: int = 300
    log_level: str = "WARNING"
    config_file: Optional[Path] = None

    @classmethod
    def defaults(cls) -> "SessionConfig":
        app_dir = get_app_dir()
        return cls(sessions_dir=app_dir / "sessions", history_file=app_dir / "history")

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("sessions_dir", "history_file", "config_file"):
            if data[key] is not None:
                data[key] = str(data[key])
        return data


def load_config(
    config_path: Optional[str] = None,
    sessions_dir: Optional[str] = None,
    history_file: Optional[str] = None,
) -> SessionConfig:
    """Build the effective config.

    Paths: CLI flag > env var > config file > app-dir default.
    Other keys come from the config file or fall back to defaults.
    """
    config_file = get_config_file_path(config_path)
    raw = load_config_file(config_file)
    config = SessionConfig.defaults()
    config.config_file = config_file

    sessions = sessions_dir or os.getenv(SESSIONS_DIR_ENV) or raw.get("sessions_dir")
    if sessions:
        config.sessions_dir = Path(sessions).expanduser()
    history = history_file or os.getenv(HISTORY_FILE_ENV) or raw.get("history_file")
    if history:
        config.history_file = Path(history).expanduser()

    try:
        if "auto_save" in raw:
            config.auto_save = bool(raw["auto_save"])
        if "auto_save_min_commands" in raw:
            config.auto_save_min_commands = int(raw["auto_save_min_commands"])
        if "auto_save_interval" in raw:
            config.auto_save_interval = int(raw["auto_save_interval"])
    except (TypeError, ValueError) as exc:
        err_console.print(f"[yellow]Warning: invalid auto-save setting in {config_file}: {exc}[/yellow]")
    if raw.get("log_level"):
        config.log_level = str(raw["log_level"]).upper()
    return config


CONFIG_INIT_TEMPLATE = {
    "sessions_dir": None,
    "history_file": None,
    "auto_save": False,
    "auto_save_min_commands": 5,
    "auto_save_interval": 300,
    "log_level": "WARNING",
}
