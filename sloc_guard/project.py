"""Project root discovery and well-known state paths."""

from __future__ import annotations

import os
from pathlib import Path

from sloc_guard.config import CONFIG_FILENAME

STATE_DIR_NAME = "sloc-guard"
FALLBACK_STATE_DIR = ".sloc-guard"
BASELINE_FILENAME = ".sloc-guard-baseline.json"
USER_CONFIG_NAME = "config.toml"


def discover_project_root(start: Path) -> Path:
    """Walk up from `start` to the first directory holding `.git/` or a config file."""
    resolved = start.resolve()
    for candidate in (resolved, *resolved.parents):
        if (candidate / ".git").is_dir() or (candidate / CONFIG_FILENAME).is_file():
            return candidate
    return resolved


def state_dir(project_root: Path) -> Path:
    git_dir = project_root / ".git"
    if git_dir.is_dir():
        return git_dir / STATE_DIR_NAME
    return project_root / FALLBACK_STATE_DIR


def baseline_path(project_root: Path) -> Path:
    return project_root / BASELINE_FILENAME


def user_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / STATE_DIR_NAME / USER_CONFIG_NAME


def find_config_file(project_root: Path) -> Path | None:
    """Return the project config, else the user config, else None."""
    local = project_root / CONFIG_FILENAME
    if local.is_file():
        return local
    user = user_config_path()
    if user.is_file():
        return user
    return None
