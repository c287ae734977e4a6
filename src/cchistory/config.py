"""User settings: an optional TOML file plus environment overrides.

Example ``config.toml``::

    projects_dir = "~/.claude/projects"

    [history]
    include_failed = false
    count = 50
    mode = "stream"      # or "batch"
    batch_size = 100
"""

import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path

HISTORY_MODES = ("stream", "batch")
DEFAULT_BATCH_SIZE = 100
_TRUTHY = ("1", "true", "yes", "y", "on")


@dataclass
class Settings:
    projects_dir: Path
    include_failed: bool = False
    count: int | None = None
    mode: str = "stream"
    batch_size: int = DEFAULT_BATCH_SIZE


def global_config_path() -> Path:
    override = os.environ.get("CCHISTORY_CONFIG")
    if override:
        return Path(override).expanduser()

    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif os.name == "nt":
        base = Path(os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming")
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    return base / "cchistory" / "config.toml"


def read_config_file(path: Path) -> dict:
    """Parse ``path``; a missing, unreadable or invalid file counts as empty."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError):
        return {}


def _env_value(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def _positive_int(value) -> int | None:
    # TOML booleans arrive as bool, which is an int subclass
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return None


def _resolve_projects_dir(configured) -> Path:
    override = _env_value("CCHISTORY_PROJECTS_DIR")
    if override:
        return Path(override).expanduser()
    if isinstance(configured, str) and configured.strip():
        return Path(configured.strip()).expanduser()
    claude_dir = _env_value("CLAUDE_CONFIG_DIR")
    if claude_dir:
        return Path(claude_dir).expanduser() / "projects"
    return Path.home() / ".claude" / "projects"


def load_settings(path: Path | None = None) -> Settings:
    """Build the effective settings; values of the wrong type fall back to defaults."""
    cfg = read_config_file(path or global_config_path())
    history = cfg.get("history")
    if not isinstance(history, dict):
        history = {}

    mode = history.get("mode")
    include_env = (_env_value("CCHISTORY_INCLUDE_FAILED") or "").lower()
    return Settings(
        projects_dir=_resolve_projects_dir(cfg.get("projects_dir")),
        include_failed=history.get("include_failed") is True or include_env in _TRUTHY,
        count=_positive_int(history.get("count")),
        mode=mode if mode in HISTORY_MODES else "stream",
        batch_size=_positive_int(history.get("batch_size")) or DEFAULT_BATCH_SIZE,
    )
