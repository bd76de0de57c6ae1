"""Settings for tasksync, loaded from ``.claude/config.yaml`` and the environment.

Precedence for every value: explicit argument, then ``TASKSYNC_*``
environment variable, then the config file, then the default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigurationError

ENV_PREFIX = "TASKSYNC"

CONFIG_DIR_NAME = ".claude"
CONFIG_FILE_NAME = "config.yaml"

MODE_GITHUB = "github"
MODE_LOCAL = "local"
MODES = (MODE_GITHUB, MODE_LOCAL)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _find_key(data: Any, key: str) -> Any:
    """Depth-first search for the first ``key`` in nested mappings."""
    if isinstance(data, dict):
        if key in data:
            return data[key]
        for value in data.values():
            found = _find_key(value, key)
            if found is not None:
                return found
    return None


def read_config_file(path: Path) -> dict:
    """Load the YAML config file; a missing file is an empty config."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def normalize_mode(value: Any) -> str:
    mode = str(value).strip().strip('"').lower()
    if mode not in MODES:
        raise ConfigurationError(f"Unknown mode '{value}' (expected one of: {', '.join(MODES)})")
    return mode


@dataclass(frozen=True, slots=True)
class Settings:
    root: Path
    mode: str
    config_dir: Path
    tasks_dir: Path
    dashboard_path: Path
    lock_path: Path
    lock_attempts: int = 30
    lock_poll_interval: float = 1.0
    recent_completed_limit: int = 10
    gh_executable: str = "gh"
    gh_timeout: float = 30.0
    log_level: str = "INFO"


def load_settings(root: Path | str, mode: Optional[str] = None) -> Settings:
    """Build settings for the project rooted at ``root``."""
    root = Path(root).expanduser().resolve()
    config_dir = root / CONFIG_DIR_NAME
    file_config = read_config_file(config_dir / CONFIG_FILE_NAME)

    raw_mode = mode or _env(_k("MODE")) or _find_key(file_config, "mode") or MODE_GITHUB
    resolved_mode = normalize_mode(raw_mode)

    tasks_dir_raw = _env(_k("TASKS_DIR"))
    if tasks_dir_raw:
        tasks_dir = Path(tasks_dir_raw).expanduser()
        if not tasks_dir.is_absolute():
            tasks_dir = root / tasks_dir
    else:
        tasks_dir = config_dir / "tasks"

    return Settings(
        root=root,
        mode=resolved_mode,
        config_dir=config_dir,
        tasks_dir=tasks_dir,
        dashboard_path=config_dir / "dashboard.md",
        lock_path=config_dir / ".dashboard.lock",
        lock_attempts=_env_int(_k("LOCK_ATTEMPTS"), 30),
        lock_poll_interval=_env_float(_k("LOCK_POLL_INTERVAL"), 1.0),
        recent_completed_limit=_env_int(_k("RECENT_COMPLETED_LIMIT"), 10),
        gh_executable=_env(_k("GH")) or "gh",
        gh_timeout=_env_float(_k("GH_TIMEOUT"), 30.0),
        log_level=(_env(_k("LOG_LEVEL")) or "INFO").upper(),
    )


def resolve_root(root: Optional[str] = None) -> Path:
    """Find the project root: argument, ``TASKSYNC_PROJECT_ROOT``, then the nearest ``.claude`` ancestor."""
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ConfigurationError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = _env(_k("PROJECT_ROOT"))
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ConfigurationError(
                f"Environment variable {_k('PROJECT_ROOT')} points to '{env_root}', which does not exist."
            )
        return env_path

    cwd = Path.cwd().resolve()
    for base in (cwd, *cwd.parents):
        if (base / CONFIG_DIR_NAME).is_dir():
            return base
    return cwd
