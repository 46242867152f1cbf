"""Resolve runtime settings from the environment and an optional ``config.yaml``."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from loguru import logger

from .constants import (
    APP_DIR_NAME,
    CONFIG_FILE,
    ENV_CURRENT_PROJECT,
    ENV_LOG_LEVEL,
    ENV_TASK_FILE,
    PROVIDER_API_KEY_ENV,
    TASKS_FILE,
)
from .io_utils import _load_data_with_error


def get_app_data_dir(env: Optional[Mapping[str, str]] = None, platform: Optional[str] = None) -> Path:
    """Return the platform-specific data directory for the task file.

    Args:
        env: Environment mapping (defaults to ``os.environ``).
        platform: ``sys.platform`` override, for tests.

    Returns:
        ``~/Library/Application Support/taskqueue-mcp`` on macOS,
        ``%APPDATA%/taskqueue-mcp`` on Windows and the XDG data home elsewhere.
    """
    env = os.environ if env is None else env
    platform = platform or sys.platform
    home = Path.home()
    if platform == "darwin":
        return home / "Library" / "Application Support" / APP_DIR_NAME
    if platform == "win32":
        appdata = env.get("APPDATA")
        return Path(appdata) / APP_DIR_NAME if appdata else home / "AppData" / "Roaming" / APP_DIR_NAME
    xdg = env.get("XDG_DATA_HOME")
    return Path(xdg) / APP_DIR_NAME if xdg else home / ".local" / "share" / APP_DIR_NAME


@dataclass
class Settings:
    task_file: Path
    current_project_path: Optional[Path] = None
    log_level: Optional[str] = None
    env: Mapping[str, str] = field(default_factory=dict, repr=False)

    def api_key_for(self, provider: str) -> Optional[str]:
        var = PROVIDER_API_KEY_ENV.get(provider)
        if not var:
            return None
        value = self.env.get(var)
        return value or None


def _get_str(config: dict[str, Any], key: str) -> Optional[str]:
    raw = config.get(key)
    return raw if isinstance(raw, str) and raw else None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings`.

    Environment variables win over ``<app data dir>/config.yaml``; a broken
    config file is logged and ignored.
    """
    env = dict(os.environ if env is None else env)
    app_dir = get_app_data_dir(env)

    config_path = app_dir / CONFIG_FILE
    config, err = _load_data_with_error(config_path, {})
    if err:
        logger.warning("Ignoring config file {}: {}", config_path, err)
        config = {}

    task_file = env.get(ENV_TASK_FILE) or _get_str(config, "task_file")
    current_project = env.get(ENV_CURRENT_PROJECT) or _get_str(config, "current_project_path")
    log_level = env.get(ENV_LOG_LEVEL) or _get_str(config, "log_level")

    return Settings(
        task_file=Path(task_file).expanduser() if task_file else app_dir / TASKS_FILE,
        current_project_path=Path(current_project).expanduser() if current_project else None,
        log_level=log_level,
        env=env,
    )
