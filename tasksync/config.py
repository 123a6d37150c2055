"""Project configuration.

Settings come from environment variables and an optional ``tasksync.yaml``
in the project root::

    split_line_threshold: 100
    capability_marker: spec.md
    append_tasks:
      section: Automated Follow-up
      tasks:
        - Run the full test suite
        - Update the changelog
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .capabilities import DEFAULT_MARKER_FILE
from .exceptions import ConfigError
from .models import AppendConfig
from .splitter import DEFAULT_SPLIT_THRESHOLD

logger = logging.getLogger("tasksync.config")

CONFIG_FILE_NAME = "tasksync.yaml"
STORAGE_DIR_ENV = "TASKSYNC_STORAGE_DIR"
PROJECT_ROOT_ENV = "TASKSYNC_PROJECT_ROOT"
LOG_LEVEL_ENV = "TASKSYNC_LOG_LEVEL"
DEFAULT_STORAGE_DIR = ".tasksync"


@dataclass(slots=True)
class Settings:
    """Resolved configuration for one project root."""

    storage_dir: str = DEFAULT_STORAGE_DIR
    split_line_threshold: int = DEFAULT_SPLIT_THRESHOLD
    capability_marker: str = DEFAULT_MARKER_FILE
    append: Optional[AppendConfig] = None
    log_level: str = "INFO"
    source: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "storage_dir": self.storage_dir,
            "split_line_threshold": self.split_line_threshold,
            "capability_marker": self.capability_marker,
            "append_tasks": self.append.to_dict() if self.append else None,
            "log_level": self.log_level,
            "source": str(self.source) if self.source else None,
        }


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as exc:
        raise ConfigError(f"{path} is not valid UTF-8 at byte {exc.start}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def _append_config(raw: Any, path: Path) -> Optional[AppendConfig]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ConfigError(f"'append_tasks' in {path} must be a mapping")
    tasks = raw.get("tasks") or []
    if not isinstance(tasks, list):
        raise ConfigError(f"'append_tasks.tasks' in {path} must be a list")
    return AppendConfig.from_dict(raw)


def load_settings(root: Path | str) -> Settings:
    """Load settings for ``root`` from the environment and ``tasksync.yaml``."""
    settings = Settings(
        storage_dir=os.getenv(STORAGE_DIR_ENV) or DEFAULT_STORAGE_DIR,
        log_level=os.getenv(LOG_LEVEL_ENV) or "INFO",
    )

    path = Path(root) / CONFIG_FILE_NAME
    if not path.is_file():
        return settings

    data = _read_yaml(path)
    threshold = data.get("split_line_threshold", DEFAULT_SPLIT_THRESHOLD)
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 1:
        raise ConfigError(f"'split_line_threshold' in {path} must be a positive integer")
    marker = data.get("capability_marker", DEFAULT_MARKER_FILE)
    if not isinstance(marker, str) or not marker:
        raise ConfigError(f"'capability_marker' in {path} must be a file name")

    settings.split_line_threshold = threshold
    settings.capability_marker = marker
    settings.append = _append_config(data.get("append_tasks"), path)
    settings.source = path
    logger.debug(f"Loaded settings from {path}")
    return settings
