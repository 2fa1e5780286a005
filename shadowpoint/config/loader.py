"""Configuration loader for shadowpoint.

Handles loading and merging configuration from multiple sources.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from ..utils.env import env_flag, get_global_config_dir
from ..utils.fs import load_json_object, write_json
from .types import CheckpointConfig


logger = logging.getLogger(__name__)

PROJECT_CONFIG_DIR = Path(".agent") / "shadowpoint"
CONFIG_NAME = "config.json"


class ConfigLoader:
    """Loads and manages shadowpoint configuration."""

    def __init__(self, project_root: Path | None = None):
        """Initialize config loader.

        Args:
            project_root: Working directory (for project-local config)
        """
        self.project_root = project_root
        self._config: CheckpointConfig | None = None

    @property
    def config(self) -> CheckpointConfig:
        """Get loaded configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def global_config_path(self) -> Path:
        return get_global_config_dir() / CONFIG_NAME

    def project_config_path(self) -> Path | None:
        if not self.project_root:
            return None
        return Path(self.project_root) / PROJECT_CONFIG_DIR / CONFIG_NAME

    def load(self) -> CheckpointConfig:
        """Load configuration from all sources.

        Priority (highest to lowest):
        1. Environment (SHADOWPOINT_ENABLED, SHADOWPOINT_STORAGE_ROOT, SHADOWPOINT_GIT)
        2. Project-local config (.agent/shadowpoint/config.json)
        3. Global config (~/.shadowpoint/config.json)
        4. Default values

        Returns:
            Merged CheckpointConfig
        """
        merged = load_json_object(self.global_config_path())

        project_path = self.project_config_path()
        if project_path is not None:
            merged = self._deep_merge(merged, load_json_object(project_path))

        merged = self._deep_merge(merged, self._env_overrides())
        return CheckpointConfig.from_dict(merged)

    def reload(self) -> CheckpointConfig:
        """Force reload configuration."""
        self._config = None
        return self.config

    def save_config(self, config: CheckpointConfig, scope: str = "project") -> Path:
        """Save configuration to file.

        Args:
            config: Configuration to save
            scope: "project" or "global"

        Returns:
            Path where config was saved
        """
        if scope == "global":
            config_path = self.global_config_path()
        else:
            project_path = self.project_config_path()
            if project_path is None:
                raise ValueError("No project root set for project-scope config")
            config_path = project_path

        write_json(config_path, config.to_dict())
        logger.info("Saved %s config to %s", scope, config_path)

        self._config = None
        return config_path

    @staticmethod
    def _env_overrides() -> dict[str, Any]:
        overrides: dict[str, Any] = {}

        enabled = env_flag("SHADOWPOINT_ENABLED")
        if enabled is not None:
            overrides["enableCheckpoints"] = enabled

        storage_root = os.environ.get("SHADOWPOINT_STORAGE_ROOT", "").strip()
        if storage_root:
            overrides["storage"] = {"root": storage_root}

        git_binary = os.environ.get("SHADOWPOINT_GIT", "").strip()
        if git_binary:
            overrides["git"] = {"binary": git_binary}

        return overrides

    @staticmethod
    def _deep_merge(base: dict, override: dict) -> dict:
        """Deep merge two dictionaries.

        Args:
            base: Base dictionary
            override: Dictionary to merge (takes precedence)

        Returns:
            Merged dictionary
        """
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigLoader._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
