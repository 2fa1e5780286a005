"""Configuration management for shadowpoint."""

from .types import (
    CheckpointConfig,
    ExclusionConfig,
    GitConfig,
)
from .loader import ConfigLoader, PROJECT_CONFIG_DIR

__all__ = [
    "CheckpointConfig",
    "ExclusionConfig",
    "GitConfig",
    "ConfigLoader",
    "PROJECT_CONFIG_DIR",
]
