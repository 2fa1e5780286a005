"""Environment utilities for shadowpoint."""

from __future__ import annotations

import os
from pathlib import Path


_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


def env_flag(name: str) -> bool | None:
    """Read a boolean environment variable.

    Args:
        name: Variable name

    Returns:
        True/False for recognised values, None if unset or unrecognised
    """
    val = os.environ.get(name, "").strip().lower()
    if val in _TRUTHY:
        return True
    if val in _FALSY:
        return False
    return None


def is_debug_mode() -> bool:
    """Check if debug mode is enabled.

    Returns:
        True if SHADOWPOINT_DEBUG is set to a truthy value
    """
    return env_flag("SHADOWPOINT_DEBUG") is True


def get_home_dir() -> Path:
    """Get user home directory.

    Returns:
        Path to home directory
    """
    return Path.home()


def get_global_config_dir() -> Path:
    """Get global shadowpoint directory (~/.shadowpoint).

    Returns:
        Path to global config directory
    """
    return get_home_dir() / ".shadowpoint"


def get_global_storage_dir() -> Path:
    """Get global storage directory (~/.shadowpoint/storage).

    Returns:
        Path to the default root for shadow repositories
    """
    return get_global_config_dir() / "storage"
