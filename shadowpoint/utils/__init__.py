"""Utility modules for shadowpoint."""

from .fs import (
    atomic_write,
    ensure_dir,
    load_json_object,
    remove_dir,
    safe_json_load,
    write_json,
)
from .env import (
    env_flag,
    get_global_config_dir,
    get_global_storage_dir,
    get_home_dir,
    is_debug_mode,
)

__all__ = [
    "atomic_write",
    "ensure_dir",
    "safe_json_load",
    "load_json_object",
    "write_json",
    "remove_dir",
    "env_flag",
    "get_global_config_dir",
    "get_global_storage_dir",
    "get_home_dir",
    "is_debug_mode",
]
