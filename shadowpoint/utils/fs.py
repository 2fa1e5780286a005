"""File system utilities for shadowpoint.

Atomic JSON state files, storage directory creation and removal.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)


def atomic_write(file_path: Path | str, content: str | bytes, mode: str = "w") -> None:
    """Write content atomically using tempfile + rename pattern.

    Args:
        file_path: Target file path
        content: Content to write
        mode: Write mode ('w' for text, 'wb' for binary)
    """
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    encoding = None if "b" in mode else "utf-8"
    try:
        with os.fdopen(fd, mode, encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def write_json(file_path: Path | str, data: Any) -> None:
    """Atomically write ``data`` as indented JSON."""
    atomic_write(file_path, json.dumps(data, indent=2) + "\n", mode="w")


def ensure_dir(dir_path: Path | str) -> Path:
    path = Path(dir_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def remove_dir(dir_path: Path | str) -> bool:
    """Delete a directory tree.

    Returns:
        True if something was deleted, False if it did not exist

    Raises:
        OSError: If the tree exists but cannot be removed
    """
    path = Path(dir_path)
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True


def safe_json_load(file_path: Path | str, default: Any = None) -> Any:
    """Load a JSON file, returning ``default`` if it is missing or invalid.

    Args:
        file_path: Path to JSON file
        default: Value for a missing or unparsable file ({} if None)
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        pass
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable JSON file %s: %s", file_path, e)
    return default if default is not None else {}


def load_json_object(file_path: Path | str) -> dict[str, Any]:
    """Load a JSON file that must hold an object; {} otherwise."""
    data = safe_json_load(file_path, {})
    if not isinstance(data, dict):
        logger.warning("Expected a JSON object in %s, got %s", file_path, type(data).__name__)
        return {}
    return data
