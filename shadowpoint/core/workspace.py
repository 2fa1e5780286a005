"""Working directory resolution and identifier derivation."""

from __future__ import annotations

import errno
import hashlib
import os
from dataclasses import dataclass
from pathlib import Path

from ..utils.env import get_home_dir
from .errors import AccessDeniedError, NoWorkspaceError, ProtectedPathError


@dataclass(frozen=True)
class WorkspaceBinding:
    """A validated working directory and its storage identifier."""
    absolute_path: Path
    identifier: str


def protected_paths() -> list[Path]:
    """Directories that are never snapshotted directly."""
    home = get_home_dir()
    return [
        home,
        home / "Desktop",
        home / "Documents",
        home / "Downloads",
    ]


def _normalize(path: Path | str) -> str:
    return os.path.normcase(os.path.normpath(os.path.abspath(str(path))))


def resolve_working_directory(selected: Path | str | None) -> Path:
    """Validate the working directory to snapshot.

    Args:
        selected: Directory chosen by the caller

    Returns:
        Resolved absolute path

    Raises:
        NoWorkspaceError: Nothing selected, or not an existing directory
        AccessDeniedError: Missing read or write permission
        ProtectedPathError: Home, Desktop, Documents, Downloads or a root
    """
    if selected is None or not str(selected).strip():
        raise NoWorkspaceError("No working directory selected. Open a folder to use checkpoints.")

    path = Path(selected).expanduser()

    try:
        st = path.stat()
    except FileNotFoundError as e:
        raise NoWorkspaceError(f"Working directory '{path}' not found.") from e
    except OSError as e:
        raise AccessDeniedError(
            f"Cannot access working directory '{path}'. (Error: {e.strerror or e})",
            os_error=e,
        ) from e

    if not path.is_dir():
        raise NoWorkspaceError(f"Working directory '{path}' is not a directory.")

    if not os.access(path, os.R_OK | os.W_OK):
        err = PermissionError(errno.EACCES, os.strerror(errno.EACCES), str(path))
        raise AccessDeniedError(
            f"Cannot access working directory '{path}'. "
            f"Read and write permissions are required. (Error: {err.strerror}, mode {oct(st.st_mode & 0o777)})",
            os_error=err,
        ) from err

    resolved = path.resolve()
    normalized = _normalize(resolved)

    for protected in protected_paths():
        if normalized == _normalize(protected.resolve()):
            raise ProtectedPathError(
                f"Cannot use checkpoints directly in protected directory: {resolved}. Use a subfolder."
            )

    if resolved.parent == resolved:
        raise ProtectedPathError(
            f"Cannot use checkpoints directly in the root directory: {resolved}. Use a subfolder."
        )

    return resolved


def derive_identifier(path: Path | str) -> str:
    """Hash a working directory path into a storage identifier.

    Separators are unified and case is folded before hashing so that the
    same directory always maps to the same shadow repository.

    Args:
        path: Absolute working directory path

    Returns:
        SHA-256 hex digest
    """
    unified = str(path).replace("\\", "/")
    normalized = os.path.normpath(unified).replace("\\", "/").lower()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def bind_workspace(selected: Path | str | None) -> WorkspaceBinding:
    """Resolve a working directory and derive its identifier."""
    resolved = resolve_working_directory(selected)
    return WorkspaceBinding(absolute_path=resolved, identifier=derive_identifier(resolved))
