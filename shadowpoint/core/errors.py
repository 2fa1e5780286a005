"""Exception hierarchy for the checkpoint engine."""

from __future__ import annotations

from typing import Sequence


class CheckpointError(Exception):
    """Base exception for checkpoint engine errors."""


# Binding-time

class NoWorkspaceError(CheckpointError):
    """Raised when no usable working directory is selected."""


class AccessDeniedError(CheckpointError):
    """Raised when the working directory is not readable and writable."""

    def __init__(self, message: str, os_error: OSError | None = None):
        super().__init__(message)
        self.os_error = os_error


class ProtectedPathError(CheckpointError):
    """Raised for home, desktop, documents, downloads or a filesystem root."""


# Setup-time

class GitUnavailableError(CheckpointError):
    """Raised when the git executable cannot be run."""


class InitFailedError(CheckpointError):
    """Raised when the shadow repository cannot be created or is not ready."""


class WorktreeMismatchError(CheckpointError):
    """Raised when a shadow repository is bound to a different working directory."""

    def __init__(self, expected: str, found: str | None):
        super().__init__(
            f"Checkpoints can only be used in the original workspace. "
            f"Expected: {expected}, found in config: {found}"
        )
        self.expected = expected
        self.found = found


# Operation-time

class CommitFailedError(CheckpointError):
    """Raised when a snapshot commit cannot be created."""


class ResetFailedError(CheckpointError):
    """Raised when the working directory cannot be reset to a snapshot."""


class InvalidHashError(CheckpointError):
    """Raised for an empty or unresolvable snapshot hash."""


class GitCommandError(CheckpointError):
    """Raised when a git subprocess exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        super().__init__(f"git {' '.join(self.command)} failed ({returncode}): {self.stderr}")
