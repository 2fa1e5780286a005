"""Thin wrapper around the git executable for the shadow repository.

Every command is pinned to an explicit ``--git-dir``/``--work-tree`` pair so a
caller's ``GIT_*`` environment or an enclosing repository can never redirect
it.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from .errors import GitCommandError, GitUnavailableError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120

# Variables that would make git operate on a different repository or index.
_SCRUBBED_ENV = (
    "GIT_DIR",
    "GIT_WORK_TREE",
    "GIT_INDEX_FILE",
    "GIT_OBJECT_DIRECTORY",
    "GIT_ALTERNATE_OBJECT_DIRECTORIES",
    "GIT_CEILING_DIRECTORIES",
    "GIT_COMMON_DIR",
)


def _git_env() -> dict[str, str]:
    env = {k: v for k, v in os.environ.items() if k not in _SCRUBBED_ENV}
    # Error matching relies on untranslated messages.
    env["LC_ALL"] = "C"
    env["LANGUAGE"] = "C"
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def check_git_available(binary: str = "git", timeout: int = 10) -> str:
    """Verify the git executable runs.

    Returns:
        The ``git --version`` output

    Raises:
        GitUnavailableError: If git is missing or broken
    """
    try:
        proc = subprocess.run(
            [binary, "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
            env=_git_env(),
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise GitUnavailableError(
            "Git must be installed and accessible in PATH to use checkpoints"
        ) from e

    if proc.returncode != 0:
        raise GitUnavailableError(f"git --version failed: {proc.stderr.strip()}")

    version = proc.stdout.strip()
    logger.debug("Git installation verified: %s", version)
    return version


class GitRunner:
    """Runs git commands against one shadow repository."""

    def __init__(
        self,
        git_dir: Path,
        work_tree: Path,
        binary: str = "git",
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.git_dir = Path(git_dir)
        self.work_tree = Path(work_tree)
        self.binary = binary
        self.timeout = timeout

    def run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        """Run a git command and capture raw bytes.

        Raises:
            GitCommandError: On non-zero exit (when ``check``) or timeout
            GitUnavailableError: If the executable disappeared
        """
        argv = [
            self.binary,
            f"--git-dir={self.git_dir}",
            f"--work-tree={self.work_tree}",
            *args,
        ]
        logger.debug("git %s", " ".join(args))
        try:
            proc = subprocess.run(
                argv,
                cwd=str(self.work_tree),
                capture_output=True,
                timeout=self.timeout,
                env=_git_env(),
            )
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(args, -1, f"timed out after {self.timeout}s") from e
        except OSError as e:
            raise GitUnavailableError(f"Failed to run git: {e}") from e

        if check and proc.returncode != 0:
            # Some failures ("nothing to commit") are reported on stdout.
            message = _decode(proc.stderr) or _decode(proc.stdout)
            raise GitCommandError(args, proc.returncode, message)
        return proc

    def output(self, *args: str, check: bool = True) -> str:
        """Run a git command and return stripped stdout as text."""
        return _decode(self.run(*args, check=check).stdout).strip()

    def succeeds(self, *args: str) -> bool:
        """Run a git command and report whether it exited cleanly."""
        return self.run(*args, check=False).returncode == 0


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")
