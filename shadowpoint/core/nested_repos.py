"""Temporary suppression of git repositories nested in the working directory.

``git add`` records a directory holding its own ``.git`` as an embedded
repository (a gitlink) instead of its files, and ``git clean`` refuses to
touch it. While a guarded operation runs, every nested ``.git`` directory is
renamed to ``.git_disabled`` and renamed back afterwards. A ``.git`` file
(a submodule or linked worktree) is treated the same way.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .exclusions import GIT_DISABLED_SUFFIX


logger = logging.getLogger(__name__)

GIT_DIR_NAME = ".git"
DISABLED_GIT_DIR_NAME = f".git{GIT_DISABLED_SUFFIX}"


def find_metadata_dirs(root: Path, name: str) -> list[Path]:
    """Find entries called ``name`` under ``root``.

    Both directories and files match, since submodules and linked worktrees
    keep a ``.git`` file pointing at their real metadata. The walk never
    descends into the matches themselves, and unreadable directories are
    skipped.
    """
    found: list[Path] = []

    def _on_error(err: OSError) -> None:
        logger.debug("Skipping unreadable path during scan: %s", err)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        if name in dirnames or name in filenames:
            found.append(Path(dirpath) / name)
        dirnames[:] = [
            d for d in dirnames if d not in (GIT_DIR_NAME, DISABLED_GIT_DIR_NAME)
        ]
    return found


class NestedRepoGuard:
    """Scoped rename of nested ``.git`` directories.

    Usable as a context manager. Nested acquisitions on the same guard are
    counted: only the outermost acquire renames and only the outermost
    release restores. Extra ``release()`` calls are no-ops.
    """

    def __init__(self, working_directory: Path | str):
        self.working_directory = Path(working_directory)
        self._depth = 0

    @property
    def active(self) -> bool:
        return self._depth > 0

    def acquire(self) -> int:
        """Disable nested repositories.

        Returns:
            Number of directories renamed (0 for a nested acquire)
        """
        self._depth += 1
        if self._depth > 1:
            return 0
        return self._rename_all(disable=True)

    def release(self) -> int:
        """Re-enable every disabled repository.

        Returns:
            Number of directories renamed back
        """
        if self._depth == 0:
            return 0
        self._depth -= 1
        if self._depth > 0:
            return 0
        return self._rename_all(disable=False)

    def restore_leftovers(self) -> int:
        """Re-enable repositories left disabled by an interrupted run."""
        if self._depth > 0:
            return 0
        return self._rename_all(disable=False)

    def __enter__(self) -> NestedRepoGuard:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def _rename_all(self, disable: bool) -> int:
        source_name = GIT_DIR_NAME if disable else DISABLED_GIT_DIR_NAME
        target_name = DISABLED_GIT_DIR_NAME if disable else GIT_DIR_NAME
        operation = "Disabling" if disable else "Enabling"
        root_git = self.working_directory / GIT_DIR_NAME

        try:
            candidates = find_metadata_dirs(self.working_directory, source_name)
        except OSError as e:
            logger.error("Failed to scan %s for nested repositories: %s", self.working_directory, e)
            return 0

        renamed = 0
        for path in candidates:
            if disable and path == root_git:
                continue

            target = path.with_name(target_name)
            try:
                if target.exists():
                    logger.warning("Not renaming %s: %s already exists", path, target)
                    continue
                path.rename(target)
                renamed += 1
            except PermissionError as e:
                logger.warning("Permission error renaming %s, skipping: %s", path, e)
            except FileNotFoundError as e:
                logger.warning("%s vanished during rename, skipping: %s", path, e)
            except OSError as e:
                logger.error("Failed to rename %s: %s", path, e)

        if renamed:
            logger.debug("%s %d nested repositories in %s", operation, renamed, self.working_directory)
        return renamed


@contextmanager
def suppress_nested_repositories(working_directory: Path | str) -> Iterator[NestedRepoGuard]:
    """Disable nested repositories for the duration of a ``with`` block."""
    guard = NestedRepoGuard(working_directory)
    with guard:
        yield guard
