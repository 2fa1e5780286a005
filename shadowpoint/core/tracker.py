"""Checkpoint tracker - public entry point to the shadow repository.

A tracker binds one task to the shadow repository of the current working
directory. Every method catches and reports its own failures, so one failed
operation never leaves the tracker unusable.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Sequence

from ..config import CheckpointConfig, ConfigLoader
from ..utils.env import get_global_storage_dir
from .errors import CheckpointError, GitCommandError
from .git import check_git_available
from .shadow_repo import DiffEntry, ShadowRepository, StageResult, clean_commit_hash
from .workspace import WorkspaceBinding, bind_workspace, derive_identifier, resolve_working_directory


logger = logging.getLogger(__name__)


def resolve_storage_root(
    storage_root: Path | str | None = None,
    config: CheckpointConfig | None = None,
) -> Path:
    """Pick the storage root: explicit argument, then config, then ~/.shadowpoint/storage."""
    if storage_root:
        return Path(storage_root).expanduser()
    if config is not None and config.storage_root:
        return Path(config.storage_root).expanduser()
    return get_global_storage_dir()


def _load_config(working_directory: Path | str | None) -> CheckpointConfig:
    project_root = Path(working_directory) if working_directory else None
    return ConfigLoader(project_root=project_root).config


class CheckpointTracker:
    """Snapshot, diff and restore operations for one task."""

    def __init__(
        self,
        task_id: str,
        binding: WorkspaceBinding,
        repository: ShadowRepository,
        storage_root: Path,
    ):
        self.task_id = task_id
        self.binding = binding
        self.repository = repository
        self.storage_root = storage_root
        self._worktree_cache: str | None = None
        logger.debug(
            "Tracker for task %s on %s (%s)", task_id, binding.absolute_path, binding.identifier,
        )

    @property
    def working_directory(self) -> Path:
        return self.binding.absolute_path

    @property
    def identifier(self) -> str:
        return self.binding.identifier

    @classmethod
    def create(
        cls,
        task_id: str,
        working_directory: Path | str | None = None,
        storage_root: Path | str | None = None,
        config: CheckpointConfig | None = None,
    ) -> CheckpointTracker | None:
        """Create a tracker, opening or creating the shadow repository.

        Returns:
            The tracker, or None when checkpoints are disabled

        Raises:
            GitUnavailableError: git is not installed
            NoWorkspaceError, AccessDeniedError, ProtectedPathError: bad working directory
            WorktreeMismatchError, InitFailedError: shadow repository setup failed
        """
        if config is None:
            config = _load_config(working_directory)

        if not config.enabled:
            logger.info("Checkpoints are disabled in configuration")
            return None

        start = time.monotonic()
        try:
            check_git_available(config.git.binary)
            binding = bind_workspace(working_directory)
            root = resolve_storage_root(storage_root, config)
            repository = ShadowRepository.open(
                binding.identifier,
                binding.absolute_path,
                root,
                exclusions=config.exclusions,
                git_config=config.git,
            )
        except CheckpointError as e:
            logger.error("Failed to create checkpoint tracker for task %s: %s", task_id, e)
            raise

        elapsed_ms = round((time.monotonic() - start) * 1000)
        logger.info("Checkpoint tracker ready for task %s in %dms", task_id, elapsed_ms)
        return cls(task_id, binding, repository, root)

    def stage_workspace_changes(self) -> StageResult:
        """Stage the whole working tree."""
        try:
            result = self.repository.stage_all()
        except CheckpointError as e:
            logger.error("Failed to stage changes for task %s: %s", self.task_id, e)
            return StageResult(success=False, error=str(e))
        logger.debug("Staging complete for task %s (success=%s)", self.task_id, result.success)
        return result

    def stage_specific_paths(self, relative_paths: Sequence[str]) -> StageResult:
        """Stage only the given paths; an empty list is a no-op success."""
        try:
            return self.repository.stage_specific(relative_paths)
        except CheckpointError as e:
            logger.error("Failed to stage specific paths for task %s: %s", self.task_id, e)
            return StageResult(success=False, error=str(e))

    def commit(self) -> str | None:
        """Commit staged changes as a checkpoint.

        Returns:
            The snapshot hash (the current one if nothing changed), or None on failure
        """
        message = f"checkpoint-{self.task_id}-{int(time.time() * 1000)}"
        try:
            return self.repository.commit(message)
        except CheckpointError as e:
            logger.error("Failed to create checkpoint for task %s: %s", self.task_id, e)
            return None

    def status(self) -> list[str]:
        """Porcelain status of the shadow repository."""
        try:
            return self.repository.status()
        except CheckpointError as e:
            logger.error("Failed to get status for task %s: %s", self.task_id, e)
            raise

    def reset_head(self, commit_hash: str) -> None:
        """Reset the working directory to a checkpoint.

        Raises:
            InvalidHashError: Empty or unknown hash
            ResetFailedError: The reset failed
        """
        start = time.monotonic()
        try:
            self.repository.reset(commit_hash)
        except CheckpointError as e:
            logger.error("Failed to reset to checkpoint %s: %s", commit_hash, e)
            raise
        elapsed_ms = round((time.monotonic() - start) * 1000)
        logger.info("Workspace reset to checkpoint %s in %dms", clean_commit_hash(commit_hash), elapsed_ms)

    def get_diff_set(self, from_hash: str | None = None, to_hash: str | None = None) -> list[DiffEntry]:
        """Changed files between two checkpoints, or a checkpoint and the working directory.

        Raises:
            InvalidHashError: Unknown hash
            GitCommandError: git failed
        """
        start = time.monotonic()
        try:
            entries = self.repository.diff(from_hash, to_hash)
        except CheckpointError as e:
            logger.error("Failed to calculate differences: %s", e)
            raise
        elapsed_ms = round((time.monotonic() - start) * 1000)
        logger.debug("Diff found %d differences in %dms", len(entries), elapsed_ms)
        return entries

    def get_diff_count(self, from_hash: str | None = None, to_hash: str | None = None) -> int:
        """Number of changed files; 0 if the diff fails."""
        try:
            return len(self.get_diff_set(from_hash, to_hash))
        except CheckpointError:
            return 0

    def get_file_content_at_commit(self, commit_hash: str | None, relative_path: str) -> str:
        """Content of a file at a checkpoint; "" if absent or unreadable."""
        if not clean_commit_hash(commit_hash):
            logger.warning("Invalid or missing commit hash for %s", relative_path)
            return ""
        try:
            content = self.repository.get_content_at(commit_hash, relative_path)
        except CheckpointError as e:
            logger.error("Failed to read %s at %s: %s", relative_path, commit_hash, e)
            return ""
        return content if content is not None else ""

    def get_shadow_worktree(self) -> str | None:
        """Working directory recorded in the shadow repository (cached)."""
        if self._worktree_cache is None:
            try:
                self._worktree_cache = self.repository.configured_worktree()
            except GitCommandError as e:
                logger.error("Error retrieving shadow worktree: %s", e)
                return None
        return self._worktree_cache

    @staticmethod
    def delete_checkpoints(
        task_id: str,
        identifier: str | None,
        storage_root: Path | str | None = None,
    ) -> bool:
        """Delete all checkpoints stored for an identifier.

        Never raises; missing storage is a no-op.

        Returns:
            True if storage was removed
        """
        if not identifier:
            logger.warning("Missing workspace identifier for task %s, cannot delete checkpoints", task_id)
            return False

        root = resolve_storage_root(storage_root)
        try:
            deleted = ShadowRepository.delete_all(identifier, root)
        except OSError as e:
            logger.error("Failed to delete checkpoint data for task %s: %s", task_id, e)
            return False
        if deleted:
            logger.info("Deleted checkpoints for task %s", task_id)
        return deleted


def delete_checkpoints(
    task_id: str,
    working_directory: Path | str | None = None,
    storage_root: Path | str | None = None,
) -> bool:
    """Delete checkpoints of a working directory.

    Returns:
        True if storage was removed
    """
    try:
        resolved = resolve_working_directory(working_directory)
    except CheckpointError as e:
        logger.warning("Cannot delete checkpoints for task %s: %s", task_id, e)
        return False

    if storage_root is None:
        storage_root = resolve_storage_root(None, _load_config(resolved))
    return CheckpointTracker.delete_checkpoints(task_id, derive_identifier(resolved), storage_root)
