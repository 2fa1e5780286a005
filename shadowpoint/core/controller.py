"""Checkpoint controller - main orchestrator.

Wraps a checkpoint tracker with the generation workflow: snapshot before a
change, snapshot after it, and undo back to the "before" snapshot. The hashes
of the last generation and undo are kept in ``session.json`` beside the
shadow repository.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Literal

from ..config import CheckpointConfig, ConfigLoader
from ..utils.fs import load_json_object, write_json
from .errors import CheckpointError
from .shadow_repo import shadow_storage_path
from .tracker import CheckpointTracker, delete_checkpoints, resolve_storage_root
from .workspace import derive_identifier, resolve_working_directory


logger = logging.getLogger(__name__)

ChangeKind = Literal["generation", "undo"]

DEFAULT_TASK_ID = "manual"
SESSION_FILE_NAME = "session.json"


@dataclass
class SessionState:
    """Hashes recorded by the last generation and undo."""
    pre_generation_hash: str | None = None
    post_generation_hash: str | None = None
    undo_before_hash: str | None = None
    undo_after_hash: str | None = None
    task_id: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> SessionState:
        def _str(key: str) -> str | None:
            value = data.get(key)
            return value if isinstance(value, str) and value else None

        return cls(
            pre_generation_hash=_str("preGenerationHash"),
            post_generation_hash=_str("postGenerationHash"),
            undo_before_hash=_str("undoBeforeHash"),
            undo_after_hash=_str("undoAfterHash"),
            task_id=_str("taskId"),
            updated_at=_str("updatedAt"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": 1,
            "preGenerationHash": self.pre_generation_hash,
            "postGenerationHash": self.post_generation_hash,
            "undoBeforeHash": self.undo_before_hash,
            "undoAfterHash": self.undo_after_hash,
            "taskId": self.task_id,
            "updatedAt": self.updated_at,
        }


@dataclass
class CheckpointStatus:
    """Status of checkpointing for one working directory."""
    enabled: bool
    working_directory: str
    identifier: str | None
    storage_path: str | None
    initialized: bool
    head_hash: str | None = None
    pre_generation_hash: str | None = None
    post_generation_hash: str | None = None
    undo_before_hash: str | None = None
    undo_after_hash: str | None = None
    task_id: str | None = None
    error: str | None = None


class CheckpointController:
    """Main controller for checkpoint operations."""

    def __init__(
        self,
        working_directory: Path | str | None = None,
        storage_root: Path | str | None = None,
        config_loader: ConfigLoader | None = None,
    ):
        """Initialize controller.

        Args:
            working_directory: Directory to snapshot (defaults to cwd)
            storage_root: Root for shadow repositories (defaults to config, then ~/.shadowpoint/storage)
            config_loader: Loader to read configuration from
        """
        self.working_directory = Path(working_directory) if working_directory else Path.cwd()
        self._storage_root = storage_root
        self._config_loader = config_loader or ConfigLoader(project_root=self.working_directory)
        self._tracker: CheckpointTracker | None = None

    @property
    def config(self) -> CheckpointConfig:
        """Get current configuration."""
        return self._config_loader.config

    def get_storage_root(self) -> Path:
        return resolve_storage_root(self._storage_root, self.config)

    def get_storage_path(self) -> Path | None:
        """Shadow storage directory of the working directory, or None if it is not usable."""
        try:
            resolved = resolve_working_directory(self.working_directory)
        except CheckpointError:
            return None
        return shadow_storage_path(self.get_storage_root(), derive_identifier(resolved))

    def get_session_file(self) -> Path | None:
        storage = self.get_storage_path()
        return storage / SESSION_FILE_NAME if storage else None

    def load_session_state(self) -> SessionState:
        """Load stored session state (best-effort)."""
        path = self.get_session_file()
        if path is None:
            return SessionState()
        return SessionState.from_dict(load_json_object(path))

    def save_session_state(self, state: SessionState) -> None:
        """Persist session state to disk (best-effort)."""
        path = self.get_session_file()
        if path is None:
            return
        state.updated_at = datetime.now().isoformat()
        try:
            write_json(path, state.to_dict())
        except OSError as e:
            logger.warning("Failed to save session state to %s: %s", path, e)

    def get_tracker(self, task_id: str = DEFAULT_TASK_ID) -> CheckpointTracker | None:
        """Get a tracker for a task, reusing the current one when the task matches.

        Returns:
            The tracker, or None when checkpoints are disabled

        Raises:
            CheckpointError: The tracker could not be created
        """
        if self._tracker is None or self._tracker.task_id != task_id:
            self._tracker = CheckpointTracker.create(
                task_id,
                working_directory=self.working_directory,
                storage_root=self.get_storage_root(),
                config=self.config,
            )
        return self._tracker

    def _snapshot(self, tracker: CheckpointTracker) -> str | None:
        staged = tracker.stage_workspace_changes()
        if not staged.success:
            logger.warning("Snapshot may be incomplete: %s", staged.error)
        return tracker.commit()

    def init(self) -> dict[str, Any]:
        """Create (or verify) the shadow repository for the working directory.

        Returns:
            Result dictionary with success status
        """
        try:
            tracker = self.get_tracker()
        except CheckpointError as e:
            return {"success": False, "error": str(e)}
        if tracker is None:
            return {"success": True, "checkpointsEnabled": False}

        return {
            "success": True,
            "checkpointsEnabled": True,
            "workingDirectory": str(tracker.working_directory),
            "identifier": tracker.identifier,
            "storagePath": str(tracker.repository.storage_path),
            "headHash": tracker.repository.head_hash(),
        }

    def save(self, task_id: str = DEFAULT_TASK_ID) -> dict[str, Any]:
        """Snapshot the working directory.

        Returns:
            Result dictionary with the snapshot hash
        """
        try:
            tracker = self.get_tracker(task_id)
        except CheckpointError as e:
            return {"success": False, "error": str(e)}
        if tracker is None:
            return {"success": True, "checkpointsEnabled": False}

        commit_hash = self._snapshot(tracker)
        if not commit_hash:
            return {"success": False, "error": "Failed to create checkpoint"}
        return {"success": True, "checkpointsEnabled": True, "hash": commit_hash}

    def begin_generation(self, task_id: str) -> dict[str, Any]:
        """Snapshot the working directory before a generation runs."""
        try:
            tracker = self.get_tracker(task_id)
        except CheckpointError as e:
            return {"success": False, "error": str(e)}
        if tracker is None:
            return {"success": True, "checkpointsEnabled": False}

        commit_hash = self._snapshot(tracker)
        if not commit_hash:
            return {"success": False, "error": "Failed to create pre-generation checkpoint"}

        state = self.load_session_state()
        state.pre_generation_hash = commit_hash
        state.post_generation_hash = None
        state.task_id = task_id
        self.save_session_state(state)

        logger.info("Pre-generation checkpoint for task %s: %s", task_id, commit_hash)
        return {"success": True, "checkpointsEnabled": True, "hash": commit_hash}

    def finish_generation(self, task_id: str) -> dict[str, Any]:
        """Snapshot the working directory after a generation ran."""
        try:
            tracker = self.get_tracker(task_id)
        except CheckpointError as e:
            return {"success": False, "error": str(e)}
        if tracker is None:
            return {"success": True, "checkpointsEnabled": False}

        commit_hash = self._snapshot(tracker)
        if not commit_hash:
            return {"success": False, "error": "Failed to create post-generation checkpoint"}

        state = self.load_session_state()
        state.post_generation_hash = commit_hash
        state.task_id = task_id
        self.save_session_state(state)

        result: dict[str, Any] = {"success": True, "checkpointsEnabled": True, "hash": commit_hash}
        if state.pre_generation_hash:
            result["fileCount"] = tracker.get_diff_count(state.pre_generation_hash, commit_hash)
        return result

    def run_generation(self, task_id: str, mutate: Callable[[Path], Any]) -> dict[str, Any]:
        """Run ``mutate`` between a pre- and post-generation snapshot.

        Args:
            task_id: Task the generation belongs to
            mutate: Called with the working directory; may change any files

        Returns:
            Result dictionary; a failed mutation keeps the pre-generation
            hash recorded so it can still be undone
        """
        begin = self.begin_generation(task_id)
        if not begin.get("success"):
            return begin

        try:
            mutate(self.working_directory)
        except Exception as e:
            logger.exception("Generation for task %s failed", task_id)
            return {
                "success": False,
                "error": f"Generation failed: {e}",
                "preGenerationHash": begin.get("hash"),
            }

        if not begin.get("checkpointsEnabled"):
            return begin

        finish = self.finish_generation(task_id)
        finish["preGenerationHash"] = begin.get("hash")
        return finish

    def undo(self, target_hash: str | None = None) -> dict[str, Any]:
        """Restore the working directory to a snapshot.

        Args:
            target_hash: Snapshot to restore (defaults to the pre-generation snapshot)

        Returns:
            Result dictionary with the files the undo changed
        """
        state = self.load_session_state()
        target = target_hash or state.pre_generation_hash
        if not target:
            return {"success": False, "error": "No checkpoint to undo to"}

        try:
            tracker = self.get_tracker(state.task_id or DEFAULT_TASK_ID)
        except CheckpointError as e:
            return {"success": False, "error": str(e)}
        if tracker is None:
            return {"success": False, "error": "Checkpoints are disabled"}

        before_hash = self._snapshot(tracker)
        if not before_hash:
            return {"success": False, "error": "Failed to save the current state before undo"}

        try:
            tracker.reset_head(target)
        except CheckpointError as e:
            return {"success": False, "error": str(e), "beforeHash": before_hash}

        after_hash = tracker.repository.head_hash() or target
        try:
            changes = tracker.get_diff_set(before_hash, after_hash)
        except CheckpointError as e:
            logger.warning("Undo succeeded but its changes could not be listed: %s", e)
            changes = []

        state.undo_before_hash = before_hash
        state.undo_after_hash = after_hash
        state.pre_generation_hash = None
        state.post_generation_hash = None
        self.save_session_state(state)

        return {
            "success": True,
            "beforeHash": before_hash,
            "targetHash": after_hash,
            "changes": [entry.to_dict() for entry in changes],
        }

    def reset(self, commit_hash: str) -> dict[str, Any]:
        """Reset the working directory to a snapshot without recording an undo."""
        try:
            tracker = self.get_tracker()
            if tracker is None:
                return {"success": False, "error": "Checkpoints are disabled"}
            tracker.reset_head(commit_hash)
        except CheckpointError as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "hash": tracker.repository.head_hash()}

    def diff(
        self,
        from_hash: str | None = None,
        to_hash: str | None = None,
        include_content: bool = False,
    ) -> dict[str, Any]:
        """Compare two snapshots, or a snapshot with the working directory.

        Args:
            from_hash: Base snapshot (defaults to the first snapshot)
            to_hash: Target snapshot (None for the working directory)
            include_content: Keep before/after file contents in the result
        """
        try:
            tracker = self.get_tracker()
            if tracker is None:
                return {"success": False, "error": "Checkpoints are disabled"}
            entries = tracker.get_diff_set(from_hash, to_hash)
        except CheckpointError as e:
            return {"success": False, "error": str(e)}
        return {
            "success": True,
            "changes": [_entry_dict(entry.to_dict(), include_content) for entry in entries],
        }

    def show(self, commit_hash: str, relative_path: str) -> dict[str, Any]:
        """Read one file as it was at a snapshot."""
        try:
            tracker = self.get_tracker()
        except CheckpointError as e:
            return {"success": False, "error": str(e)}
        if tracker is None:
            return {"success": False, "error": "Checkpoints are disabled"}
        return {
            "success": True,
            "content": tracker.get_file_content_at_commit(commit_hash, relative_path),
        }

    def show_changes(self, kind: ChangeKind = "generation") -> dict[str, Any]:
        """List the files changed by the last generation or the last undo."""
        state = self.load_session_state()
        if kind == "undo":
            from_hash, to_hash = state.undo_before_hash, state.undo_after_hash
            if not from_hash or not to_hash:
                return {"success": False, "error": "No undo recorded"}
        elif kind == "generation":
            # Without a post snapshot the generation is still running.
            from_hash, to_hash = state.pre_generation_hash, state.post_generation_hash
            if not from_hash:
                return {"success": False, "error": "No generation recorded"}
        else:
            return {"success": False, "error": f"Unknown change kind: {kind}"}

        try:
            tracker = self.get_tracker(state.task_id or DEFAULT_TASK_ID)
            if tracker is None:
                return {"success": False, "error": "Checkpoints are disabled"}
            entries = tracker.get_diff_set(from_hash, to_hash)
        except CheckpointError as e:
            return {"success": False, "error": str(e)}

        return {
            "success": True,
            "kind": kind,
            "fromHash": from_hash,
            "toHash": to_hash,
            "changes": [entry.to_dict() for entry in entries],
        }

    def get_status(self) -> CheckpointStatus:
        """Get checkpoint status.

        Returns:
            CheckpointStatus with current state
        """
        config = self.config
        status = CheckpointStatus(
            enabled=config.enabled,
            working_directory=str(self.working_directory),
            identifier=None,
            storage_path=None,
            initialized=False,
        )

        try:
            resolved = resolve_working_directory(self.working_directory)
        except CheckpointError as e:
            status.error = str(e)
            return status

        identifier = derive_identifier(resolved)
        storage = shadow_storage_path(self.get_storage_root(), identifier)
        status.working_directory = str(resolved)
        status.identifier = identifier
        status.storage_path = str(storage)
        status.initialized = (storage / ".git").is_dir()

        state = self.load_session_state()
        status.pre_generation_hash = state.pre_generation_hash
        status.post_generation_hash = state.post_generation_hash
        status.undo_before_hash = state.undo_before_hash
        status.undo_after_hash = state.undo_after_hash
        status.task_id = state.task_id

        if status.initialized and config.enabled:
            try:
                tracker = self.get_tracker(state.task_id or DEFAULT_TASK_ID)
            except CheckpointError as e:
                status.error = str(e)
            else:
                if tracker is not None:
                    status.head_hash = tracker.repository.head_hash()
        return status

    def delete(self) -> dict[str, Any]:
        """Delete all checkpoints and session state for the working directory."""
        task_id = self.load_session_state().task_id or DEFAULT_TASK_ID
        self._tracker = None
        deleted = delete_checkpoints(task_id, self.working_directory, self.get_storage_root())
        return {"success": True, "deleted": deleted}


def _entry_dict(data: dict[str, Any], include_content: bool) -> dict[str, Any]:
    if not include_content:
        data.pop("before", None)
        data.pop("after", None)
    return data
