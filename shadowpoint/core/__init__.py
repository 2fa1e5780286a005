"""Core modules for shadowpoint."""

from .controller import CheckpointController, CheckpointStatus
from .errors import CheckpointError
from .shadow_repo import DiffEntry, DiffStatus, ShadowRepository, StageResult
from .tracker import CheckpointTracker, delete_checkpoints
from .workspace import WorkspaceBinding, bind_workspace

__all__ = [
    "CheckpointController",
    "CheckpointError",
    "CheckpointStatus",
    "CheckpointTracker",
    "DiffEntry",
    "DiffStatus",
    "ShadowRepository",
    "StageResult",
    "WorkspaceBinding",
    "bind_workspace",
    "delete_checkpoints",
]
