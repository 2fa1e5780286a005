"""Shadow git repository bound to one working directory.

The repository lives in engine-owned storage
(``<storage_root>/checkpoints/<identifier>/.git``) with ``core.worktree``
pointing at the user's working directory, so snapshots never touch the
user's own repository.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Sequence

from ..config.types import ExclusionConfig, GitConfig
from ..utils.fs import ensure_dir, remove_dir
from .errors import (
    CommitFailedError,
    GitCommandError,
    GitUnavailableError,
    InitFailedError,
    InvalidHashError,
    ResetFailedError,
    WorktreeMismatchError,
)
from .exclusions import get_lfs_patterns, write_excludes_file
from .git import GitRunner
from .nested_repos import NestedRepoGuard


logger = logging.getLogger(__name__)

CHECKPOINTS_DIR_NAME = "checkpoints"
SHADOW_AUTHOR_NAME = "Shadowpoint Checkpoint"
SHADOW_AUTHOR_EMAIL = "checkpoint@shadowpoint.invalid"
INITIAL_COMMIT_MESSAGE = "initial checkpoint commit"

# Benign: an all-paths checkout of a snapshot with no tracked files.
IGNORABLE_RESET_ERROR = "did not match any file(s) known to git"


class RepositoryState(str, Enum):
    UNINITIALIZED = "uninitialized"
    VERIFYING = "verifying"
    READY = "ready"


class DiffStatus(str, Enum):
    ADDED = "Added"
    MODIFIED = "Modified"
    DELETED = "Deleted"
    RENAMED = "Renamed"


@dataclass(frozen=True)
class DiffEntry:
    """One changed file between two states."""
    relative_path: str
    absolute_path: str
    status: DiffStatus
    before: str = ""
    after: str = ""
    previous_path: str | None = None

    def to_dict(self) -> dict:
        data = {
            "relativePath": self.relative_path,
            "absolutePath": self.absolute_path,
            "status": self.status.value,
            "before": self.before,
            "after": self.after,
        }
        if self.previous_path is not None:
            data["previousPath"] = self.previous_path
        return data


@dataclass
class StageResult:
    """Result of a staging operation."""
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class _Change:
    status: DiffStatus
    path: str
    previous_path: str | None = None


def shadow_storage_path(storage_root: Path | str, identifier: str) -> Path:
    """Directory holding the shadow repository for an identifier."""
    return Path(storage_root) / CHECKPOINTS_DIR_NAME / identifier


def clean_commit_hash(commit_hash: str | None) -> str | None:
    """Strip a ``HEAD `` prefix and whitespace; None for empty input."""
    if not commit_hash:
        return None
    cleaned = commit_hash.strip()
    if cleaned.startswith("HEAD "):
        cleaned = cleaned[5:].strip()
    return cleaned or None


def normalize_relative_path(relative_path: str) -> str:
    path = relative_path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def parse_name_status(raw: bytes) -> list[_Change]:
    """Parse ``--name-status -z`` output into changes.

    Renames report the destination path. Copies count as additions.
    """
    fields = [os.fsdecode(f) for f in raw.split(b"\0")]
    changes: list[_Change] = []
    i = 0
    while i < len(fields):
        code = fields[i].strip()
        i += 1
        if not code:
            continue

        kind = code[0]
        if kind in ("R", "C"):
            if i + 1 >= len(fields):
                break
            source, dest = fields[i], fields[i + 1]
            i += 2
            if kind == "R":
                changes.append(_Change(DiffStatus.RENAMED, dest, previous_path=source))
            else:
                changes.append(_Change(DiffStatus.ADDED, dest))
            continue

        if i >= len(fields):
            break
        path = fields[i]
        i += 1
        if kind == "A":
            changes.append(_Change(DiffStatus.ADDED, path))
        elif kind == "D":
            changes.append(_Change(DiffStatus.DELETED, path))
        elif kind in ("M", "T"):
            changes.append(_Change(DiffStatus.MODIFIED, path))
        else:
            logger.debug("Ignoring diff status %s for %s", code, path)
    return changes


class ShadowRepository:
    """Hidden repository mirroring one working directory."""

    def __init__(
        self,
        storage_path: Path,
        working_directory: Path,
        git_config: GitConfig | None = None,
    ):
        self.storage_path = Path(storage_path)
        self.working_directory = Path(working_directory)
        self.git_dir = self.storage_path / ".git"
        git_config = git_config or GitConfig()
        self._git = GitRunner(
            self.git_dir,
            self.working_directory,
            binary=git_config.binary,
            timeout=git_config.timeout_seconds,
        )
        self._guard = NestedRepoGuard(self.working_directory)
        self.state = RepositoryState.UNINITIALIZED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        identifier: str,
        working_directory: Path | str,
        storage_root: Path | str,
        exclusions: ExclusionConfig | None = None,
        git_config: GitConfig | None = None,
    ) -> ShadowRepository:
        """Create or verify the shadow repository for a working directory.

        Raises:
            WorktreeMismatchError: Existing storage is bound elsewhere
            InitFailedError: New storage could not be initialised
        """
        repo = cls(
            shadow_storage_path(storage_root, identifier),
            Path(working_directory),
            git_config=git_config,
        )
        exclusions = exclusions or ExclusionConfig()

        if repo.git_dir.exists():
            repo._verify(exclusions)
        else:
            repo._initialize(exclusions)
        return repo

    def _verify(self, exclusions: ExclusionConfig) -> None:
        self.state = RepositoryState.VERIFYING
        logger.debug("Shadow repo exists at %s, verifying worktree", self.git_dir)

        configured = self.configured_worktree()
        if configured != str(self.working_directory):
            logger.error(
                "Worktree mismatch for %s: expected %s, found %s",
                self.git_dir, self.working_directory, configured,
            )
            raise WorktreeMismatchError(str(self.working_directory), configured)

        restored = self._guard.restore_leftovers()
        if restored:
            logger.warning("Re-enabled %d nested repositories left disabled by an earlier run", restored)

        write_excludes_file(self.git_dir, self._extra_patterns(exclusions))
        self.state = RepositoryState.READY

    def _initialize(self, exclusions: ExclusionConfig) -> None:
        logger.info("Creating shadow repository in %s for %s", self.storage_path, self.working_directory)
        try:
            ensure_dir(self.storage_path)
            self._git.run("init", "--quiet")
            self._git.run("config", "core.worktree", str(self.working_directory))
            self._git.run("config", "commit.gpgSign", "false")
            self._git.run("config", "tag.gpgSign", "false")
            self._git.run("config", "user.name", SHADOW_AUTHOR_NAME)
            self._git.run("config", "user.email", SHADOW_AUTHOR_EMAIL)

            write_excludes_file(self.git_dir, self._extra_patterns(exclusions))

            # Usable for staging from here on.
            self.state = RepositoryState.READY
            staged = self.stage_all()
            if not staged.success:
                logger.warning("Initial staging was incomplete: %s", staged.error)

            self._git.run("commit", "--allow-empty", "--no-verify", "-m", INITIAL_COMMIT_MESSAGE)
        except (GitCommandError, GitUnavailableError, OSError) as e:
            self.state = RepositoryState.UNINITIALIZED
            shutil.rmtree(self.storage_path, ignore_errors=True)
            raise InitFailedError(f"Failed to initialize shadow git repository: {e}") from e

        logger.info("Shadow repository ready at %s", self.git_dir)

    def _extra_patterns(self, exclusions: ExclusionConfig) -> list[str]:
        patterns: list[str] = []
        if exclusions.include_lfs_patterns:
            patterns.extend(get_lfs_patterns(self.working_directory))
        patterns.extend(exclusions.additional_patterns)
        return patterns

    def _require_ready(self) -> None:
        if self.state is not RepositoryState.READY:
            raise InitFailedError(f"Shadow repository is not ready (state: {self.state.value})")

    @staticmethod
    def delete_all(identifier: str, storage_root: Path | str) -> bool:
        """Remove all shadow storage for an identifier.

        Returns:
            True if something was deleted, False if there was nothing to delete
        """
        path = shadow_storage_path(storage_root, identifier)
        if not remove_dir(path):
            logger.debug("No checkpoint storage at %s", path)
            return False
        logger.info("Deleted checkpoint storage at %s", path)
        return True

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    def configured_worktree(self) -> str | None:
        """Working directory recorded in the shadow repository's config."""
        try:
            value = self._git.output("config", "--get", "core.worktree")
        except GitCommandError:
            return None
        return value or None

    def head_hash(self) -> str | None:
        try:
            return self._git.output("rev-parse", "--verify", "--quiet", "HEAD") or None
        except GitCommandError:
            return None

    def root_hash(self) -> str | None:
        """Oldest snapshot reachable from HEAD."""
        try:
            lines = self._git.output("rev-list", "--max-parents=0", "HEAD").splitlines()
        except GitCommandError as e:
            logger.warning("Failed to resolve root snapshot: %s", e)
            return None
        return lines[-1].strip() if lines else None

    def resolve_commit(self, commit_hash: str | None) -> str:
        """Resolve a (possibly abbreviated) hash to a full commit hash.

        Raises:
            InvalidHashError: Empty or unknown hash
        """
        cleaned = clean_commit_hash(commit_hash)
        if not cleaned:
            raise InvalidHashError("Invalid commit hash provided")
        if cleaned.startswith("-"):
            raise InvalidHashError(f"Invalid commit hash: {cleaned}")
        proc = self._git.run("rev-parse", "--verify", "--quiet", f"{cleaned}^{{commit}}", check=False)
        resolved = os.fsdecode(proc.stdout).strip()
        if proc.returncode != 0 or not resolved:
            raise InvalidHashError(f"Unknown checkpoint: {cleaned}")
        return resolved

    def status(self) -> list[str]:
        """Porcelain status lines of the shadow repository."""
        self._require_ready()
        return [line for line in self._git.output("status", "--porcelain").splitlines() if line]

    # ------------------------------------------------------------------
    # Staging and committing
    # ------------------------------------------------------------------

    def stage_all(self) -> StageResult:
        """Stage the whole working tree under the exclusion policy."""
        self._require_ready()
        with self._guard:
            try:
                self._git.run("add", "-A", "--ignore-errors", "--", ".")
            except GitCommandError as e:
                logger.warning("Staging the working tree was incomplete: %s", e)
                return StageResult(success=False, error=str(e))
        return StageResult(success=True)

    def stage_specific(self, relative_paths: Sequence[str]) -> StageResult:
        """Stage only the given working-directory-relative paths."""
        paths = [normalize_relative_path(p) for p in relative_paths if p and p.strip()]
        if not paths:
            logger.debug("No paths provided to stage")
            return StageResult(success=True)

        self._require_ready()
        with self._guard:
            try:
                self._git.run("add", "-A", "--ignore-errors", "--", *paths)
            except GitCommandError as e:
                logger.warning("Staging %d specific paths failed: %s", len(paths), e)
                return StageResult(success=False, error=str(e))
        logger.debug("Staged %d specific paths", len(paths))
        return StageResult(success=True)

    def commit(self, message: str | None = None) -> str:
        """Commit the index as a new snapshot.

        Returns the current snapshot hash unchanged when nothing is staged,
        so repeated calls without changes yield the same hash.

        Raises:
            CommitFailedError: The commit could not be created
        """
        self._require_ready()
        head = self.head_hash()
        if head and self._git.succeeds("diff-index", "--cached", "--quiet", head, "--"):
            logger.debug("Nothing new to commit, reusing %s", head)
            return head

        try:
            self._git.run(
                "commit", "--allow-empty", "--no-verify", "-m", message or "checkpoint",
            )
        except GitCommandError as e:
            if "nothing to commit" in e.stderr and head:
                return head
            raise CommitFailedError(f"Failed to create checkpoint: {e}") from e

        new_head = self.head_hash()
        if not new_head:
            raise CommitFailedError("Commit was created, but its hash could not be read")
        logger.info("Checkpoint commit created: %s", new_head)
        return new_head

    def _save_index(self) -> str | None:
        try:
            return self._git.output("write-tree") or None
        except GitCommandError as e:
            logger.warning("Could not record the index before diffing: %s", e)
            return None

    def _restore_index(self, tree: str | None) -> None:
        """Put back the index captured by ``_save_index``, or HEAD's if there is none."""
        try:
            if tree:
                self._git.run("read-tree", tree)
            else:
                self._git.run("reset", "--quiet")
        except GitCommandError as e:
            logger.error("Failed to restore the index after diffing: %s", e)

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def reset(self, to_hash: str) -> None:
        """Restore the working directory to a snapshot.

        Untracked files are removed and tracked files overwritten; local
        edits made after the snapshot are lost.

        Raises:
            InvalidHashError: Empty or unknown hash
            ResetFailedError: git failed during the reset
        """
        self._require_ready()
        target = self.resolve_commit(to_hash)
        root = self.root_hash()

        logger.info("Resetting %s to checkpoint %s", self.working_directory, target)
        with self._guard:
            try:
                self._git.run("clean", "-f", "-d", "--quiet")
                self._git.run("reset", "--hard", "--quiet", target)
                if root and target == root:
                    # clean + reset already produced the root state.
                    logger.debug("Target is the root snapshot, skipping checkout")
                else:
                    if not root:
                        logger.warning("Could not verify root snapshot, proceeding with checkout")
                    self._git.run("checkout", "-f", "--", ".")
            except GitCommandError as e:
                if IGNORABLE_RESET_ERROR in e.stderr:
                    logger.warning("Ignoring benign reset error: %s", e.stderr)
                    return
                raise ResetFailedError(f"Failed to reset to checkpoint {target}: {e}") from e

        logger.info("Working directory reset to %s", target)

    # ------------------------------------------------------------------
    # Diff and content
    # ------------------------------------------------------------------

    def diff(self, from_hash: str | None = None, to_hash: str | None = None) -> list[DiffEntry]:
        """Changed files between two snapshots, or a snapshot and the working directory.

        ``from_hash`` defaults to the root snapshot; omitting ``to_hash``
        compares against the live working directory without leaving anything
        staged.

        Raises:
            InvalidHashError: A given hash is unknown, or there are no snapshots
            GitCommandError: git failed computing the diff
        """
        self._require_ready()
        if clean_commit_hash(from_hash):
            lhs = self.resolve_commit(from_hash)
        else:
            lhs = self.root_hash()
            if not lhs:
                raise InvalidHashError("Could not determine the root snapshot for diff")
        rhs = self.resolve_commit(to_hash) if clean_commit_hash(to_hash) else None

        if rhs:
            raw = self._git.run(
                "diff-tree", "-r", "-M", "--no-commit-id", "--name-status", "-z", lhs, rhs,
            ).stdout
        else:
            saved_index = self._save_index()
            try:
                staged = self.stage_all()
                if not staged.success:
                    logger.warning("Diffing against a partially staged working tree")
                raw = self._git.run(
                    "diff-index", "--cached", "-M", "--name-status", "-z", lhs, "--",
                ).stdout
            finally:
                self._restore_index(saved_index)

        changes = parse_name_status(raw)
        logger.debug("Found %d changed files between %s and %s", len(changes), lhs, rhs or "working directory")
        return [self._build_entry(change, lhs, rhs) for change in changes]

    def _build_entry(self, change: _Change, lhs: str, rhs: str | None) -> DiffEntry:
        absolute = self.working_directory / change.path

        before = ""
        if change.status in (DiffStatus.MODIFIED, DiffStatus.DELETED):
            before = self.get_content_at(lhs, change.path) or ""

        after = ""
        if change.status is not DiffStatus.DELETED:
            if rhs:
                after = self.get_content_at(rhs, change.path) or ""
            else:
                after = self._read_working_file(absolute)

        return DiffEntry(
            relative_path=change.path,
            absolute_path=str(absolute),
            status=change.status,
            before=before,
            after=after,
            previous_path=change.previous_path,
        )

    def _read_working_file(self, path: Path) -> str:
        try:
            return path.read_bytes().decode("utf-8", errors="replace")
        except FileNotFoundError:
            return ""
        except OSError as e:
            logger.warning("Could not read %s from the working directory: %s", path, e)
            return ""

    def get_content_at(self, commit_hash: str, relative_path: str) -> str | None:
        """Content of a file at a snapshot.

        Returns:
            The decoded content, "" for an empty file, or None if the path
            did not exist at that snapshot (or could not be read)
        """
        cleaned = clean_commit_hash(commit_hash)
        if not cleaned:
            logger.warning("Invalid or missing commit hash for content lookup")
            return None

        path = normalize_relative_path(relative_path)
        proc = self._git.run("cat-file", "blob", f"{cleaned}:{path}", check=False)
        if proc.returncode == 0:
            return proc.stdout.decode("utf-8", errors="replace")

        stderr = os.fsdecode(proc.stderr).strip()
        if "does not exist in" in stderr or "exists on disk, but not in" in stderr:
            logger.debug("%s not present at %s", path, cleaned)
        else:
            logger.warning("Could not read %s at %s: %s", path, cleaned, stderr)
        return None
