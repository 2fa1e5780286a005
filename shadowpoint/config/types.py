"""Configuration schemas for shadowpoint.

Defines dataclasses for all configuration structures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ExclusionConfig:
    """Extra exclusion settings layered on top of the built-in policy."""
    additional_patterns: list[str] = field(default_factory=list)
    include_lfs_patterns: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> ExclusionConfig:
        """Create ExclusionConfig from dictionary."""
        patterns = data.get("additionalPatterns", [])
        if not isinstance(patterns, list):
            patterns = []
        include_lfs = data.get("includeLfsPatterns", True)
        return cls(
            additional_patterns=[str(p) for p in patterns if isinstance(p, str) and p.strip()],
            include_lfs_patterns=include_lfs if isinstance(include_lfs, bool) else True,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "additionalPatterns": list(self.additional_patterns),
            "includeLfsPatterns": self.include_lfs_patterns,
        }


@dataclass
class GitConfig:
    """How the git executable is invoked."""
    binary: str = "git"
    timeout_seconds: int = 120

    @classmethod
    def from_dict(cls, data: dict) -> GitConfig:
        """Create GitConfig from dictionary."""
        binary = data.get("binary", "git")
        timeout = data.get("timeoutSeconds", 120)
        if not isinstance(timeout, int) or isinstance(timeout, bool) or timeout <= 0:
            timeout = 120
        return cls(
            binary=binary if isinstance(binary, str) and binary.strip() else "git",
            timeout_seconds=timeout,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"binary": self.binary, "timeoutSeconds": self.timeout_seconds}


@dataclass
class CheckpointConfig:
    """Main shadowpoint configuration."""
    enabled: bool = True
    storage_root: str | None = None
    exclusions: ExclusionConfig = field(default_factory=ExclusionConfig)
    git: GitConfig = field(default_factory=GitConfig)

    @classmethod
    def from_dict(cls, data: dict) -> CheckpointConfig:
        """Create CheckpointConfig from dictionary.

        Unknown keys are ignored and malformed sections fall back to defaults.
        """
        storage_data = data.get("storage", {})
        storage_root = storage_data.get("root") if isinstance(storage_data, dict) else None

        exclusions_data = data.get("exclusions", {})
        git_data = data.get("git", {})
        enabled = data.get("enableCheckpoints", True)

        return cls(
            enabled=enabled if isinstance(enabled, bool) else True,
            storage_root=storage_root if isinstance(storage_root, str) and storage_root.strip() else None,
            exclusions=ExclusionConfig.from_dict(exclusions_data if isinstance(exclusions_data, dict) else {}),
            git=GitConfig.from_dict(git_data if isinstance(git_data, dict) else {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "enableCheckpoints": self.enabled,
            "exclusions": self.exclusions.to_dict(),
            "git": self.git.to_dict(),
        }
        if self.storage_root:
            data["storage"] = {"root": self.storage_root}
        return data
