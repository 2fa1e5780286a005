from __future__ import annotations

import json
from pathlib import Path

from shadowpoint.config.loader import ConfigLoader
from shadowpoint.config.types import CheckpointConfig, ExclusionConfig, GitConfig


def _write_global_config(tmp_home: Path, data: dict) -> None:
    cfg_dir = tmp_home / ".shadowpoint"
    cfg_dir.mkdir(parents=True, exist_ok=True)
    (cfg_dir / "config.json").write_text(json.dumps(data, indent=2), encoding="utf-8")


def _write_project_config(project: Path, data: dict) -> None:
    cfg_dir = project / ".agent" / "shadowpoint"
    cfg_dir.mkdir(parents=True, exist_ok=True)
    (cfg_dir / "config.json").write_text(json.dumps(data, indent=2), encoding="utf-8")


def test_defaults_without_config(tmp_path):
    cfg = ConfigLoader(project_root=tmp_path / "proj").load()

    assert cfg.enabled is True
    assert cfg.storage_root is None
    assert cfg.exclusions.additional_patterns == []
    assert cfg.exclusions.include_lfs_patterns is True
    assert cfg.git.binary == "git"
    assert cfg.git.timeout_seconds == 120


def test_non_boolean_flags_fall_back(tmp_path):
    _write_global_config(
        tmp_path,
        {"enableCheckpoints": "false", "exclusions": {"includeLfsPatterns": 0}},
    )

    cfg = ConfigLoader(project_root=tmp_path / "proj").load()

    assert cfg.enabled is True
    assert cfg.exclusions.include_lfs_patterns is True


def test_project_config_overrides_global(tmp_path):
    project = tmp_path / "proj"
    _write_global_config(
        tmp_path,
        {"enableCheckpoints": True, "git": {"binary": "/usr/bin/git", "timeoutSeconds": 30}},
    )
    _write_project_config(project, {"git": {"timeoutSeconds": 60}, "exclusions": {"additionalPatterns": ["*.ckpt"]}})

    cfg = ConfigLoader(project_root=project).load()

    assert cfg.git.binary == "/usr/bin/git"
    assert cfg.git.timeout_seconds == 60
    assert cfg.exclusions.additional_patterns == ["*.ckpt"]


def test_environment_overrides_files(tmp_path, monkeypatch):
    project = tmp_path / "proj"
    _write_project_config(project, {"enableCheckpoints": True, "storage": {"root": "/from/file"}})
    monkeypatch.setenv("SHADOWPOINT_ENABLED", "0")
    monkeypatch.setenv("SHADOWPOINT_STORAGE_ROOT", str(tmp_path / "env-storage"))
    monkeypatch.setenv("SHADOWPOINT_GIT", "/opt/git/bin/git")

    cfg = ConfigLoader(project_root=project).load()

    assert cfg.enabled is False
    assert cfg.storage_root == str(tmp_path / "env-storage")
    assert cfg.git.binary == "/opt/git/bin/git"


def test_unrecognised_env_flag_is_ignored(tmp_path, monkeypatch):
    monkeypatch.setenv("SHADOWPOINT_ENABLED", "maybe")

    assert ConfigLoader(project_root=tmp_path).load().enabled is True


def test_malformed_json_falls_back_to_defaults(tmp_path):
    cfg_dir = tmp_path / ".shadowpoint"
    cfg_dir.mkdir()
    (cfg_dir / "config.json").write_text("{not json", encoding="utf-8")

    cfg = ConfigLoader(project_root=tmp_path / "proj").load()

    assert cfg == CheckpointConfig()


def test_malformed_sections_fall_back(tmp_path):
    _write_global_config(
        tmp_path,
        {"exclusions": "nope", "git": {"binary": "", "timeoutSeconds": -5}, "storage": ["x"]},
    )

    cfg = ConfigLoader(project_root=tmp_path / "proj").load()

    assert cfg.exclusions == ExclusionConfig()
    assert cfg.git == GitConfig()
    assert cfg.storage_root is None


def test_save_and_reload_project_config(tmp_path):
    project = tmp_path / "proj"
    loader = ConfigLoader(project_root=project)
    config = CheckpointConfig(
        enabled=False,
        storage_root=str(tmp_path / "store"),
        exclusions=ExclusionConfig(additional_patterns=["*.bin2"], include_lfs_patterns=False),
    )

    path = loader.save_config(config, scope="project")

    assert path == project / ".agent" / "shadowpoint" / "config.json"
    assert loader.reload() == config


def test_save_global_config(tmp_path):
    loader = ConfigLoader(project_root=None)

    path = loader.save_config(CheckpointConfig(git=GitConfig(timeout_seconds=5)), scope="global")

    assert path == tmp_path / ".shadowpoint" / "config.json"
    assert json.loads(path.read_text(encoding="utf-8"))["git"]["timeoutSeconds"] == 5
