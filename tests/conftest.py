from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolate_home(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Prevent developer machine `~/.shadowpoint` config and git settings from influencing tests."""

    monkeypatch.setenv("HOME", str(tmp_path))
    for name in (
        "SHADOWPOINT_ENABLED",
        "SHADOWPOINT_STORAGE_ROOT",
        "SHADOWPOINT_GIT",
        "SHADOWPOINT_DEBUG",
        "SHADOWPOINT_WORKSPACE",
        "GIT_DIR",
        "GIT_WORK_TREE",
        "GIT_INDEX_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def workspace(tmp_path):
    """Create a working directory with a couple of files."""
    project = tmp_path / "project"
    project.mkdir()

    (project / "app.py").write_text("print('hello')\n")
    (project / "README.md").write_text("# Test\n")

    return project


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "storage"
    root.mkdir()
    return root
