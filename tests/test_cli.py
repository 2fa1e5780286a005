from __future__ import annotations

import shutil

import pytest

from shadowpoint.app.cli import create_parser, main


pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


def _run(workspace, storage_root, *args):
    return main(["--workspace", str(workspace), "--storage", str(storage_root), *args])


def test_parser_requires_hash_for_show():
    with pytest.raises(SystemExit):
        create_parser().parse_args(["show", "abc"])


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage:" in capsys.readouterr().out


def test_init_and_status(workspace, storage_root, capsys):
    assert _run(workspace, storage_root, "init") == 0
    out = capsys.readouterr().out
    assert "Shadow repository:" in out

    assert _run(workspace, storage_root, "status") == 0
    out = capsys.readouterr().out
    assert "Initialized:       yes" in out


def test_save_diff_and_reset(workspace, storage_root, capsys):
    assert _run(workspace, storage_root, "save", "--task", "cli") == 0
    base = capsys.readouterr().out.split("Saved:")[1].strip()

    (workspace / "app.py").write_text("changed\n")
    assert _run(workspace, storage_root, "diff", base) == 0
    out = capsys.readouterr().out
    assert "M  app.py" in out
    assert "1 file(s) changed" in out

    assert _run(workspace, storage_root, "show", base, "app.py") == 0
    assert capsys.readouterr().out == "print('hello')\n"

    assert _run(workspace, storage_root, "reset", base) == 0
    assert (workspace / "app.py").read_text() == "print('hello')\n"


def test_reset_invalid_hash_fails(workspace, storage_root, capsys):
    assert _run(workspace, storage_root, "reset", "deadbeef") == 1
    assert "Error:" in capsys.readouterr().err


def test_undo_without_generation_fails(workspace, storage_root, capsys):
    assert _run(workspace, storage_root, "undo") == 1
    assert "No checkpoint to undo to" in capsys.readouterr().err


def test_protected_workspace_fails(tmp_path, storage_root, capsys):
    assert _run(tmp_path, storage_root, "init") == 1
    assert "protected" in capsys.readouterr().err


def test_delete(workspace, storage_root, capsys):
    _run(workspace, storage_root, "init")
    capsys.readouterr()

    assert _run(workspace, storage_root, "delete") == 0
    assert "Checkpoints deleted." in capsys.readouterr().out
    assert not (storage_root / "checkpoints").exists() or not any((storage_root / "checkpoints").iterdir())


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])

    assert excinfo.value.code == 0
    assert "shadowpoint" in capsys.readouterr().out
