"""Tests for the nested repository guard."""

from pathlib import Path

import pytest

from shadowpoint.core.nested_repos import (
    NestedRepoGuard,
    find_metadata_dirs,
    suppress_nested_repositories,
)


@pytest.fixture
def nested_workspace(tmp_path):
    root = tmp_path / "project"
    (root / ".git").mkdir(parents=True)
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (root / "libs" / "one" / ".git").mkdir(parents=True)
    (root / "libs" / "one" / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (root / "libs" / "two" / "deep" / ".git").mkdir(parents=True)
    return root


def _git_dirs(root):
    return sorted(str(p.relative_to(root)) for p in root.rglob(".git") if p.is_dir())


def _disabled_dirs(root):
    return sorted(str(p.relative_to(root)) for p in root.rglob(".git_disabled") if p.is_dir())


class TestFindMetadataDirs:
    def test_finds_nested_and_root(self, nested_workspace):
        found = find_metadata_dirs(nested_workspace, ".git")

        assert len(found) == 3

    def test_does_not_descend_into_matches(self, tmp_path):
        (tmp_path / ".git" / "modules" / "sub" / ".git").mkdir(parents=True)

        assert find_metadata_dirs(tmp_path, ".git") == [tmp_path / ".git"]

    def test_finds_gitfiles(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / ".git").write_text("gitdir: /elsewhere\n")

        assert find_metadata_dirs(tmp_path, ".git") == [tmp_path / "sub" / ".git"]


class TestNestedRepoGuard:
    def test_disables_nested_but_not_root(self, nested_workspace):
        guard = NestedRepoGuard(nested_workspace)

        renamed = guard.acquire()

        assert renamed == 2
        assert _git_dirs(nested_workspace) == [".git"]
        assert (nested_workspace / "libs" / "one" / ".git_disabled" / "HEAD").exists()
        guard.release()

    def test_release_restores(self, nested_workspace):
        before = _git_dirs(nested_workspace)
        guard = NestedRepoGuard(nested_workspace)

        guard.acquire()
        restored = guard.release()

        assert restored == 2
        assert _git_dirs(nested_workspace) == before
        assert _disabled_dirs(nested_workspace) == []

    def test_restores_on_exception(self, nested_workspace):
        before = _git_dirs(nested_workspace)

        with pytest.raises(RuntimeError):
            with suppress_nested_repositories(nested_workspace):
                assert _git_dirs(nested_workspace) == [".git"]
                raise RuntimeError("boom")

        assert _git_dirs(nested_workspace) == before

    def test_reentrant(self, nested_workspace):
        guard = NestedRepoGuard(nested_workspace)

        with guard:
            with guard:
                assert guard.active
            # Inner exit must not re-enable while the outer scope is active.
            assert _git_dirs(nested_workspace) == [".git"]

        assert not guard.active
        assert len(_git_dirs(nested_workspace)) == 3

    def test_extra_release_is_noop(self, nested_workspace):
        guard = NestedRepoGuard(nested_workspace)

        assert guard.release() == 0
        guard.acquire()
        guard.release()
        assert guard.release() == 0
        assert len(_git_dirs(nested_workspace)) == 3

    def test_existing_target_is_left_alone(self, nested_workspace):
        (nested_workspace / "libs" / "one" / ".git_disabled").mkdir()
        guard = NestedRepoGuard(nested_workspace)

        with guard:
            assert (nested_workspace / "libs" / "one" / ".git").is_dir()
            assert not (nested_workspace / "libs" / "two" / "deep" / ".git").exists()

    def test_restore_leftovers(self, nested_workspace):
        leftover = nested_workspace / "libs" / "one" / ".git"
        leftover.rename(leftover.with_name(".git_disabled"))

        restored = NestedRepoGuard(nested_workspace).restore_leftovers()

        assert restored == 1
        assert leftover.is_dir()

    def test_no_nested_repositories(self, tmp_path):
        (tmp_path / "src").mkdir()

        with NestedRepoGuard(tmp_path) as guard:
            assert guard.active
        assert _disabled_dirs(tmp_path) == []

    def test_rename_failure_skips_only_that_repository(self, nested_workspace, monkeypatch):
        blocked = nested_workspace / "libs" / "one" / ".git"
        real_rename = Path.rename

        def rename(self, target):
            if self == blocked:
                raise PermissionError(13, "Permission denied", str(self))
            return real_rename(self, target)

        monkeypatch.setattr(Path, "rename", rename)
        guard = NestedRepoGuard(nested_workspace)

        renamed = guard.acquire()

        assert renamed == 1
        assert blocked.is_dir()
        assert not (nested_workspace / "libs" / "two" / "deep" / ".git").exists()
        guard.release()
        assert len(_git_dirs(nested_workspace)) == 3

    def test_gitfile_is_disabled_and_restored(self, tmp_path):
        sub = tmp_path / "sub"
        sub.mkdir()
        gitfile = sub / ".git"
        gitfile.write_text("gitdir: ../.git/modules/sub\n")

        with NestedRepoGuard(tmp_path):
            assert not gitfile.exists()
            assert (sub / ".git_disabled").is_file()

        assert gitfile.read_text() == "gitdir: ../.git/modules/sub\n"
        assert not (sub / ".git_disabled").exists()
