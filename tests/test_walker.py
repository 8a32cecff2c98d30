import os
from pathlib import Path

import pytest

import snapback.walker as walker
from snapback.walker import relative_files, walk


def test_walk_skips_excluded_directories(sample_project):
    files = walk(sample_project, ["node_modules"])

    assert files == [sample_project / "a.txt", sample_project / "sub" / "b.txt"]


def test_excluded_directory_is_never_entered(sample_project):
    calls = []

    walk(sample_project, ["node_modules"], on_directory=lambda dirs, found: calls.append((dirs, found)))

    # sub/ then the root; node_modules/ is pruned before descent
    assert calls == [(1, 2), (2, 2)]


def test_relative_files_uses_posix_keys(sample_project):
    files = relative_files(sample_project, ["node_modules"])

    assert sorted(files) == ["a.txt", "sub/b.txt"]
    assert files["sub/b.txt"] == sample_project / "sub" / "b.txt"


def test_empty_directories_yield_no_files(project):
    (project / "empty" / "nested").mkdir(parents=True)

    assert walk(project) == []


def test_depth_limit_skips_deep_branches(project, make_tree):
    make_tree(project, {"a/top.txt": "1", "a/b/c/deep.txt": "2"})

    assert walk(project, max_depth=1) == [project / "a" / "top.txt"]


def test_missing_root_returns_nothing(tmp_path):
    assert walk(tmp_path / "missing") == []


@pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
def test_symlinks_are_not_followed(project, make_tree, tmp_path):
    outside = make_tree(tmp_path / "outside", {"secret.txt": "s"})
    make_tree(project, {"real.txt": "r"})
    os.symlink(outside, project / "linked_dir")
    os.symlink(project / "real.txt", project / "linked_file.txt")

    assert walk(project) == [project / "real.txt"]


def test_unreadable_directory_is_skipped_with_warning(sample_project, monkeypatch, capsys):
    real_scandir = os.scandir

    def _scandir(path):
        if Path(path).name == "sub":
            raise PermissionError(13, "Permission denied")
        return real_scandir(path)

    monkeypatch.setattr(walker.os, "scandir", _scandir)

    assert walk(sample_project, ["node_modules"]) == [sample_project / "a.txt"]
    assert "Cannot read directory" in capsys.readouterr().err
