"""Tests for the shared tree walker and filesystem helpers."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

from depsync.fs import directory_size, format_bytes, remove_tree, walk


def _tree(root: Path) -> None:
    for rel in ("a/x.js", "a/b/y.js", "a/b/c/z.js", "skip/w.js", "top.js"):
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("12345")


class TestWalk:
    def test_visits_every_file(self, tmp_path: Path):
        _tree(tmp_path)
        seen: list[str] = []
        walk(tmp_path, on_file=lambda p: seen.append(p.relative_to(tmp_path).as_posix()))
        assert sorted(seen) == ["a/b/c/z.js", "a/b/y.js", "a/x.js", "skip/w.js", "top.js"]

    def test_exclusion_set(self, tmp_path: Path):
        _tree(tmp_path)
        seen: list[str] = []
        walk(tmp_path, exclude={"skip", "c"}, on_file=lambda p: seen.append(p.name))
        assert sorted(seen) == ["top.js", "x.js", "y.js"]

    def test_dir_callback_depth_and_pruning(self, tmp_path: Path):
        _tree(tmp_path)
        dirs: dict[str, int] = {}

        def on_dir(path: Path, depth: int) -> bool:
            dirs[path.relative_to(tmp_path).as_posix()] = depth
            return path.name != "b"

        walk(tmp_path, on_dir=on_dir)
        assert dirs == {"a": 1, "a/b": 2, "skip": 1}

    def test_max_depth(self, tmp_path: Path):
        _tree(tmp_path)
        dirs: list[str] = []
        walk(tmp_path, on_dir=lambda p, d: dirs.append(p.name) or True, max_depth=2)
        assert sorted(dirs) == ["a", "b", "skip"]

    def test_unreadable_directory_is_skipped(self, tmp_path: Path):
        _tree(tmp_path)
        real_scandir = os.scandir

        def guarded_scandir(path):
            if os.path.basename(os.fspath(path)) == "skip":
                raise PermissionError(13, "Permission denied", os.fspath(path))
            return real_scandir(path)

        seen: list[str] = []
        with patch("depsync.fs.os.scandir", side_effect=guarded_scandir):
            walk(tmp_path, on_file=lambda p: seen.append(p.name))
        assert sorted(seen) == ["top.js", "x.js", "y.js", "z.js"]


class TestHelpers:
    def test_directory_size(self, tmp_path: Path):
        _tree(tmp_path)
        assert directory_size(tmp_path) == 25
        assert directory_size(tmp_path / "missing") == 0

    def test_remove_tree(self, tmp_path: Path):
        _tree(tmp_path)
        assert remove_tree(tmp_path / "a")
        assert remove_tree(tmp_path / "top.js")
        assert not remove_tree(tmp_path / "a")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["skip"]

    def test_format_bytes(self):
        assert format_bytes(0) == "0 B"
        assert format_bytes(512) == "512 B"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(5 * 1024 * 1024) == "5 MB"
