"""Tree walking helpers shared by discovery, scanning, sizing and cleanup."""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable, Collection
from pathlib import Path

import structlog

log = structlog.get_logger("depsync.fs")

FileVisitor = Callable[[Path], None]
# Called for every child directory with its depth below the walk root (1 = top
# level). Returning False prevents the walk from descending into it.
DirVisitor = Callable[[Path, int], bool]


def walk(
    root: Path,
    exclude: Collection[str] = (),
    on_file: FileVisitor | None = None,
    on_dir: DirVisitor | None = None,
    max_depth: int | None = None,
) -> None:
    """Visit *root* top-down in directory-listing order.

    Directory names in *exclude* are neither visited nor descended into.
    Unreadable directories are skipped.
    """
    root = Path(root)
    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_walk_error):
        current = Path(dirpath)
        depth = len(current.relative_to(root).parts)

        descend: list[str] = []
        for name in dirnames:
            if name in exclude:
                continue
            child = current / name
            wanted = on_dir(child, depth + 1) if on_dir is not None else True
            if wanted and (max_depth is None or depth + 1 < max_depth):
                descend.append(name)
        dirnames[:] = descend

        if on_file is not None:
            for name in filenames:
                on_file(current / name)


def directory_size(path: Path) -> int:
    """Total size in bytes of the regular files below *path*."""
    total = 0

    def _add(file_path: Path) -> None:
        nonlocal total
        try:
            total += file_path.lstat().st_size
        except OSError:
            pass

    if path.is_dir():
        walk(path, on_file=_add)
    return total


def remove_tree(path: Path) -> bool:
    """Delete *path* (directory or file). Returns False when it did not exist."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    if path.exists() or path.is_symlink():
        path.unlink()
        return True
    return False


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 B"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{round(value, 2):g} {unit}"
        value /= 1024
    return f"{size} B"


def _on_walk_error(error: OSError) -> None:
    log.debug("fs.walk_skipped", path=error.filename, error=error.strerror)
