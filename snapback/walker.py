"""Directory tree enumeration for capture and restore.

Excluded directories are pruned before descent, so a node_modules-sized
subtree costs one name check instead of a stat per file.
"""

import os
from pathlib import Path

from snapback.ignore import is_excluded
from snapback.log import warn

DEFAULT_MAX_DEPTH = 100


def walk(root, patterns=(), max_depth=DEFAULT_MAX_DEPTH, on_directory=None):
    """Return sorted absolute paths of every regular file under root.

    Symlinks are neither followed nor listed. Unreadable directories and
    branches deeper than max_depth are skipped with a warning.
    on_directory(scanned_dirs, found_files) is called after each directory.
    """
    root = Path(root)
    files = []
    scanned = 0

    def _walk(directory, rel, depth):
        nonlocal scanned
        if depth > max_depth:
            warn(f"Maximum directory depth ({max_depth}) reached at {directory}; skipping")
            return
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            warn(f"Cannot read directory {directory}: {e.strerror or e}")
            return

        for entry in entries:
            child_rel = f"{rel}/{entry.name}" if rel else entry.name
            if is_excluded(child_rel, patterns):
                continue
            try:
                if entry.is_symlink():
                    continue
                if entry.is_dir(follow_symlinks=False):
                    _walk(Path(entry.path), child_rel, depth + 1)
                elif entry.is_file(follow_symlinks=False):
                    files.append(Path(entry.path))
            except OSError as e:
                warn(f"Cannot stat {entry.path}: {e.strerror or e}")

        scanned += 1
        if on_directory is not None:
            on_directory(scanned, len(files))

    _walk(root, "", 0)
    files.sort()
    return files


def relative_files(root, patterns=(), max_depth=DEFAULT_MAX_DEPTH):
    """Map of POSIX relative path → absolute path for every file under root."""
    root = Path(root)
    return {
        path.relative_to(root).as_posix(): path
        for path in walk(root, patterns, max_depth=max_depth)
    }
