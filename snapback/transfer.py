"""Retried file copy and delete shared by capture and restore.

Every function here reports failure as a False return after exhausting its
attempts; none of them raise for I/O errors. Callers tally failures and
keep going.
"""

import os
import shutil
import stat
import time
from pathlib import Path

from snapback.log import warn

BACKOFF_BASE_MS = 100
BACKOFF_CAP_MS = 2000
DEFAULT_ATTEMPTS = 3

# Patched out in tests so retries don't sleep.
sleep = time.sleep


def backoff_delay(attempt):
    """Seconds to wait after the given failed attempt (1-based): 0.1, 0.2, 0.4, ... capped at 2.0."""
    return min(BACKOFF_BASE_MS * 2 ** (attempt - 1), BACKOFF_CAP_MS) / 1000


def _copy_file(src, dst):
    shutil.copyfile(src, dst)


def _stream_copy(src, dst):
    with open(src, "rb") as reader, open(dst, "wb") as writer:
        shutil.copyfileobj(reader, writer)
        writer.flush()
        os.fsync(writer.fileno())


def _unlink(path):
    try:
        path.unlink()
    except PermissionError:
        # Read-only files on Windows refuse unlink until the bit is cleared.
        if os.name == "nt":
            os.chmod(path, stat.S_IWRITE)
            path.unlink()
        else:
            raise


def _retry(action, description, max_attempts):
    max_attempts = max(1, int(max_attempts))
    for attempt in range(1, max_attempts + 1):
        try:
            action()
            return True
        except OSError as e:
            warn(f"{description} failed (attempt {attempt}/{max_attempts}): {e}")
            if attempt < max_attempts:
                sleep(backoff_delay(attempt))
    return False


def copy_with_retry(src, dst, max_attempts=DEFAULT_ATTEMPTS):
    """Copy one file's bytes, creating the destination's parent directory."""
    src, dst = Path(src), Path(dst)

    def _attempt():
        dst.parent.mkdir(parents=True, exist_ok=True)
        _copy_file(src, dst)

    return _retry(_attempt, f"Copy {src} -> {dst}", max_attempts)


def stream_copy_with_retry(src, dst, max_attempts=DEFAULT_ATTEMPTS):
    """Restore-side copy: remove any existing destination, stream, then verify it exists."""
    src, dst = Path(src), Path(dst)

    def _attempt():
        if dst.is_symlink() or dst.is_file():
            _unlink(dst)
        elif dst.is_dir():
            shutil.rmtree(dst)
        dst.parent.mkdir(parents=True, exist_ok=True)
        _stream_copy(src, dst)
        if not dst.is_file():
            raise OSError(f"{dst} missing after copy")

    return _retry(_attempt, f"Restore {src} -> {dst}", max_attempts)


def remove_with_retry(path, max_attempts=DEFAULT_ATTEMPTS):
    """Remove a file or a whole directory tree. A path that is already gone counts as removed."""
    path = Path(path)

    def _attempt():
        if path.is_symlink() or path.is_file():
            _unlink(path)
        elif path.is_dir():
            shutil.rmtree(path)

    return _retry(_attempt, f"Remove {path}", max_attempts)
