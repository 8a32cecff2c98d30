import re
import time

from snapback.errors import SnapbackError, StorageUnavailable
from snapback.log import warn, write_log
from snapback.progress import ProgressEmitter
from snapback.session import CAPTURING
from snapback.snapshot import make_record
from snapback.snapshot.manifest import MANIFEST_NAME, write_manifest
from snapback.transfer import copy_with_retry
from snapback.walker import walk

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_MAX_ID_LABEL = 48


def make_snapshot_id(label, created_at):
    """Path-safe ID from a label and an epoch-millisecond timestamp."""
    token = _UNSAFE_ID_CHARS.sub("-", label).lower()[:_MAX_ID_LABEL]
    return f"state-{token}-{created_at}"


def _unique_id(store, label, created_at):
    # Two captures in the same millisecond with the same label would collide.
    while True:
        snapshot_id = make_snapshot_id(label, created_at)
        if not store.exists(snapshot_id) and not store.content_path(snapshot_id).exists():
            return snapshot_id, created_at
        created_at += 1


def capture(tracked, label, description=None, tags=(), exclude_patterns=None, on_progress=None):
    """Copy every non-excluded file under the tracked root into a new snapshot.

    Returns {"snapshot", "files_copied", "files_failed", "outcome", "summary"}.
    Files that fail to copy after retries are counted, not fatal: the
    snapshot is still recorded with outcome "partial".
    """
    label = (label or "").strip()
    if not label:
        raise ValueError("Snapshot label cannot be empty")
    tags = [t.strip() for t in tags if t and t.strip()]
    progress = ProgressEmitter(on_progress)

    with tracked.operation(CAPTURING):
        root = tracked.root
        if not root.is_dir():
            raise SnapbackError(f"Tracked root {root} is not a directory")
        store = tracked.store
        patterns = tracked.exclude_patterns(exclude_patterns)
        max_attempts = tracked.config["max_retry_attempts"]

        snapshot_id, created_at = _unique_id(store, label, int(time.time() * 1000))
        content_dir = store.allocate(snapshot_id)

        progress.start("scan", message="Scanning files...")
        files = walk(root, patterns, max_depth=tracked.config["max_depth"])
        total = len(files)
        progress.end("scan", total, total, message=f"Found {total} files to save")

        copied = 0
        failed = 0
        reserved = root / MANIFEST_NAME
        progress.start("capture", total, message=f"Saving {total} files")
        for done, path in enumerate(files, start=1):
            if path == reserved:
                warn(f"Skipping {path}: {MANIFEST_NAME} at the root is reserved for snapshot metadata")
                failed += 1
            elif copy_with_retry(path, content_dir / path.relative_to(root), max_attempts):
                copied += 1
            else:
                failed += 1
            progress.advance(
                "capture", done, total, failed,
                message=f"Saved {copied} of {total} files ({failed} errors)",
            )
        progress.end("capture", copied + failed, total, failed)

        record = make_record(
            snapshot_id,
            label,
            created_at,
            description=description,
            tags=tags,
            source_root=root,
        )

        progress.start("manifest", 1)
        try:
            write_manifest(content_dir, record, patterns, files_copied=copied, files_failed=failed)
        except OSError as e:
            raise StorageUnavailable(f"Cannot write manifest for {snapshot_id}: {e}") from e
        progress.end("manifest", 1, 1)

        store.append(record)

    outcome = "partial" if failed else "success"
    summary = f"Saved '{label}' ({snapshot_id}): {copied} files"
    if failed:
        summary += f", {failed} failed"
    write_log({
        "event": "capture",
        "snapshot": snapshot_id,
        "label": label,
        "project": str(root),
        "files_copied": copied,
        "files_failed": failed,
        "result": outcome,
    })
    return {
        "snapshot": record,
        "files_copied": copied,
        "files_failed": failed,
        "outcome": outcome,
        "summary": summary,
    }
