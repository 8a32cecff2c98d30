"""Reconcile a tracked root to a stored snapshot.

Restore is a two-phase protocol: every non-excluded live file is deleted,
then every snapshot file is copied back. It is not diff-based, so cost is
proportional to tree size, not change size. There is no rollback: a
cancelled or partially failed restore leaves whatever was already done in
place, and re-running the restore is the recovery path.
"""

import os
import time
from pathlib import Path

from snapback.errors import SnapshotNotFound
from snapback.ignore import merge_patterns
from snapback.log import warn, write_log
from snapback.progress import ProgressEmitter
from snapback.session import RESTORING
from snapback.snapshot.manifest import MANIFEST_NAME, manifest_patterns, read_manifest
from snapback.transfer import DEFAULT_ATTEMPTS, remove_with_retry, stream_copy_with_retry
from snapback.walker import relative_files, walk

# Snapshots larger than this are restored in batches even if not requested.
AUTO_BATCH_THRESHOLD = 1000


class RestoreOptions:
    """Tuning for one restore.

    batch_size=None picks a size from the snapshot's file count.
    """

    def __init__(self, batch_mode=False, batch_size=None, max_retry_attempts=DEFAULT_ATTEMPTS,
                 batch_pause=0.5):
        if batch_size is not None and batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_mode = batch_mode
        self.batch_size = batch_size
        self.max_retry_attempts = max_retry_attempts
        self.batch_pause = batch_pause

    @classmethod
    def from_config(cls, config, **overrides):
        options = {
            "batch_mode": config.get("use_batch_restore", False),
            "max_retry_attempts": config.get("max_retry_attempts", DEFAULT_ATTEMPTS),
            "batch_pause": config.get("batch_pause_seconds", 0.5),
        }
        options.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**options)


def batch_size_for(file_count):
    """Smaller batches for larger trees."""
    if file_count > 10000:
        return 20
    if file_count > 5000:
        return 50
    return 100


def _is_cancelled(cancel):
    return cancel is not None and cancel.is_set()


def _safe_destination(root, rel):
    """Live path for a snapshot-relative path, or None if it would land outside root."""
    dest = root / rel
    real_parent = Path(os.path.realpath(dest.parent))
    try:
        real_parent.relative_to(root)
    except ValueError:
        return None
    return dest


def _prune_empty_dirs(root, deleted):
    """Remove directories left empty by the delete phase, deepest first. Never root itself."""
    candidates = set()
    for path in deleted:
        parent = path.parent
        while parent != root and root in parent.parents:
            candidates.add(parent)
            parent = parent.parent
    for directory in sorted(candidates, key=lambda p: len(p.parts), reverse=True):
        if not directory.is_dir() or directory.is_symlink():
            continue
        if any(directory.iterdir()):
            continue
        try:
            directory.rmdir()
        except OSError as e:
            warn(f"Could not remove empty directory {directory}: {e}")


def restore(tracked, snapshot_id, options=None, cancel=None, on_progress=None):
    """Make the tracked root match a snapshot.

    cancel is any object with is_set() (e.g. threading.Event). It is checked
    before the delete phase and, in batch mode, before every copy batch.

    Returns {"snapshot", "files_restored", "files_failed", "files_removed",
    "removal_failures", "batched", "batch_size", "degraded", "outcome",
    "summary"} where outcome is "success", "partial" or "cancelled".
    """
    options = options or RestoreOptions.from_config(tracked.config)
    progress = ProgressEmitter(on_progress)

    with tracked.operation(RESTORING):
        store = tracked.store
        root = tracked.root
        record = store.get(snapshot_id)
        content_dir = store.content_path(snapshot_id)
        if not content_dir.is_dir():
            raise SnapshotNotFound(snapshot_id, f"content directory {content_dir} is missing")

        patterns = manifest_patterns(read_manifest(content_dir))
        degraded = patterns is None
        if degraded:
            warn(f"Restoring {snapshot_id} with current exclude patterns; manifest unavailable")
            patterns = tracked.exclude_patterns()
        patterns = merge_patterns(patterns, tracked.protected_patterns())

        max_depth = tracked.config["max_depth"]
        progress.start("scan", message="Analyzing workspace and snapshot...")
        live_files = []
        if root.is_dir():
            # Never captured, so never deleted.
            reserved = root / MANIFEST_NAME
            live_files = [p for p in walk(root, patterns, max_depth=max_depth) if p != reserved]
        stored = relative_files(content_dir, max_depth=max_depth)
        stored.pop(MANIFEST_NAME, None)
        snapshot_files = sorted(stored.items())
        total = len(snapshot_files)
        progress.end(
            "scan", total, total,
            message=f"Found {total} files to restore, {len(live_files)} files to clean up",
        )

        batched = options.batch_mode or total > AUTO_BATCH_THRESHOLD
        batch_size = options.batch_size or batch_size_for(total)
        attempts = options.max_retry_attempts

        result = {
            "snapshot": record,
            "files_restored": 0,
            "files_failed": 0,
            "files_removed": 0,
            "removal_failures": 0,
            "batched": batched,
            "batch_size": batch_size if batched else None,
            "degraded": degraded,
            "outcome": "success",
        }

        if _is_cancelled(cancel):
            return _finish(result, "cancelled", root)

        # Phase 1: delete. Everything not excluded is presumed stale.
        progress.start("delete", len(live_files), message="Preparing workspace...")
        for done, path in enumerate(live_files, start=1):
            if remove_with_retry(path, attempts):
                result["files_removed"] += 1
            else:
                result["removal_failures"] += 1
            progress.advance(
                "delete", done, len(live_files), result["removal_failures"],
                message=f"Removed {result['files_removed']} of {len(live_files)} files",
            )
        _prune_empty_dirs(root, live_files)
        progress.end("delete", len(live_files), len(live_files), result["removal_failures"])

        # Phase 2: copy back.
        root.mkdir(parents=True, exist_ok=True)
        if batched:
            batches = [snapshot_files[i:i + batch_size] for i in range(0, total, batch_size)]
        else:
            batches = [snapshot_files]

        progress.start("copy", total, message="Restoring files from snapshot...")
        done = 0
        for index, batch in enumerate(batches):
            if batched:
                if _is_cancelled(cancel):
                    progress.end("copy", done, total, result["files_failed"])
                    return _finish(result, "cancelled", root)
                if index > 0 and options.batch_pause > 0:
                    time.sleep(options.batch_pause)
            for rel, src in batch:
                dest = _safe_destination(root, rel)
                if dest is None:
                    warn(f"Refusing to restore {rel}: destination escapes {root}")
                    result["files_failed"] += 1
                elif stream_copy_with_retry(src, dest, attempts):
                    result["files_restored"] += 1
                else:
                    result["files_failed"] += 1
                done += 1
                progress.advance(
                    "copy", done, total, result["files_failed"],
                    message=f"Restored {result['files_restored']} of {total} files "
                            f"({result['files_failed']} errors)",
                )
            if batched:
                progress.advance(
                    "copy", done, total, result["files_failed"], force=True,
                    message=f"Batch {index + 1}/{len(batches)} complete",
                )
        progress.end("copy", done, total, result["files_failed"])

    failed = result["files_failed"] or result["removal_failures"]
    return _finish(result, "partial" if failed else "success", root)


def _finish(result, outcome, root):
    result["outcome"] = outcome
    snapshot = result["snapshot"]
    if outcome == "cancelled":
        summary = (
            f"Restore of '{snapshot['label']}' cancelled: {result['files_restored']} files "
            f"restored, {result['files_removed']} removed before stopping"
        )
    else:
        summary = (
            f"Restored '{snapshot['label']}': {result['files_restored']} files, "
            f"{result['files_removed']} removed"
        )
        if outcome == "partial":
            summary += (
                f" ({result['files_failed']} copies and "
                f"{result['removal_failures']} removals failed)"
            )
    result["summary"] = summary
    write_log({
        "event": "restore",
        "snapshot": snapshot["id"],
        "label": snapshot["label"],
        "project": str(root),
        "files_restored": result["files_restored"],
        "files_failed": result["files_failed"],
        "files_removed": result["files_removed"],
        "result": outcome,
    })
    return result
