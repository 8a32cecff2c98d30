from snapback.config import storage_root
from snapback.snapshot.local import LocalSnapshotStore, make_record


def create_snapshot_store(root, config=None):
    """Create the snapshot store for a tracked root from config.

    Config keys:
        storage_dir: where snapshots live, relative to root unless absolute
    """
    config = config or {}
    return LocalSnapshotStore(storage_root(root, config))


__all__ = ["LocalSnapshotStore", "create_snapshot_store", "make_record"]
