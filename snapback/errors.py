"""Typed exceptions for snapback.

Structural failures only. Per-file copy and delete failures are retried,
tallied and reported in the operation result instead of raised.
"""


class SnapbackError(Exception):
    """Base exception for snapback failures."""


class SnapshotNotFound(SnapbackError):
    """Raised when a snapshot id has no index record or no content directory."""

    def __init__(self, snapshot_id, reason=None):
        self.snapshot_id = snapshot_id
        message = f"Snapshot {snapshot_id} not found"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class AlreadyInProgress(SnapbackError):
    """Raised when a capture or restore is already running on the tracked root."""

    def __init__(self, root, state):
        self.root = root
        self.state = state
        super().__init__(f"Already {state} {root}. Wait for it to complete.")


class Cooldown(SnapbackError):
    """Raised when an operation is requested before the cooldown has elapsed."""

    def __init__(self, remaining):
        self.remaining = remaining
        super().__init__(f"Please wait {remaining:.1f}s before starting another operation.")


class StorageUnavailable(SnapbackError):
    """Raised when the index or storage root cannot be read or written."""
