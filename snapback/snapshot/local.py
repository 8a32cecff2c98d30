import json
import os
import re
import threading
from pathlib import Path

from snapback.errors import SnapshotNotFound, StorageUnavailable
from snapback.log import warn
from snapback.snapshot.base import SnapshotStore
from snapback.transfer import remove_with_retry

INDEX_NAME = "index.json"

# IDs double as directory names under the storage root.
_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


def make_record(snapshot_id, label, created_at, description=None, tags=(), source_root=None):
    """Build an index record dict."""
    record = {
        "id": snapshot_id,
        "label": label,
        "createdAt": int(created_at),
        "tags": sorted(set(tags)),
        "isIncremental": False,
    }
    if description:
        record["description"] = description
    if source_root is not None:
        record["sourceRootHint"] = str(source_root)
    return record


class LocalSnapshotStore(SnapshotStore):
    """Snapshots as plain directory copies next to a JSON index.

        <storage_root>/index.json
        <storage_root>/<id>/.manifest.json
        <storage_root>/<id>/<relative file tree>

    The index is read and rewritten in full on every mutation.
    """

    def __init__(self, storage_root):
        self.storage_root = Path(storage_root)
        self.index_path = self.storage_root / INDEX_NAME
        self._lock = threading.Lock()
        self._records = None

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def create_entry(self, record):
        content_dir = self.allocate(record["id"])
        self.append(record)
        return content_dir

    def allocate(self, snapshot_id):
        """Create the empty content directory for a snapshot ID."""
        content_dir = self.content_path(snapshot_id)
        try:
            content_dir.mkdir(parents=True, exist_ok=False)
        except FileExistsError:
            raise StorageUnavailable(f"Snapshot directory already exists: {content_dir}")
        except OSError as e:
            raise StorageUnavailable(f"Cannot create snapshot directory {content_dir}: {e}") from e
        return content_dir

    def append(self, record):
        """Add a record to the index and flush it to disk."""
        with self._lock:
            records = self._read_index()
            if any(r["id"] == record["id"] for r in records):
                raise StorageUnavailable(f"Snapshot {record['id']} is already indexed")
            records.append(dict(record))
            self._write_index(records)
        return record

    def list(self):
        with self._lock:
            if self._records is None:
                self._records = self._read_index()
            return [dict(r) for r in self._records]

    def get(self, snapshot_id):
        for record in self.list():
            if record["id"] == snapshot_id:
                return record
        raise SnapshotNotFound(snapshot_id, "no index record")

    def exists(self, snapshot_id):
        return any(r["id"] == snapshot_id for r in self.list())

    def content_path(self, snapshot_id):
        if not _SAFE_ID.match(snapshot_id or ""):
            raise SnapshotNotFound(snapshot_id, "invalid snapshot id")
        return self.storage_root / snapshot_id

    def delete(self, snapshot_id):
        """Remove content then the record. Returns False if the content could not be removed.

        The record is dropped either way so the index never keeps pointing
        at a half-deleted snapshot.
        """
        self.get(snapshot_id)
        content_dir = self.content_path(snapshot_id)
        removed = True
        if content_dir.exists():
            removed = remove_with_retry(content_dir)
            if not removed:
                warn(f"Could not remove snapshot content at {content_dir}; dropping the record anyway")

        with self._lock:
            records = [r for r in self._read_index() if r["id"] != snapshot_id]
            self._write_index(records)
        return removed

    def rename(self, snapshot_id, new_label):
        new_label = (new_label or "").strip()
        if not new_label:
            raise ValueError("Snapshot label cannot be empty")
        with self._lock:
            records = self._read_index()
            for record in records:
                if record["id"] == snapshot_id:
                    record["label"] = new_label
                    self._write_index(records)
                    return dict(record)
        raise SnapshotNotFound(snapshot_id, "no index record")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _read_index(self):
        if not self.index_path.exists():
            self._records = []
            return []
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageUnavailable(f"Cannot read snapshot index {self.index_path}: {e}") from e
        if not isinstance(data, list) or not all(isinstance(r, dict) and "id" in r for r in data):
            raise StorageUnavailable(f"Snapshot index {self.index_path} is not a list of records")
        self._records = data
        return [dict(r) for r in data]

    def _write_index(self, records):
        tmp = self.index_path.with_name(INDEX_NAME + ".tmp")
        try:
            self.storage_root.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
            os.replace(tmp, self.index_path)
        except OSError as e:
            raise StorageUnavailable(f"Cannot write snapshot index {self.index_path}: {e}") from e
        self._records = [dict(r) for r in records]
