from abc import ABC, abstractmethod


class SnapshotStore(ABC):
    """Base interface for snapshot storage.

    The store owns the index and the content directories. Capture and
    restore never write either directly.
    """

    @abstractmethod
    def create_entry(self, record):
        """Create the content directory and index the record. Returns the directory."""
        pass

    @abstractmethod
    def list(self):
        """All snapshot records in insertion order."""
        pass

    @abstractmethod
    def get(self, snapshot_id):
        """One record by ID. Raises SnapshotNotFound."""
        pass

    @abstractmethod
    def delete(self, snapshot_id):
        """Delete a snapshot's content and record."""
        pass

    @abstractmethod
    def rename(self, snapshot_id, new_label):
        """Change a snapshot's label."""
        pass
