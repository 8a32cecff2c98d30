from snapback.log import write_log


def enforce_retention(store, max_snapshots, project=None):
    """Delete the oldest snapshots until at most max_snapshots remain.

    Oldest means earliest in the index (insertion order). max_snapshots of
    0 or less disables eviction. Returns the evicted IDs.
    """
    if not max_snapshots or max_snapshots < 1:
        return []
    records = store.list()
    excess = len(records) - max_snapshots
    if excess <= 0:
        return []

    evicted = []
    for record in records[:excess]:
        content_removed = store.delete(record["id"])
        evicted.append(record["id"])
        write_log({
            "event": "evict",
            "snapshot": record["id"],
            "label": record.get("label", ""),
            "project": project or record.get("sourceRootHint", ""),
            "result": "deleted" if content_removed else "record-only",
        })
    return evicted
