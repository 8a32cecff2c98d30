"""Per-snapshot manifest stored inside the content directory.

The manifest pins the exclude patterns used at capture time. Restore reads
them back so that files the capture deliberately skipped are never deleted
from the live tree.
"""

import json

from snapback.log import warn

MANIFEST_NAME = ".manifest.json"


def write_manifest(content_dir, record, exclude_patterns, files_copied=0, files_failed=0):
    """Write the manifest after all file copies of a capture were attempted."""
    manifest = {
        "id": record["id"],
        "label": record["label"],
        "createdAt": record["createdAt"],
        "tags": list(record.get("tags", [])),
        "sourceRootHint": record.get("sourceRootHint", ""),
        "excludePatterns": list(exclude_patterns),
        "filesCopied": files_copied,
        "filesFailed": files_failed,
    }
    if record.get("description"):
        manifest["description"] = record["description"]
    path = content_dir / MANIFEST_NAME
    path.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    return path


def read_manifest(content_dir):
    """Load a manifest, or None when it is missing or unreadable."""
    path = content_dir / MANIFEST_NAME
    if not path.exists():
        warn(f"No manifest found at {path}")
        return None
    try:
        manifest = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        warn(f"Unreadable manifest {path}: {e}")
        return None
    if not isinstance(manifest, dict):
        warn(f"Manifest {path} is not a JSON object")
        return None
    return manifest


def manifest_patterns(manifest):
    """Exclude patterns pinned by a manifest, or None if it carries no usable list."""
    if not manifest:
        return None
    patterns = manifest.get("excludePatterns")
    if isinstance(patterns, list) and all(isinstance(p, str) for p in patterns):
        return patterns
    return None
