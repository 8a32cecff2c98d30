import re
from functools import lru_cache
from pathlib import Path

# Snapshot storage and bookkeeping files are never captured or deleted.
ALWAYS_IGNORE = (".snapback", ".snapbackconfig")

IGNORE_FILE = ".snapbackignore"


def load_ignore_file(project_path):
    """Load additional exclude patterns from .snapbackignore."""
    ignore_file = Path(project_path) / IGNORE_FILE
    if not ignore_file.exists():
        return []
    patterns = []
    for line in ignore_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


def resolve_patterns(project_path, configured=(), storage_dir=None):
    """Ordered, de-duplicated exclude patterns for a project.

    Configured patterns come first, then .snapbackignore, then the
    always-ignored bookkeeping names (plus the storage directory when it
    lives inside the project).
    """
    patterns = list(configured) + load_ignore_file(project_path)
    return merge_patterns(patterns, bookkeeping_patterns(project_path, storage_dir))


def bookkeeping_patterns(project_path, storage_dir=None):
    """Names that must survive every restore: config, storage, and the storage dir's own path."""
    patterns = list(ALWAYS_IGNORE)
    if storage_dir is not None:
        try:
            rel = Path(storage_dir).resolve().relative_to(Path(project_path).resolve())
        except ValueError:
            rel = None
        if rel is not None and rel.parts:
            return merge_patterns(patterns, [rel.as_posix()])
    return patterns


def merge_patterns(*groups):
    """Concatenate pattern lists, keeping the first occurrence of each."""
    seen = set()
    result = []
    for group in groups:
        for p in group:
            if p not in seen:
                seen.add(p)
                result.append(p)
    return result


def _split(path):
    return [part for part in str(path).replace("\\", "/").split("/") if part and part != "."]


@lru_cache(maxsize=1024)
def _compile(segment):
    # Only "*" is special: any run of characters, everything else literal.
    return re.compile(".*".join(re.escape(piece) for piece in segment.split("*")), re.DOTALL)


def _segment_matches(pattern_segment, name):
    if pattern_segment == name:
        return True
    if "*" not in pattern_segment:
        return False
    return _compile(pattern_segment).fullmatch(name) is not None


def is_excluded(rel_path, patterns):
    """Check if a relative path (or a bare entry name) matches any exclude pattern.

    A pattern matches when it equals one path segment or glob-matches it.
    Patterns containing "/" must match a contiguous run of segments.
    Leading slashes are dropped, so a pattern never names an absolute path.
    """
    parts = _split(rel_path)
    if not parts:
        return False
    for pattern in patterns:
        pattern_parts = _split(pattern)
        if not pattern_parts:
            continue
        width = len(pattern_parts)
        for start in range(len(parts) - width + 1):
            if all(
                _segment_matches(pattern_parts[i], parts[start + i])
                for i in range(width)
            ):
                return True
    return False
