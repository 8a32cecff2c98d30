"""Audit logging and warnings.

Appends structured JSON entries to ~/.snapback/logs.jsonl.
Each entry records a terminal outcome (capture, restore, delete) with
timestamp, snapshot ID, project path and file counts.

Warnings raised while walking or transferring files are printed to stderr
and never interrupt the operation that produced them.
"""

import json
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape

LOGS_FILE = Path.home() / ".snapback" / "logs.jsonl"

_stderr = Console(stderr=True)


def write_log(entry):
    """Append an audit log entry."""
    LOGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    entry["timestamp"] = datetime.now().isoformat()
    with open(LOGS_FILE, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry) + "\n")


def read_logs(project=None):
    """Return audit entries oldest-first, optionally filtered to one project."""
    if not LOGS_FILE.exists():
        return []
    entries = []
    for line in LOGS_FILE.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if project and entry.get("project") != project:
            continue
        entries.append(entry)
    return entries


def warn(message):
    """Print a non-fatal warning to stderr."""
    _stderr.print(f"[yellow]Warning: {escape(str(message))}[/yellow]", highlight=False)
