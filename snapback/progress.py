"""Progress events emitted by capture and restore.

Events are plain dicts:

    {"phase": "copy", "event": "progress", "done": 40, "total": 100,
     "failed": 1, "percent": 40.0, "message": "Restored 40 of 100 files"}

event is "start" when a phase begins, "progress" while it runs and "end"
when it finishes, so callers (and tests) can observe phase ordering
independently of timing. Phases: scan, capture, manifest, delete, copy.
"""

from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

# Emit a progress event every N files; start/end events are always sent.
REPORT_EVERY = 10


class ProgressEmitter:
    """Wraps an optional callback and throttles per-file events."""

    def __init__(self, callback=None):
        self._callback = callback
        self.history = []

    def _send(self, event):
        self.history.append((event["phase"], event["event"]))
        if self._callback is not None:
            self._callback(event)

    def start(self, phase, total=0, message=None):
        self._send(_event(phase, "start", 0, total, 0, message or f"{phase}: {total} files"))

    def advance(self, phase, done, total, failed=0, message=None, force=False):
        if force or done % REPORT_EVERY == 0 or done == total:
            self._send(_event(phase, "progress", done, total, failed, message))

    def end(self, phase, done, total, failed=0, message=None):
        self._send(_event(phase, "end", done, total, failed, message))


def _event(phase, kind, done, total, failed, message):
    percent = 100.0 if not total else round(done * 100.0 / total, 1)
    return {
        "phase": phase,
        "event": kind,
        "done": done,
        "total": total,
        "failed": failed,
        "percent": percent,
        "message": message or f"{phase}: {done}/{total} ({failed} failed)",
    }


class ConsoleProgress:
    """Renders progress events as rich progress bars, one task per phase.

        with ConsoleProgress(console) as progress:
            capture(tracked, "label", on_progress=progress.feed)
    """

    def __init__(self, console):
        self._progress = Progress(
            TextColumn("[bold]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[dim]{task.fields[detail]}"),
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._tasks = {}

    def __enter__(self):
        self._progress.start()
        return self

    def __exit__(self, *exc):
        self._progress.stop()
        return False

    def feed(self, event):
        phase = event["phase"]
        task = self._tasks.get(phase)
        if task is None:
            task = self._progress.add_task(phase, total=event["total"] or None, detail="")
            self._tasks[phase] = task
        self._progress.update(
            task,
            completed=event["done"],
            total=event["total"] or None,
            detail=event["message"],
        )
