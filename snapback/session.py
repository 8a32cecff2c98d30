import threading
import time
from contextlib import contextmanager
from pathlib import Path

from snapback.config import DEFAULT_CONFIG, validate_config
from snapback.errors import AlreadyInProgress, Cooldown
from snapback.ignore import bookkeeping_patterns, resolve_patterns
from snapback.snapshot import create_snapshot_store

IDLE = "idle"
CAPTURING = "capturing"
RESTORING = "restoring"


class TrackedRoot:
    """A directory under snapshot control, plus its in-flight operation state.

    One capture or restore at a time per tracked root: a second request while
    one is running is rejected, not queued. A minimum cooldown between
    consecutive operations keeps a UI from re-triggering them back to back.
    This is an in-process guard only, not a file lock.

        tracked = TrackedRoot("~/projects/app")
        result = capture(tracked, "before refactor")
        restore(tracked, result["snapshot"]["id"])
    """

    def __init__(self, root, config=None, store=None, cooldown=None, clock=time.monotonic):
        self.root = Path(root).expanduser().resolve()
        self.config = validate_config({**DEFAULT_CONFIG, **(config or {})})
        self.store = store or create_snapshot_store(self.root, self.config)
        self.cooldown = self.config["cooldown_seconds"] if cooldown is None else cooldown
        self._clock = clock
        self._lock = threading.Lock()
        self._state = IDLE
        self._last_started = None

    @property
    def state(self):
        return self._state

    def exclude_patterns(self, extra=None):
        """Patterns for a fresh capture: config, .snapbackignore, bookkeeping names."""
        configured = self.config["exclude_patterns"] if extra is None else extra
        return resolve_patterns(self.root, configured, storage_dir=self._storage_dir())

    def protected_patterns(self):
        """Bookkeeping paths a restore must never delete, whatever the manifest says."""
        return bookkeeping_patterns(self.root, self._storage_dir())

    def _storage_dir(self):
        return getattr(self.store, "storage_root", None)

    @contextmanager
    def operation(self, state):
        """Hold the in-flight flag for the duration of one capture or restore."""
        with self._lock:
            if self._state != IDLE:
                raise AlreadyInProgress(self.root, self._state)
            now = self._clock()
            if self._last_started is not None and self.cooldown > 0:
                elapsed = now - self._last_started
                if elapsed < self.cooldown:
                    raise Cooldown(self.cooldown - elapsed)
            self._state = state
            self._last_started = now
        try:
            yield self
        finally:
            with self._lock:
                self._state = IDLE
