"""Thread-safe run counters for the log parser."""

import threading
import time
from collections import defaultdict

COUNTERS = ("lines_read", "measurements", "parse_errors", "read_errors")


class Metrics:
    def __init__(self):
        self._lock = threading.Lock()
        self._counts: dict[str, int] = defaultdict(int)
        self._start_time = time.monotonic()

    def increment(self, counter: str, n: int = 1):
        with self._lock:
            self._counts[counter] += n

    def get(self, counter: str) -> int:
        with self._lock:
            return self._counts.get(counter, 0)

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all counters."""
        with self._lock:
            elapsed = time.monotonic() - self._start_time
            counts = dict(self._counts)

        snap = {name: counts.pop(name, 0) for name in COUNTERS}
        snap.update(counts)
        snap["elapsed_seconds"] = round(elapsed, 2)
        snap["lines_per_second"] = round(snap["lines_read"] / elapsed, 2) if elapsed > 0 else 0.0
        return snap
