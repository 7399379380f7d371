"""Accumulators: sinks for parsed measurements.

Every accumulator is safe to call from many dispatcher threads at once.
QueueAccumulator only enqueues; a single MeasurementWriter thread drains the
queue and owns the output files.
"""

import json
import logging
import os
import queue
import threading
import time
from datetime import datetime, timezone
from threading import Thread
from typing import Protocol

from logparser.models import Measurement, measurement_to_dict

logger = logging.getLogger(__name__)


class Accumulator(Protocol):
    def add_fields(self, name: str, fields: dict, tags: dict,
                   timestamp: datetime | None = None) -> None: ...


def _build(name, fields, tags, timestamp) -> Measurement:
    return Measurement(
        name=name,
        tags=dict(tags or {}),
        fields=dict(fields or {}),
        timestamp=timestamp or datetime.now(timezone.utc),
    )


class MemoryAccumulator:
    """Keeps measurements in memory behind a lock."""

    def __init__(self):
        self._cond = threading.Condition()
        self._measurements: list[Measurement] = []

    def add_fields(self, name, fields, tags, timestamp=None):
        with self._cond:
            self._measurements.append(_build(name, fields, tags, timestamp))
            self._cond.notify_all()

    @property
    def measurements(self) -> list[Measurement]:
        with self._cond:
            return list(self._measurements)

    def __len__(self):
        with self._cond:
            return len(self._measurements)

    def wait_for(self, count: int, timeout: float | None = None) -> bool:
        """Block until at least *count* measurements arrived. False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: len(self._measurements) >= count, timeout)


class QueueAccumulator:
    """Fan-in: enqueue measurements for a single consumer thread."""

    def __init__(self, q: queue.Queue | None = None):
        self.queue = q if q is not None else queue.Queue()

    def add_fields(self, name, fields, tags, timestamp=None):
        self.queue.put(_build(name, fields, tags, timestamp))


class MeasurementWriter(Thread):
    """Consumer thread that drains the queue and flushes JSON batch files."""

    def __init__(self, q: queue.Queue, output_dir: str, batch_size: int = 50,
                 flush_interval: float = 5.0):
        super().__init__(daemon=True, name="measurement-writer")
        self._queue = q
        self._output_dir = output_dir
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._buffer: list[dict] = []
        self._last_flush = time.time()
        self._running = threading.Event()
        self._running.set()
        self._batch_count = 0
        self._total_entries = 0

    @property
    def total_entries(self) -> int:
        return self._total_entries

    @property
    def batch_count(self) -> int:
        return self._batch_count

    def _flush(self):
        """Write buffered measurements as a JSON array file."""
        if not self._buffer:
            return

        os.makedirs(self._output_dir, exist_ok=True)
        self._batch_count += 1
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"measurements_{ts}_{self._batch_count:03d}.json"
        filepath = os.path.join(self._output_dir, filename)
        tmp_path = filepath + ".tmp"

        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._buffer, f, indent=2)
        os.replace(tmp_path, filepath)

        count = len(self._buffer)
        self._total_entries += count
        logger.info("Flushed %d measurements to %s (total: %d)", count, filename, self._total_entries)
        self._buffer.clear()
        self._last_flush = time.time()

    def _add(self, m: Measurement):
        self._buffer.append(measurement_to_dict(m))
        if len(self._buffer) >= self._batch_size:
            self._flush()

    def run(self):
        while self._running.is_set():
            try:
                m = self._queue.get(timeout=0.5)
            except queue.Empty:
                if self._buffer and (time.time() - self._last_flush) >= self._flush_interval:
                    self._flush()
                continue
            self._add(m)

    def stop(self):
        """Stop the thread, drain whatever is left in the queue and flush."""
        self._running.clear()
        if self.is_alive() and self is not threading.current_thread():
            self.join()
        while True:
            try:
                self._add(self._queue.get_nowait())
            except queue.Empty:
                break
        self._flush()
