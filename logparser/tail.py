"""File tailing: follow appended lines across rotation and truncation.

Each TailSession owns one open file and one reader thread that pushes
TailLine events onto a queue. The reader polls at ``poll_interval`` and is
woken early by watchdog filesystem events routed through TailManager.
"""

import logging
import os
import queue
import threading
from dataclasses import dataclass

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from logparser.errors import CompileError, FileOpenError, TailReadError
from logparser.globpath import GlobPath

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.25
READ_SIZE = 64 * 1024
MAX_PENDING_LINES = 1000
_QUEUE_WAIT = 0.1

_END = object()


@dataclass(frozen=True)
class TailLine:
    text: str = ""
    error: Exception | None = None


class TailSession:
    """Follows one file. Opening happens in the constructor and raises OSError.

    At most *max_pending* events wait for the consumer; the reader blocks
    when the queue is full.
    """

    def __init__(self, path: str, from_beginning: bool = False,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 max_pending: int = MAX_PENDING_LINES):
        self.path = path
        self._poll_interval = poll_interval
        self._events: queue.Queue = queue.Queue(maxsize=max_pending)
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._done = threading.Event()
        self._file = None
        self._inode = None
        self._partial = b""

        self._open(seek_end=not from_beginning)
        logger.debug("Opened %s at offset %d", path, self._file.tell())

        self._thread = threading.Thread(target=self._run, name=f"tail:{path}", daemon=True)
        self._thread.start()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set() and not self._thread.is_alive()

    @property
    def closed(self) -> bool:
        return self._file is None

    def _open(self, seek_end: bool = False):
        fh = open(self.path, "rb")
        try:
            inode = os.fstat(fh.fileno()).st_ino
            if seek_end:
                fh.seek(0, os.SEEK_END)
        except OSError:
            fh.close()
            raise
        old, self._file, self._inode = self._file, fh, inode
        if old is not None:
            old.close()

    def _put(self, event: TailLine) -> bool:
        """Queue *event*, waiting for room. False if stopped while waiting."""
        while not self._stop.is_set():
            try:
                self._events.put(event, timeout=_QUEUE_WAIT)
                return True
            except queue.Full:
                continue
        return False

    def _emit(self, raw: bytes) -> bool:
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        return self._put(TailLine(text=raw.decode("utf-8", errors="replace")))

    def _read_available(self) -> bool:
        """Read to EOF and queue complete lines. Returns False if nothing was read."""
        data = self._file.read(READ_SIZE)
        if not data:
            return False
        lines = (self._partial + data).split(b"\n")
        self._partial = lines.pop()
        for raw in lines:
            if not self._emit(raw):
                break
        return True

    def _check_reopen(self):
        """Reopen on rotation (inode changed) or rewind on truncation."""
        try:
            stat = os.stat(self.path)
        except FileNotFoundError:
            # Rotated away and not recreated yet
            return

        if stat.st_ino != self._inode:
            logger.info("File rotation detected for %s", self.path)
            if self._partial:
                self._emit(self._partial)
                self._partial = b""
            self._open(seek_end=False)
        elif stat.st_size < self._file.tell():
            logger.info("File truncation detected for %s", self.path)
            self._file.seek(0)
            self._partial = b""

    def _run(self):
        try:
            while not self._stop.is_set():
                self._wake.clear()
                try:
                    got = self._read_available()
                    if not got:
                        self._check_reopen()
                except OSError as e:
                    self._put(TailLine(error=TailReadError(f"{self.path}: {e}")))
                    got = False
                if not got:
                    self._wake.wait(self._poll_interval)
        finally:
            self._done.set()
            try:
                self._events.put_nowait(_END)
            except queue.Full:
                # lines() notices _done once the backlog is drained
                pass

    def notify(self):
        """Wake the reader; called on filesystem events for this file."""
        self._wake.set()

    def lines(self):
        """Yield TailLine events until the session is stopped."""
        while True:
            try:
                event = self._events.get(timeout=_QUEUE_WAIT)
            except queue.Empty:
                if self._done.is_set() and self._events.empty():
                    return
                continue
            if event is _END:
                return
            yield event

    def stop(self):
        """Stop following and wait for the reader thread to exit."""
        self._stop.set()
        self._wake.set()
        if self._thread is not threading.current_thread():
            self._thread.join()

    def cleanup(self):
        """Release the file handle. Stops the session first if needed."""
        self.stop()
        if self._file is not None:
            self._file.close()
            self._file = None


class _WakeHandler(FileSystemEventHandler):
    def __init__(self, manager: "TailManager"):
        super().__init__()
        self._manager = manager

    def on_any_event(self, event):
        if event.is_directory:
            return
        for path in (event.src_path, getattr(event, "dest_path", "")):
            if path:
                self._manager.notify(os.fsdecode(path))


class TailManager:
    """Expands file globs and keeps one TailSession per resolved file."""

    def __init__(self, poll_interval: float = DEFAULT_POLL_INTERVAL, watch_events: bool = True,
                 max_pending: int = MAX_PENDING_LINES):
        self._poll_interval = poll_interval
        self._max_pending = max_pending
        self._watch_events = watch_events
        self._sessions: dict[str, TailSession] = {}
        self._observer = None

    @property
    def sessions(self) -> list[TailSession]:
        return list(self._sessions.values())

    def notify(self, path: str):
        session = self._sessions.get(os.path.abspath(path))
        if session is not None:
            session.notify()

    def start(self, file_patterns: list[str], from_beginning: bool = False):
        """Open a session for every file the patterns resolve to.

        Every path is attempted. Returns ``(new_sessions, error)`` where
        *error* is a FileOpenError covering the paths that failed, or None.
        """
        opened: list[TailSession] = []
        failures: dict[str, Exception] = {}

        for pattern in file_patterns:
            try:
                paths = GlobPath(pattern).match()
            except CompileError as e:
                logger.error("Glob %s failed to compile, %s", pattern, e)
                continue

            for path in paths:
                key = os.path.abspath(path)
                if key in self._sessions or key in failures:
                    continue
                try:
                    session = TailSession(path, from_beginning, self._poll_interval, self._max_pending)
                except OSError as e:
                    logger.error("Cannot tail %s: %s", path, e)
                    failures[key] = e
                    continue
                self._sessions[key] = session
                opened.append(session)
                logger.info("Tailing %s", path)

        if opened and self._watch_events:
            self._start_observer()

        error = None
        if failures:
            error = FileOpenError(failures, opened=[s.path for s in opened])
        return opened, error

    def _start_observer(self):
        if self._observer is None:
            self._observer = Observer()
            self._observer.start()
        handler = _WakeHandler(self)
        for directory in sorted({os.path.dirname(key) for key in self._sessions}):
            try:
                self._observer.schedule(handler, directory, recursive=False)
            except OSError as e:
                logger.warning("Cannot watch %s for events, polling only: %s", directory, e)

    def stop_all(self):
        """Stop and clean up every session, then the event observer."""
        for session in self._sessions.values():
            session.stop()
            session.cleanup()
            logger.debug("Stopped tailing %s", session.path)
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
