"""Tests for file tailing sessions and the tail manager."""

import os
import threading
import time

import pytest

from logparser.errors import FileOpenError
from logparser.tail import TailLine, TailManager, TailSession

POLL = 0.05


class _Collector:
    """Drains a session's events on a background thread."""

    def __init__(self, session: TailSession):
        self.events: list[TailLine] = []
        self._thread = threading.Thread(target=self._run, args=(session,), daemon=True)
        self._thread.start()

    def _run(self, session):
        for event in session.lines():
            self.events.append(event)

    @property
    def texts(self) -> list[str]:
        return [e.text for e in self.events if e.error is None]

    @property
    def finished(self) -> bool:
        return not self._thread.is_alive()

    def join(self, timeout: float = 2.0):
        self._thread.join(timeout)


def _append(path, text: str):
    with open(path, "a") as fh:
        fh.write(text)
        fh.flush()


class TestTailSession:
    def test_from_beginning_reads_existing_lines(self, tmp_path, wait_until):
        f = tmp_path / "app.log"
        f.write_text("one\ntwo\n")
        session = TailSession(str(f), from_beginning=True, poll_interval=POLL)
        c = _Collector(session)
        try:
            assert wait_until(lambda: c.texts == ["one", "two"])
        finally:
            session.cleanup()

    def test_seeks_to_end_by_default(self, tmp_path, wait_until):
        f = tmp_path / "app.log"
        f.write_text("existing line\n")
        session = TailSession(str(f), poll_interval=POLL)
        c = _Collector(session)
        try:
            _append(f, "new line 1\nnew line 2\n")
            assert wait_until(lambda: c.texts == ["new line 1", "new line 2"])
        finally:
            session.cleanup()
        assert "existing line" not in c.texts

    def test_partial_line_waits_for_newline(self, tmp_path, wait_until):
        f = tmp_path / "app.log"
        f.write_text("")
        session = TailSession(str(f), poll_interval=POLL)
        c = _Collector(session)
        try:
            _append(f, "hello wo")
            assert not wait_until(lambda: c.texts, timeout=0.3)
            _append(f, "rld\n")
            assert wait_until(lambda: c.texts == ["hello world"])
        finally:
            session.cleanup()

    def test_strips_crlf_and_keeps_empty_lines(self, tmp_path, wait_until):
        f = tmp_path / "app.log"
        f.write_bytes(b"a\r\n\r\nb\n")
        session = TailSession(str(f), from_beginning=True, poll_interval=POLL)
        c = _Collector(session)
        try:
            assert wait_until(lambda: c.texts == ["a", "", "b"])
        finally:
            session.cleanup()

    def test_truncation_rewinds(self, tmp_path, wait_until):
        f = tmp_path / "app.log"
        f.write_text("a fairly long original line\n")
        session = TailSession(str(f), from_beginning=True, poll_interval=POLL)
        c = _Collector(session)
        try:
            assert wait_until(lambda: c.texts == ["a fairly long original line"])
            with open(f, "w") as fh:
                fh.write("short\n")
            assert wait_until(lambda: "short" in c.texts)
        finally:
            session.cleanup()

    def test_rotation_reopens(self, tmp_path, wait_until):
        f = tmp_path / "app.log"
        f.write_text("")
        session = TailSession(str(f), poll_interval=POLL)
        c = _Collector(session)
        try:
            _append(f, "before rotation\n")
            assert wait_until(lambda: "before rotation" in c.texts)
            os.rename(f, tmp_path / "app.log.1")
            f.write_text("after rotation\n")
            assert wait_until(lambda: "after rotation" in c.texts)
        finally:
            session.cleanup()
        assert c.texts == ["before rotation", "after rotation"]

    def test_stop_ends_stream_and_cleanup_closes(self, tmp_path, wait_until):
        f = tmp_path / "app.log"
        f.write_text("")
        session = TailSession(str(f), poll_interval=POLL)
        c = _Collector(session)
        assert not session.stopped
        assert not session.closed

        session.stop()
        c.join()
        assert c.finished
        assert session.stopped
        assert not session.closed

        session.cleanup()
        assert session.closed

    def test_stop_and_cleanup_are_idempotent(self, tmp_path):
        f = tmp_path / "app.log"
        f.write_text("")
        session = TailSession(str(f), poll_interval=POLL)
        session.cleanup()
        session.stop()
        session.cleanup()
        assert session.stopped
        assert session.closed

    def test_backlog_is_bounded_without_consumer(self, tmp_path, wait_until):
        f = tmp_path / "big.log"
        f.write_text("".join(f"line {i}\n" for i in range(5000)))
        session = TailSession(str(f), from_beginning=True, poll_interval=POLL, max_pending=100)
        try:
            assert wait_until(lambda: session._events.qsize() == 100)
            time.sleep(0.3)
            assert session._events.qsize() <= 100
        finally:
            session.cleanup()
        assert session.stopped

    def test_full_backlog_drains_after_stop(self, tmp_path, wait_until):
        f = tmp_path / "big.log"
        f.write_text("".join(f"line {i}\n" for i in range(500)))
        session = TailSession(str(f), from_beginning=True, poll_interval=POLL, max_pending=10)
        assert wait_until(lambda: session._events.qsize() == 10)
        session.stop()

        c = _Collector(session)
        c.join()
        assert c.finished
        assert c.texts == [f"line {i}" for i in range(10)]
        session.cleanup()

    def test_small_backlog_delivers_everything_in_order(self, tmp_path, wait_until):
        f = tmp_path / "big.log"
        f.write_text("".join(f"line {i}\n" for i in range(500)))
        session = TailSession(str(f), from_beginning=True, poll_interval=POLL, max_pending=5)
        c = _Collector(session)
        try:
            assert wait_until(lambda: len(c.texts) == 500, timeout=5)
            assert c.texts == [f"line {i}" for i in range(500)]
        finally:
            session.cleanup()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            TailSession(str(tmp_path / "missing.log"))

    def test_directory_raises(self, tmp_path):
        with pytest.raises(OSError):
            TailSession(str(tmp_path))


class TestTailManager:
    def test_opens_one_session_per_file(self, tmp_path):
        for name in ("a.log", "b.log"):
            (tmp_path / name).write_text("")
        manager = TailManager(poll_interval=POLL)
        sessions, error = manager.start([str(tmp_path / "*.log")])
        try:
            assert error is None
            assert sorted(os.path.basename(s.path) for s in sessions) == ["a.log", "b.log"]
            assert manager.sessions == sessions
        finally:
            manager.stop_all()

    def test_duplicate_matches_opened_once(self, tmp_path):
        f = tmp_path / "a.log"
        f.write_text("")
        manager = TailManager(poll_interval=POLL)
        sessions, error = manager.start([str(f), str(tmp_path / "*.log")])
        try:
            assert error is None
            assert len(sessions) == 1
        finally:
            manager.stop_all()

    def test_super_asterisk_skips_directories(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "a.log").write_text("")
        (tmp_path / "b.log").write_text("")
        manager = TailManager(poll_interval=POLL)
        sessions, error = manager.start([str(tmp_path) + os.sep + "**"])
        try:
            assert error is None
            assert sorted(s.path for s in sessions) == [
                str(tmp_path / "b.log"),
                str(tmp_path / "sub" / "a.log"),
            ]
        finally:
            manager.stop_all()

    def test_partial_failure_keeps_good_sessions(self, tmp_path):
        good = tmp_path / "good.log"
        good.write_text("")
        bad = tmp_path / "subdir"
        bad.mkdir()
        manager = TailManager(poll_interval=POLL)
        sessions, error = manager.start([str(bad), str(good)])
        try:
            assert isinstance(error, FileOpenError)
            assert list(error.failures) == [str(bad)]
            assert error.opened == [str(good)]
            assert str(error)
            assert [s.path for s in sessions] == [str(good)]
            assert not sessions[0].stopped
        finally:
            manager.stop_all()

    def test_bad_glob_is_skipped(self, tmp_path, caplog):
        f = tmp_path / "a.log"
        f.write_text("")
        manager = TailManager(poll_interval=POLL)
        sessions, error = manager.start([str(tmp_path / "[bad"), str(f)])
        try:
            assert error is None
            assert len(sessions) == 1
            assert "failed to compile" in caplog.text
        finally:
            manager.stop_all()

    def test_no_matches(self, tmp_path):
        manager = TailManager(poll_interval=POLL)
        sessions, error = manager.start([str(tmp_path / "*.log")])
        assert sessions == []
        assert error is None
        manager.stop_all()

    def test_stop_all_stops_and_closes_everything(self, tmp_path):
        for name in ("a.log", "b.log", "c.log"):
            (tmp_path / name).write_text("")
        manager = TailManager(poll_interval=POLL)
        sessions, _ = manager.start([str(tmp_path / "*.log")])
        manager.stop_all()
        assert len(sessions) == 3
        assert all(s.stopped and s.closed for s in sessions)

    def test_events_wake_sessions(self, tmp_path, wait_until):
        f = tmp_path / "a.log"
        f.write_text("")
        # Polling alone would take 10s; the write must wake the session
        manager = TailManager(poll_interval=10.0)
        sessions, _ = manager.start([str(f)])
        c = _Collector(sessions[0])
        try:
            _append(f, "woken\n")
            assert wait_until(lambda: c.texts == ["woken"], timeout=3.0)
        finally:
            manager.stop_all()
