"""Shared pytest fixtures for the logparser test suite."""

import time

import pytest

APACHE_COMBINED_LINE = (
    '127.0.0.1 - frank [10/Oct/2000:13:55:36 -0700] "GET /apache_pb.gif HTTP/1.0" '
    '200 2326 "http://www.example.com/start.html" "Mozilla/4.08 [en] (Win98; I ;Nav)"'
)


@pytest.fixture()
def apache_line() -> str:
    return APACHE_COMBINED_LINE


@pytest.fixture()
def wait_until():
    """Poll *predicate* until it is true or *timeout* seconds pass."""

    def _wait(predicate, timeout: float = 3.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
