"""
In-memory stand-ins for the transport and clocks used by driver tests.
"""

from __future__ import annotations

from typing import List, Optional

from services.probe_service.transport import ConnectError, ReadError


class FakeClock:
    """Monotonic nanosecond clock that advances `step` on every read."""

    def __init__(self, step: int = 2_000_000, start: int = 0) -> None:
        self.step = step
        self.now = start

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


class FakeConnection:
    def __init__(self, send_error=None, read_error=None, response: str = "END") -> None:
        self.send_error = send_error
        self.read_error = read_error
        self.response = response
        self.sent: List[str] = []
        self.release_calls = 0

    def send_line(self, text: str, timeout: Optional[float] = None) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(text)

    def read_line(self, timeout: Optional[float] = None) -> str:
        if self.read_error is not None:
            raise self.read_error
        return self.response

    def release(self) -> None:
        self.release_calls += 1

    def __enter__(self) -> "FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class FakeTransport:
    """
    Hands out FakeConnections. `fail_every` makes every Nth acquire
    raise ConnectError; `connection_factory` customises the rest.
    """

    def __init__(self, fail_every: int = 0, connection_factory=None) -> None:
        self.fail_every = fail_every
        self.connection_factory = connection_factory or FakeConnection
        self.acquire_calls = 0
        self.connections: List[FakeConnection] = []

    def acquire(self, address, timeout=None):
        self.acquire_calls += 1
        if self.fail_every and self.acquire_calls % self.fail_every == 0:
            raise ConnectError(f"refused ({self.acquire_calls})")
        conn = self.connection_factory()
        self.connections.append(conn)
        return conn


def failing_reads(error: Exception = None):
    """Connection factory whose read_line always raises."""
    return lambda: FakeConnection(read_error=error or ReadError("peer closed"))
