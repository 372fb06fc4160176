"""
Raw TCP transport for the memcached text protocol.

Architecture decisions:
  1. One fresh connection per probe cycle. Connection setup is one of
     the two phases we measure, so there is no pool.
  2. The only protocol knowledge here is "a request is one CRLF line,
     a response ends at the first LF". Nothing is parsed.
  3. Every socket-level failure is translated into the transport's own
     error taxonomy, chained to the original OSError, so the driver
     never has to know about socket exceptions.
  4. A timeout is an overall deadline for the whole line, not a per-recv
     budget: a peer that drips bytes still times out.
  5. Connections are context managers. release() is idempotent and
     never raises, so it is safe on every exit path.
"""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass
from typing import Optional

from utils.logger import get_logger

_log = get_logger(__name__)

_MAX_LINE = 64 * 1024
_RECV_SIZE = 4096


# ── Errors ──────────────────────────────────────────────────

class TransportError(Exception):
    """A per-cycle, non-fatal transport failure."""


class ConnectError(TransportError):
    """Could not establish a connection (refused, unreachable, timed out)."""


class WriteError(TransportError):
    """Sending the request line failed."""


class ReadError(TransportError):
    """Reading the response line failed or the peer closed early."""


class TransportTimeoutError(TransportError, TimeoutError):
    """A send or a complete response line did not finish before the deadline."""


# ── Address ─────────────────────────────────────────────────

@dataclass(frozen=True)
class Address:
    host: str
    port: int

    @classmethod
    def parse(cls, value: str, default_port: int = 11211) -> "Address":
        """Parse "host", "host:port" or "[v6]:port"."""
        value = value.strip()
        if not value:
            raise ValueError("empty address")
        if value.startswith("["):
            host, _, rest = value[1:].partition("]")
            port = rest[1:] if rest.startswith(":") else ""
        elif value.count(":") == 1:
            host, _, port = value.partition(":")
        else:
            host, port = value, ""
        if not host:
            raise ValueError(f"missing host in address {value!r}")
        try:
            port_num = int(port) if port else default_port
        except ValueError:
            raise ValueError(f"invalid port in address {value!r}") from None
        if not 0 < port_num < 65536:
            raise ValueError(f"port out of range in address {value!r}")
        return cls(host, port_num)

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


# ── Connection ──────────────────────────────────────────────

class Connection:
    """One open socket to the cache server."""

    def __init__(self, sock: socket.socket, address: Address) -> None:
        self._sock: Optional[socket.socket] = sock
        self._buffer = bytearray()
        self.address = address

    def send_line(self, text: str, timeout: Optional[float] = None) -> None:
        """Write `text` followed by CRLF, within `timeout` seconds if given."""
        if self._sock is None:
            raise WriteError("connection already released")
        try:
            if timeout is not None:
                self._sock.settimeout(timeout)
            self._sock.sendall(text.encode("utf-8") + b"\r\n")
        except socket.timeout as exc:
            raise TransportTimeoutError(
                f"write to {self.address} timed out after {timeout}s"
            ) from exc
        except OSError as exc:
            raise WriteError(f"write to {self.address} failed: {exc}") from exc

    def read_line(self, timeout: Optional[float] = None) -> str:
        """Block until one LF-terminated line arrives, at most `timeout` seconds in total."""
        if self._sock is None:
            raise ReadError("connection already released")
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            end = self._buffer.find(b"\n")
            if end >= 0:
                line = bytes(self._buffer[:end + 1])
                del self._buffer[:end + 1]
                return line.rstrip(b"\r\n").decode("utf-8", errors="replace")
            if len(self._buffer) >= _MAX_LINE:
                raise ReadError(f"response line from {self.address} exceeds {_MAX_LINE} bytes")

            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransportTimeoutError(
                        f"no complete response from {self.address} within {timeout}s"
                    )
            try:
                self._sock.settimeout(remaining)
                chunk = self._sock.recv(_RECV_SIZE)
            except socket.timeout as exc:
                raise TransportTimeoutError(
                    f"no complete response from {self.address} within {timeout}s"
                ) from exc
            except OSError as exc:
                raise ReadError(f"read from {self.address} failed: {exc}") from exc

            if not chunk:
                if self._buffer:
                    raise ReadError(f"unterminated response from {self.address}")
                raise ReadError(f"{self.address} closed the connection")
            self._buffer += chunk

    def release(self) -> None:
        """Close the socket. Safe to call more than once."""
        sock, self._sock = self._sock, None
        if sock is None:
            return
        self._buffer.clear()
        try:
            sock.close()
        except OSError as exc:
            _log.debug("connection_close_failed", address=str(self.address), error=str(exc))

    @property
    def closed(self) -> bool:
        return self._sock is None

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class TcpTransport:
    """Opens plain TCP connections with a bounded connect time."""

    def acquire(self, address: Address, timeout: Optional[float] = None) -> Connection:
        try:
            sock = socket.create_connection((address.host, address.port), timeout=timeout)
        except socket.timeout as exc:
            raise ConnectError(f"connect to {address} timed out after {timeout}s") from exc
        except OSError as exc:
            raise ConnectError(f"connect to {address} failed: {exc}") from exc
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as exc:
            sock.close()
            raise ConnectError(f"configuring socket to {address} failed: {exc}") from exc
        return Connection(sock, address)
