"""
Probe Service — timed connect + get cycles against a cache server.
"""

from services.probe_service.agent import build_agent
from services.probe_service.driver import CycleResult, CycleState, ProbeDriver
from services.probe_service.transport import (
    Address,
    Connection,
    ConnectError,
    ReadError,
    TcpTransport,
    TransportError,
    TransportTimeoutError,
    WriteError,
)

__all__ = [
    "Address",
    "ConnectError",
    "Connection",
    "CycleResult",
    "CycleState",
    "ProbeDriver",
    "ReadError",
    "TcpTransport",
    "TransportError",
    "TransportTimeoutError",
    "WriteError",
    "build_agent",
]
