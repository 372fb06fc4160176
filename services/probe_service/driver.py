"""
Probe cycle driver — one connect + one get, timed and recorded.

Architecture decisions:
  1. A cycle walks IDLE → CONNECTING → CONNECTED → REQUESTING and ends
     in COMPLETED or FAILED. FAILED ends only the cycle, never the run.
  2. A phase's duration is recorded only if that phase succeeded. A
     failed request still keeps the connect time it already earned.
  3. The connection is released on every exit path (context manager).
  4. Each cycle bumps iteration_count exactly once. Each failure bumps
     error_count exactly once and logs exactly one line.
  5. The run loop takes a stop event. The fixed inter-cycle pause waits
     on that event, so stopping is immediate and tests can bound a run
     with max_cycles instead of killing an infinite loop.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from services.histogram_service import Histogram
from services.probe_service.transport import Address, TcpTransport, TransportError
from utils.logger import get_logger
from utils.metrics import RunCounters
from utils.timing import Clock, timed

_log = get_logger(__name__)


class CycleState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    REQUESTING = "requesting"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CycleResult:
    """Outcome of one probe cycle."""
    state: CycleState
    failed_phase: Optional[CycleState] = None
    connect_ns: Optional[int] = None
    request_ns: Optional[int] = None
    error: Optional[TransportError] = None

    @property
    def ok(self) -> bool:
        return self.state is CycleState.COMPLETED


class ProbeDriver:
    """Runs probe cycles and owns the histograms and counters they feed."""

    def __init__(
        self,
        transport: TcpTransport,
        address: Address,
        *,
        connect_histogram: Histogram,
        request_histogram: Histogram,
        counters: Optional[RunCounters] = None,
        reporter=None,
        key: str = "foo",
        timeout: float = 5.0,
        sleep_interval: float = 0.01,
        clock: Clock = time.perf_counter_ns,
    ) -> None:
        if sleep_interval < 0:
            raise ValueError(f"sleep_interval must be >= 0, got {sleep_interval}")
        self.transport = transport
        self.address = address
        self.connect_histogram = connect_histogram
        self.request_histogram = request_histogram
        self.counters = counters if counters is not None else RunCounters()
        self.reporter = reporter
        self.key = key
        self.timeout = timeout
        self.sleep_interval = sleep_interval
        self._clock = clock
        self.state = CycleState.IDLE

    def run_cycle(self) -> CycleResult:
        """Run one cycle to completion. Transport failures never escape."""
        self.counters.mark_iteration()
        self._transition(CycleState.IDLE)

        self._transition(CycleState.CONNECTING)
        try:
            with timed("connect", self._clock) as span:
                conn = self.transport.acquire(self.address, self.timeout)
        except TransportError as exc:
            return self._fail(CycleResult(CycleState.FAILED, CycleState.CONNECTING, error=exc))

        connect_ns = span["ns"]
        self.connect_histogram.record(connect_ns)
        self._transition(CycleState.CONNECTED)

        with conn:
            self._transition(CycleState.REQUESTING)
            try:
                with timed("get", self._clock) as span:
                    conn.send_line(f"get {self.key}", self.timeout)
                    conn.read_line(self.timeout)
            except TransportError as exc:
                return self._fail(CycleResult(
                    CycleState.FAILED, CycleState.REQUESTING, connect_ns=connect_ns, error=exc,
                ))

        request_ns = span["ns"]
        self.request_histogram.record(request_ns)
        self._transition(CycleState.COMPLETED)
        return CycleResult(CycleState.COMPLETED, connect_ns=connect_ns, request_ns=request_ns)

    def _transition(self, state: CycleState) -> None:
        self.state = state
        _log.debug("cycle_state", state=state.value, iteration=self.counters.iteration_count)

    def _fail(self, result: CycleResult) -> CycleResult:
        self.counters.mark_error()
        self._transition(CycleState.FAILED)
        phase = "connect" if result.failed_phase is CycleState.CONNECTING else "get"
        _log.warning(
            "probe_failed",
            phase=phase,
            address=str(self.address),
            error_type=type(result.error).__name__,
            error=str(result.error),
            iteration=self.counters.iteration_count,
        )
        return result

    def run(
        self,
        stop_event: Optional[threading.Event] = None,
        max_cycles: Optional[int] = None,
    ) -> int:
        """
        Loop until `stop_event` is set or `max_cycles` cycles have run.

        Returns the number of cycles run by this call. The pause between
        cycles is constant regardless of failures.
        """
        stop = stop_event if stop_event is not None else threading.Event()
        ran = 0
        _log.info(
            "probe_started",
            address=str(self.address),
            key=self.key,
            sleep_interval=self.sleep_interval,
            timeout=self.timeout,
        )
        while not stop.is_set():
            if max_cycles is not None and ran >= max_cycles:
                break
            if ran and stop.wait(self.sleep_interval):
                break
            self.run_cycle()
            ran += 1
            if self.reporter is not None:
                self.reporter.maybe_report(self.counters.iteration_count)
        _log.info(
            "probe_stopped",
            cycles=ran,
            iterations=self.counters.iteration_count,
            errors=self.counters.error_count,
        )
        return ran
