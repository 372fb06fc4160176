"""
Phase timing and duration formatting.

Design decision: We use time.perf_counter_ns() (monotonic, nanosecond)
instead of time.time() because a probe phase is often well under a
millisecond and wall-clock time can jump on NTP sync.

The clock is injectable so the driver's tests can run deterministic,
sleep-free cycles.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Generator

from utils.logger import get_logger

_log = get_logger(__name__)

Clock = Callable[[], int]

_NS_PER_US = 1_000
_NS_PER_MS = 1_000_000
_NS_PER_S = 1_000_000_000
_NS_PER_MIN = 60 * _NS_PER_S
_NS_PER_H = 60 * _NS_PER_MIN


@contextmanager
def timed(label: str, clock: Clock = time.perf_counter_ns) -> Generator[dict, None, None]:
    """
    Context manager that measures the elapsed time of its block.

    Usage:
        with timed("connect") as span:
            conn = transport.acquire(address, timeout)
        histogram.record(span["ns"])

    The dict is populated *after* the block finishes, whether it exits
    normally or by exception. "ok" tells the two apart, so callers can
    drop the duration of a phase that failed.
    """
    result: dict = {"ok": False}
    start = clock()
    try:
        yield result
        result["ok"] = True
    finally:
        elapsed_ns = clock() - start
        result["ns"] = elapsed_ns
        result["ms"] = elapsed_ns / _NS_PER_MS
        _log.debug(label, latency_ms=round(result["ms"], 3), ok=result["ok"])


def _fraction(value: int, unit: int, digits: int) -> str:
    """Exact decimal rendering of value/unit, trailing zeros trimmed."""
    whole, rest = divmod(value, unit)
    if rest == 0:
        return str(whole)
    frac = str(rest).rjust(digits, "0").rstrip("0")
    return f"{whole}.{frac}"


def format_duration(ns: int) -> str:
    """
    Render nanoseconds the way Go's time.Duration prints itself.

        >>> format_duration(5_242_880)
        '5.24288ms'
        >>> format_duration(62_500_000_000)
        '1m2.5s'

    Integer arithmetic only, so bucket boundaries print exactly.
    """
    ns = int(ns)
    if ns == 0:
        return "0s"
    if ns < 0:
        return "-" + format_duration(-ns)
    if ns < _NS_PER_US:
        return f"{ns}ns"
    if ns < _NS_PER_MS:
        return _fraction(ns, _NS_PER_US, 3) + "µs"
    if ns < _NS_PER_S:
        return _fraction(ns, _NS_PER_MS, 6) + "ms"

    hours, ns = divmod(ns, _NS_PER_H)
    minutes, ns = divmod(ns, _NS_PER_MIN)
    out = ""
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + _fraction(ns, _NS_PER_S, 9) + "s"
