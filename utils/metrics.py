"""
Run counters for the probe loop.

Owned by the driver, read by the reporter. There is no module-level
instance: each agent builds its own and passes it down, so tests
can run many agents side by side.

Thread-safety: none. Cycles run one at a time on a single thread.
"""

from __future__ import annotations

import time
from typing import Callable

from utils.timing import Clock


class RunCounters:
    """Iteration and error counts plus the run's start instant."""

    def __init__(
        self,
        clock: Clock = time.monotonic_ns,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self.iteration_count = 0
        self.error_count = 0
        self.start_time = clock()
        self.started_at = wall_clock()

    def mark_iteration(self) -> int:
        self.iteration_count += 1
        return self.iteration_count

    def mark_error(self) -> int:
        self.error_count += 1
        return self.error_count

    def uptime_ns(self) -> int:
        return self._clock() - self.start_time

