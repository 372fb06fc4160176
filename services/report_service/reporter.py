"""
Reporter — periodic, read-only snapshots of the probe's state.

Architecture decisions:
  1. snapshot() builds a value object (ReportSnapshot). Renderers turn
     it into bytes, so the reporter is testable without a terminal.
  2. maybe_report() renders only on multiples of report_interval and
     hands each snapshot to the renderer exactly once.
  3. Nothing here mutates a histogram or the counters.
"""

from __future__ import annotations

import time
from typing import Dict, Optional, Sequence

from services.histogram_service import Histogram
from services.report_service.snapshot import HistogramSnapshot, ReportSnapshot
from utils.logger import get_logger
from utils.metrics import RunCounters

_log = get_logger(__name__)

DEFAULT_QUANTILES = (50.0, 90.0, 99.0, 99.9)


def _quantile_key(q: float) -> str:
    return f"p{q:g}"


class Reporter:
    """Renders counters and histograms every `report_interval` cycles."""

    def __init__(
        self,
        histograms: Dict[str, Histogram],
        counters: RunCounters,
        renderer,
        report_interval: int = 1000,
        quantiles: Sequence[float] = DEFAULT_QUANTILES,
    ) -> None:
        if report_interval < 1:
            raise ValueError(f"report_interval must be >= 1, got {report_interval}")
        self.histograms = dict(histograms)
        self.counters = counters
        self.renderer = renderer
        self.report_interval = report_interval
        self.quantiles = tuple(quantiles)
        self.reports_rendered = 0

    def should_report(self, iteration_count: int) -> bool:
        return iteration_count % self.report_interval == 0

    def snapshot(self) -> ReportSnapshot:
        iterations = self.counters.iteration_count
        return ReportSnapshot(
            uptime_ns=self.counters.uptime_ns(),
            errors=self.counters.error_count,
            iterations=iterations,
            started_at=self.counters.started_at,
            histograms=[
                self._histogram_snapshot(label, hist, iterations)
                for label, hist in self.histograms.items()
            ],
        )

    def _histogram_snapshot(self, label: str, hist: Histogram, iterations: int) -> HistogramSnapshot:
        return HistogramSnapshot(
            label=label,
            count=iterations,
            total_count=hist.total_count,
            buckets=[b for b in hist.distribution() if b.count],
            percentiles={_quantile_key(q): hist.value_at_quantile(q) for q in self.quantiles},
            min=hist.min(),
            max=hist.max(),
            mean=hist.mean(),
        )

    def maybe_report(self, iteration_count: int) -> Optional[ReportSnapshot]:
        """Render a snapshot if `iteration_count` is on the cadence."""
        if not self.should_report(iteration_count):
            return None
        snap = self.snapshot()
        started = time.perf_counter_ns()
        self.renderer.render(snap)
        self.reports_rendered += 1
        _log.debug(
            "report_rendered",
            iteration=iteration_count,
            render_ms=round((time.perf_counter_ns() - started) / 1_000_000, 3),
        )
        return snap
