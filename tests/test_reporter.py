"""
Unit tests for the reporter — cadence, snapshot contents and the
terminal / JSON renderers.
"""
import io
import itertools
import json
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services.histogram_service import Histogram
from services.report_service import JsonRenderer, Reporter, TerminalRenderer, make_renderer
from services.report_service.renderers import CLEAR_SCREEN
from utils.metrics import RunCounters

MS = 1_000_000


def _fixed_clock(uptime_ns):
    values = itertools.chain([0], itertools.repeat(uptime_ns))
    return lambda: next(values)


def _setup(renderer, interval=1000):
    counters = RunCounters(clock=_fixed_clock(62_500_000_000), wall_clock=lambda: 1700000000.0)
    counters.iteration_count = 1000
    counters.error_count = 3
    connect = Histogram(1 * MS, 100 * MS, 2)
    get = Histogram(1 * MS, 100 * MS, 2)
    connect.record(5 * MS)
    reporter = Reporter({"connect": connect, "get": get}, counters, renderer, report_interval=interval)
    return reporter, connect, get


class _Collector:
    def __init__(self):
        self.snapshots = []

    def render(self, snap):
        self.snapshots.append(snap)


# ── Cadence ─────────────────────────────────────────────────

class TestMaybeReport:
    def test_off_cadence_writes_nothing(self):
        out = io.StringIO()
        reporter, _, _ = _setup(TerminalRenderer(out), interval=1000)
        assert reporter.maybe_report(999) is None
        assert reporter.maybe_report(1001) is None
        assert out.getvalue() == ""
        assert reporter.reports_rendered == 0

    def test_on_cadence_writes_one_snapshot(self):
        out = io.StringIO()
        reporter, _, _ = _setup(TerminalRenderer(out), interval=1000)
        snap = reporter.maybe_report(2000)
        assert snap is not None
        text = out.getvalue()
        assert text.startswith(CLEAR_SCREEN)
        assert text.count(CLEAR_SCREEN) == 1
        assert text.count("Uptime:") == 1
        assert reporter.reports_rendered == 1

    def test_renderer_called_once_per_report(self):
        collector = _Collector()
        reporter, _, _ = _setup(collector, interval=10)
        for i in range(1, 31):
            reporter.maybe_report(i)
        assert len(collector.snapshots) == 3

    def test_rejects_zero_interval(self):
        with pytest.raises(ValueError):
            _setup(_Collector(), interval=0)


# ── Snapshot ────────────────────────────────────────────────

class TestSnapshot:
    def test_contents(self):
        reporter, _, _ = _setup(_Collector())
        snap = reporter.snapshot()
        assert snap.uptime_ns == 62_500_000_000
        assert snap.errors == 3
        assert snap.iterations == 1000
        assert snap.started_at == 1700000000.0
        assert [h.label for h in snap.histograms] == ["connect", "get"]
        connect, get = snap.histograms
        assert connect.count == 1000
        assert connect.total_count == 1
        assert len(connect.buckets) == 1
        assert connect.buckets[0].contains(5 * MS)
        assert get.buckets == []
        assert set(connect.percentiles) == {"p50", "p90", "p99", "p99.9"}

    def test_does_not_mutate(self):
        reporter, connect, get = _setup(_Collector())
        before = (connect.distribution(), get.distribution(), connect.total_count)
        reporter.snapshot()
        reporter.maybe_report(1000)
        assert (connect.distribution(), get.distribution(), connect.total_count) == before
        assert reporter.counters.iteration_count == 1000
        assert reporter.counters.error_count == 3


# ── Renderers ───────────────────────────────────────────────

class TestTerminalRenderer:
    def test_exact_output(self):
        out = io.StringIO()
        reporter, _, _ = _setup(TerminalRenderer(out))
        reporter.maybe_report(1000)
        assert out.getvalue() == (
            "\033[H\033[2J"
            "Uptime: 1m2.5s\n"
            "Errors: 3\n"
            "---- CONNECT ----\n"
            "count: 1000\n"
            "4.980736ms\t5.013504ms\t1\n"
            "---- GET ----\n"
            "count: 1000\n"
        )

    def test_repeated_render_is_identical(self):
        renderer = TerminalRenderer(io.StringIO())
        reporter, _, _ = _setup(renderer)
        assert renderer.format(reporter.snapshot()) == renderer.format(reporter.snapshot())

    def test_percentile_line(self):
        renderer = TerminalRenderer(io.StringIO(), clear_screen=False, show_percentiles=True)
        reporter, _, _ = _setup(renderer)
        text = renderer.format(reporter.snapshot())
        assert not text.startswith(CLEAR_SCREEN)
        assert "p50=5.013503ms" in text


class TestJsonRenderer:
    def test_one_line_per_snapshot(self):
        out = io.StringIO()
        reporter, _, _ = _setup(JsonRenderer(out), interval=1)
        reporter.maybe_report(1)
        reporter.maybe_report(2)
        lines = out.getvalue().splitlines()
        assert len(lines) == 2
        doc = json.loads(lines[0])
        assert doc["errors"] == 3
        assert doc["started_at"] == 1700000000.0
        assert doc["histograms"][0]["label"] == "connect"
        assert doc["histograms"][0]["buckets"][0] == {
            "from_value": 4_980_736,
            "to_value": 5_013_504,
            "count": 1,
        }

    def test_factory(self):
        assert isinstance(make_renderer("JSON"), JsonRenderer)
        assert make_renderer("terminal", show_percentiles=True).show_percentiles
        with pytest.raises(ValueError):
            make_renderer("html")
