"""
Agent wiring — turn Settings into a ready-to-run ProbeDriver.

Histogram construction happens here, before any cycle runs, so a bad
range or precision stops the process at startup.
"""

from __future__ import annotations

from typing import Optional, TextIO

from configs.settings import Settings
from services.histogram_service import Histogram
from services.probe_service.driver import ProbeDriver
from services.probe_service.transport import Address, TcpTransport
from services.report_service import Reporter, make_renderer
from utils.logger import get_logger
from utils.metrics import RunCounters

_log = get_logger(__name__)

CONNECT_LABEL = "connect"
REQUEST_LABEL = "get"


def build_histogram(cfg: Settings) -> Histogram:
    return Histogram(
        cfg.histogram_lowest_ns,
        cfg.histogram_highest_ns,
        cfg.histogram_significant_digits,
    )


def build_agent(
    cfg: Settings,
    *,
    transport=None,
    stream: Optional[TextIO] = None,
) -> ProbeDriver:
    """Assemble histograms, counters, reporter and driver from settings."""
    connect_histogram = build_histogram(cfg)
    request_histogram = build_histogram(cfg)
    counters = RunCounters()

    renderer = make_renderer(
        cfg.report_format, stream, show_percentiles=cfg.report_show_percentiles,
    )
    reporter = Reporter(
        {CONNECT_LABEL: connect_histogram, REQUEST_LABEL: request_histogram},
        counters,
        renderer,
        report_interval=cfg.report_interval,
    )

    driver = ProbeDriver(
        transport if transport is not None else TcpTransport(),
        Address(cfg.probe_host, cfg.probe_port),
        connect_histogram=connect_histogram,
        request_histogram=request_histogram,
        counters=counters,
        reporter=reporter,
        key=cfg.probe_key,
        timeout=cfg.timeout_seconds,
        sleep_interval=cfg.sleep_seconds,
    )
    _log.info(
        "agent_built",
        address=cfg.address,
        histogram_bytes=connect_histogram.memory_size,
        report_interval=cfg.report_interval,
        report_format=cfg.report_format,
    )
    return driver
