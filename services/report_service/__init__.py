"""
Report Service — snapshot the probe's counters and histograms, then render.
"""

from services.report_service.renderers import JsonRenderer, TerminalRenderer, make_renderer
from services.report_service.reporter import Reporter
from services.report_service.snapshot import HistogramSnapshot, ReportSnapshot

__all__ = [
    "HistogramSnapshot",
    "JsonRenderer",
    "ReportSnapshot",
    "Reporter",
    "TerminalRenderer",
    "make_renderer",
]
