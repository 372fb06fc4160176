"""
Snapshot renderers — the only code that knows about output formats.

TerminalRenderer reproduces the classic full-screen report:

    <ESC[H ESC[2J>
    Uptime: 1m2.5s
    Errors: 3
    ---- CONNECT ----
    count: 1000
    4.718592ms	5.24288ms	12
    ...

JsonRenderer writes one JSON object per snapshot per line, for piping
into other tools.
"""

from __future__ import annotations

import json
import sys
from typing import Optional, TextIO

from services.report_service.snapshot import ReportSnapshot
from utils.timing import format_duration

CLEAR_SCREEN = "\033[H\033[2J"


class TerminalRenderer:
    """Clear the screen, then print the snapshot as tab-separated buckets."""

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        *,
        clear_screen: bool = True,
        show_percentiles: bool = False,
    ) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.clear_screen = clear_screen
        self.show_percentiles = show_percentiles

    def format(self, snap: ReportSnapshot) -> str:
        lines = [
            f"Uptime: {format_duration(snap.uptime_ns)}",
            f"Errors: {snap.errors}",
        ]
        for hist in snap.histograms:
            lines.append(f"---- {hist.label.upper()} ----")
            lines.append(f"count: {hist.count}")
            if self.show_percentiles and hist.percentiles:
                lines.append("  ".join(
                    f"{name}={format_duration(value)}" for name, value in hist.percentiles.items()
                ))
            for bucket in hist.buckets:
                lines.append(
                    f"{format_duration(bucket.from_value)}\t"
                    f"{format_duration(bucket.to_value)}\t{bucket.count}"
                )
        prefix = CLEAR_SCREEN if self.clear_screen else ""
        return prefix + "\n".join(lines) + "\n"

    def render(self, snap: ReportSnapshot) -> None:
        self.stream.write(self.format(snap))
        self.stream.flush()


class JsonRenderer:
    """One compact JSON document per line."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream if stream is not None else sys.stdout

    def format(self, snap: ReportSnapshot) -> str:
        return json.dumps(snap.to_dict(), separators=(",", ":"), sort_keys=True) + "\n"

    def render(self, snap: ReportSnapshot) -> None:
        self.stream.write(self.format(snap))
        self.stream.flush()


def make_renderer(kind: str, stream: Optional[TextIO] = None, *, show_percentiles: bool = False):
    """Renderer factory keyed by the report_format setting."""
    kind = kind.lower()
    if kind == "terminal":
        return TerminalRenderer(stream, show_percentiles=show_percentiles)
    if kind == "json":
        return JsonRenderer(stream)
    raise ValueError(f"unknown report format {kind!r} (expected 'terminal' or 'json')")
