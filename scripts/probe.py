"""
Cache latency probe — connect, get, record, repeat.

Opens a fresh TCP connection to a memcached-compatible server every
cycle, sends one `get <key>`, waits for one response line and keeps a
running histogram of connect time and get time. Every N cycles the
screen is cleared and the distributions are reprinted.

Usage:
    python -m scripts.probe --address memcached2.mlan:11211
    python -m scripts.probe --cycles 5000 --report-interval 500 --format json

Every flag falls back to the matching setting (env var or .env), e.g.
PROBE_HOST, REPORT_INTERVAL, HISTOGRAM_SIGNIFICANT_DIGITS.

Exit status: 0 after a clean stop, 2 on invalid configuration.
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from configs.settings import get_settings
from services.histogram_service import HistogramConfigError
from services.probe_service import Address, build_agent
from utils.logger import bind_run_context, get_logger, setup_logging

_log = get_logger(__name__)

# argparse dest -> Settings field
_OVERRIDES = {
    "host": "probe_host",
    "port": "probe_port",
    "key": "probe_key",
    "sleep_ms": "probe_sleep_ms",
    "timeout_ms": "probe_timeout_ms",
    "report_interval": "report_interval",
    "format": "report_format",
    "lowest_ns": "histogram_lowest_ns",
    "highest_ns": "histogram_highest_ns",
    "digits": "histogram_significant_digits",
    "log_level": "log_level",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Continuous cache latency probe")
    parser.add_argument("--address", "-a", type=Address.parse, metavar="HOST:PORT",
                        help="Cache server address (overrides --host/--port)")
    parser.add_argument("--host", type=str, help="Cache server host")
    parser.add_argument("--port", type=int, help="Cache server port")
    parser.add_argument("--key", type=str, help="Key to fetch each cycle")
    parser.add_argument("--cycles", "-n", type=int, default=None,
                        help="Stop after N cycles (default: run until interrupted)")
    parser.add_argument("--sleep-ms", type=float, help="Pause between cycles")
    parser.add_argument("--timeout-ms", type=float, help="Connect/read timeout")
    parser.add_argument("--report-interval", type=int, help="Report every N cycles")
    parser.add_argument("--format", choices=("terminal", "json"), help="Report format")
    parser.add_argument("--percentiles", action="store_true", default=None,
                        help="Print a percentile line per histogram")
    parser.add_argument("--lowest-ns", type=int, help="Lowest trackable latency")
    parser.add_argument("--highest-ns", type=int, help="Highest trackable latency")
    parser.add_argument("--digits", type=int, help="Significant digits of precision")
    parser.add_argument("--log-level", type=str)
    parser.add_argument("--json-logs", action="store_true", default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    updates = {
        field: getattr(args, dest)
        for dest, field in _OVERRIDES.items()
        if getattr(args, dest) is not None
    }
    if args.address is not None:
        updates.update(probe_host=args.address.host, probe_port=args.address.port)
    if args.percentiles:
        updates["report_show_percentiles"] = True
    if args.json_logs:
        updates["log_json"] = True
    cfg = get_settings().model_copy(update=updates)

    try:
        setup_logging(level=cfg.log_level, json_output=cfg.log_json)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    bind_run_context(cfg.address)

    try:
        driver = build_agent(cfg)
    except HistogramConfigError as e:
        _log.error("invalid_histogram_config", error=str(e))
        return 2
    except ValueError as e:
        _log.error("invalid_config", error=str(e))
        return 2

    stop = threading.Event()

    def _request_stop(signum, _frame) -> None:
        _log.info("stop_requested", signal=signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    driver.run(stop, max_cycles=args.cycles)
    return 0


if __name__ == "__main__":
    sys.exit(main())
