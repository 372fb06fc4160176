"""
Structured logging for the probe agent.

Every failed cycle produces exactly one event line. Run-wide context
(target address, run id) is bound once through contextvars and merged
into each line, so individual call sites only pass what is specific to
the event: phase, error, iteration.

Logs always go to stderr. The latency report owns stdout.
"""

from __future__ import annotations

import logging
import sys
import uuid
from typing import Any, Dict

import structlog

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def parse_level(level: str) -> int:
    """Map a level name to its logging constant. Unknown names raise ValueError."""
    try:
        return _LEVELS[level.strip().upper()]
    except KeyError:
        raise ValueError(
            f"unknown log level {level!r} (expected one of {', '.join(_LEVELS)})"
        ) from None


def setup_logging(*, level: str = "INFO", json_output: bool = False) -> None:
    """
    Call once at process startup, before the first cycle. Validates the
    level first so a typo never silently turns into INFO.
    """
    numeric_level = parse_level(level)

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)


def bind_run_context(address: str, run_id: str = "") -> Dict[str, Any]:
    """
    Attach the probe target and a run id to every later log line on
    this thread. Returns the bound fields.
    """
    fields = {"address": address, "run_id": run_id or uuid.uuid4().hex[:12]}
    structlog.contextvars.bind_contextvars(**fields)
    return fields


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
