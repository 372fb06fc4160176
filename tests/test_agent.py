"""
Tests for settings → agent wiring and the command-line entry point.
"""
import io
import json
import os
import socket
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from configs.settings import Settings
from services.histogram_service import InvalidPrecisionError, InvalidRangeError
from services.probe_service import build_agent
from services.report_service.renderers import CLEAR_SCREEN
from tests.fakes import FakeTransport

import scripts.probe as probe_cli


def _closed_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def quiet_cli(monkeypatch):
    """Keep the CLI from reconfiguring logging or installing signal handlers."""
    monkeypatch.setattr(probe_cli, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(probe_cli, "bind_run_context", lambda *args, **kwargs: {})
    monkeypatch.setattr(probe_cli.signal, "signal", lambda *args: None)


# ── Settings ────────────────────────────────────────────────

class TestSettings:
    def test_defaults(self):
        cfg = Settings()
        assert cfg.probe_port == 11211
        assert cfg.report_interval == 1000
        assert cfg.histogram_lowest_ns == 1_000_000
        assert cfg.histogram_highest_ns == 100_000_000
        assert cfg.histogram_significant_digits == 2

    def test_derived_units(self):
        cfg = Settings(probe_host="cache.test", probe_sleep_ms=10, probe_timeout_ms=5000)
        assert cfg.address == "cache.test:11211"
        assert cfg.sleep_seconds == 0.01
        assert cfg.timeout_seconds == 5.0

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("PROBE_HOST", "memcached2.mlan")
        monkeypatch.setenv("REPORT_INTERVAL", "50")
        cfg = Settings()
        assert cfg.probe_host == "memcached2.mlan"
        assert cfg.report_interval == 50


# ── Wiring ──────────────────────────────────────────────────

class TestBuildAgent:
    def test_bad_precision_is_fatal(self):
        with pytest.raises(InvalidPrecisionError):
            build_agent(Settings(histogram_significant_digits=6), transport=FakeTransport())

    def test_bad_range_is_fatal(self):
        with pytest.raises(InvalidRangeError):
            build_agent(Settings(histogram_lowest_ns=0), transport=FakeTransport())

    def test_end_to_end_with_fake_transport(self):
        out = io.StringIO()
        cfg = Settings(probe_sleep_ms=0, report_interval=5)
        driver = build_agent(cfg, transport=FakeTransport(fail_every=4), stream=out)
        assert driver.run(max_cycles=10) == 10
        assert driver.counters.error_count == 2
        assert driver.connect_histogram is not driver.request_histogram
        assert out.getvalue().count(CLEAR_SCREEN) == 2
        assert "---- CONNECT ----" in out.getvalue()
        assert "---- GET ----" in out.getvalue()


# ── CLI ─────────────────────────────────────────────────────

class TestCli:
    def test_invalid_digits_exit_code(self, quiet_cli):
        assert probe_cli.main(["--digits", "6", "--cycles", "1"]) == 2

    def test_invalid_report_interval_exit_code(self, quiet_cli):
        assert probe_cli.main(["--report-interval", "0", "--cycles", "1"]) == 2

    def test_unknown_log_level_exit_code(self, monkeypatch):
        monkeypatch.setattr(probe_cli.signal, "signal", lambda *args: None)
        assert probe_cli.main(["--log-level", "LOUD", "--cycles", "1"]) == 2

    def test_bad_address_is_usage_error(self, quiet_cli):
        with pytest.raises(SystemExit) as info:
            probe_cli.main(["--address", "host:notaport"])
        assert info.value.code == 2

    def test_json_report_against_closed_port(self, quiet_cli, capsys):
        code = probe_cli.main([
            "--address", f"127.0.0.1:{_closed_port()}",
            "--cycles", "3",
            "--sleep-ms", "0",
            "--timeout-ms", "500",
            "--report-interval", "3",
            "--format", "json",
        ])
        assert code == 0
        # structlog falls back to printing on stdout when unconfigured
        lines = [l for l in capsys.readouterr().out.splitlines() if l.startswith("{")]
        assert len(lines) == 1
        doc = json.loads(lines[0])
        assert doc["iterations"] == 3
        assert doc["errors"] == 3
        assert all(h["total_count"] == 0 for h in doc["histograms"])
