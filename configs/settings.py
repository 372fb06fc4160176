"""
Centralized configuration — loaded once at process startup.

Why a single settings module?
  - The CLI, the agent wiring and the tests read the same fields.
  - Pydantic validates types at startup so we fail fast on bad config.
  - No scattered os.getenv() calls across the codebase.

Histogram bounds and precision are only type-checked here. Their
contract (lowest >= 1, highest >= 2 * lowest, 0..5 digits) belongs to
the histogram engine, which raises its own errors at construction.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Immutable, validated agent settings from environment."""

    # ── Target ──────────────────────────────────────────────
    probe_host: str = Field(default="localhost", description="Cache server host")
    probe_port: int = Field(default=11211, ge=1, le=65535, description="Cache server port")
    probe_key: str = Field(default="foo", description="Key fetched by every probe")

    # ── Cycle pacing ────────────────────────────────────────
    probe_sleep_ms: float = Field(default=10.0, ge=0, description="Fixed pause between cycles")
    probe_timeout_ms: float = Field(default=5000.0, gt=0, description="Upper bound per blocking phase")

    # ── Reporting ───────────────────────────────────────────
    report_interval: int = Field(default=1000, ge=1, description="Render a snapshot every N cycles")
    report_format: str = Field(default="terminal", description="Renderer: terminal or json")
    report_show_percentiles: bool = Field(default=False, description="Add a p50/p90/p99 line per histogram")

    # ── Histograms (nanoseconds) ────────────────────────────
    histogram_lowest_ns: int = Field(default=1_000_000, description="Lowest trackable latency (1ms)")
    histogram_highest_ns: int = Field(default=100_000_000, description="Highest trackable latency (100ms)")
    histogram_significant_digits: int = Field(default=2, description="Decimal digits of precision")

    # ── Logging ─────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False, description="JSON log lines instead of console output")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def address(self) -> str:
        return f"{self.probe_host}:{self.probe_port}"

    @property
    def sleep_seconds(self) -> float:
        return self.probe_sleep_ms / 1000

    @property
    def timeout_seconds(self) -> float:
        return self.probe_timeout_ms / 1000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Singleton accessor — parsed once and cached for the process lifetime.
        from configs.settings import get_settings
        cfg = get_settings()
    """
    return Settings()
