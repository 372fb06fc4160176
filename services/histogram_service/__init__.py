"""
Histogram Service — bounded-memory latency distributions.
"""

from services.histogram_service.histogram import (
    DistributionBucket,
    Histogram,
    HistogramConfigError,
    InvalidPrecisionError,
    InvalidRangeError,
)

__all__ = [
    "DistributionBucket",
    "Histogram",
    "HistogramConfigError",
    "InvalidPrecisionError",
    "InvalidRangeError",
]
