"""
Report snapshots — plain value objects, no terminal knowledge.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from services.histogram_service import DistributionBucket


@dataclass(frozen=True)
class HistogramSnapshot:
    """One tracked phase at report time."""
    label: str
    count: int
    total_count: int
    buckets: List[DistributionBucket] = field(default_factory=list)
    percentiles: Dict[str, int] = field(default_factory=dict)
    min: int = 0
    max: int = 0
    mean: float = 0.0


@dataclass(frozen=True)
class ReportSnapshot:
    """Counters plus every tracked histogram's non-empty buckets."""
    uptime_ns: int
    errors: int
    iterations: int
    started_at: float = 0.0
    histograms: List[HistogramSnapshot] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
