"""
Log-linear latency histogram — fixed memory, O(1) record.

Architecture decisions:
  1. HDR-style layout. Each binary magnitude ("bucket") is split into
     linear sub-buckets, so low values get fine absolute resolution and
     high values get exponentially wider slots with the same relative
     error, bounded by 10^-significant_digits.
  2. Counts live in one numpy int64 array sized at construction from
     the range and precision. record() never grows it.
  3. Index and boundary math is pure integer bit arithmetic
     (bit_length, shifts, masks). No log2() on floats, so bucket edges
     reconstruct exactly.
  4. The unit magnitude is derived from lowest_trackable_value: the
     largest power of two for which lowest >= sub_bucket_half_count
     units. Every value in range then sits in the upper half of its
     bucket, where the precision guarantee holds.
  5. Out-of-range values are clamped to the nearest bound before they
     are recorded. A value above the ceiling is indistinguishable from
     one that landed in the top bucket naturally.

Single writer: callers that record from several threads must hold
their own lock around record() and any query.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List

import numpy as np


class HistogramConfigError(ValueError):
    """Histogram parameters violate the construction contract."""


class InvalidRangeError(HistogramConfigError):
    """lowest < 1, highest < 2 * lowest, or highest beyond int64."""


class InvalidPrecisionError(HistogramConfigError):
    """significant_digits outside [0, 5]."""


MAX_SIGNIFICANT_DIGITS = 5
MAX_TRACKABLE_VALUE = 2 ** 63 - 1


@dataclass(frozen=True)
class DistributionBucket:
    """One histogram slot: half-open range [from_value, to_value) and its count."""
    from_value: int
    to_value: int
    count: int

    def contains(self, value: int) -> bool:
        return self.from_value <= value < self.to_value


class Histogram:
    """Fixed-range, fixed-precision integer histogram."""

    def __init__(
        self,
        lowest_trackable_value: int,
        highest_trackable_value: int,
        significant_digits: int,
    ) -> None:
        lowest = int(lowest_trackable_value)
        highest = int(highest_trackable_value)
        digits = int(significant_digits)

        if lowest < 1:
            raise InvalidRangeError(f"lowest_trackable_value must be >= 1, got {lowest}")
        if highest < 2 * lowest:
            raise InvalidRangeError(
                f"highest_trackable_value must be >= 2 * lowest ({2 * lowest}), got {highest}"
            )
        if highest > MAX_TRACKABLE_VALUE:
            raise InvalidRangeError(
                f"highest_trackable_value must be <= {MAX_TRACKABLE_VALUE}, got {highest}"
            )
        if not 0 <= digits <= MAX_SIGNIFICANT_DIGITS:
            raise InvalidPrecisionError(
                f"significant_digits must be in [0, {MAX_SIGNIFICANT_DIGITS}], got {digits}"
            )

        self.lowest_trackable_value = lowest
        self.highest_trackable_value = highest
        self.significant_digits = digits

        # ceil(log2(2 * 10^digits)) without floats
        largest_single_unit_value = 2 * 10 ** digits
        sub_bucket_count_magnitude = (largest_single_unit_value - 1).bit_length()
        self._half_count_magnitude = max(sub_bucket_count_magnitude, 1) - 1

        self.sub_bucket_count = 1 << (self._half_count_magnitude + 1)
        self.sub_bucket_half_count = self.sub_bucket_count >> 1
        self.unit_magnitude = max((lowest // self.sub_bucket_half_count).bit_length() - 1, 0)
        self._sub_bucket_mask = (self.sub_bucket_count - 1) << self.unit_magnitude

        smallest_untrackable = self.sub_bucket_count << self.unit_magnitude
        bucket_count = 1
        while smallest_untrackable <= highest:
            smallest_untrackable <<= 1
            bucket_count += 1
        self.bucket_count = bucket_count
        self.counts_len = (bucket_count + 1) * self.sub_bucket_half_count

        self._counts = np.zeros(self.counts_len, dtype=np.int64)
        self._lows, self._widths = self._bucket_bounds()
        self._total_count = 0

    # ── Index mapping ───────────────────────────────────────

    def _bucket_bounds(self):
        """
        Per-index low edge and width, computed once.

        Exclusive upper edges are only ever formed as Python ints
        (low + width): the top edge may be 2**63, one past int64.
        """
        index = np.arange(self.counts_len, dtype=np.int64)
        bucket = (index >> self._half_count_magnitude) - 1
        sub = (index & (self.sub_bucket_half_count - 1)) + self.sub_bucket_half_count
        first = bucket < 0
        sub = np.where(first, sub - self.sub_bucket_half_count, sub)
        bucket = np.where(first, 0, bucket)
        shift = bucket + self.unit_magnitude
        return np.left_shift(sub, shift), np.left_shift(np.int64(1), shift)

    def _highest_at(self, index: int) -> int:
        return int(self._lows[index]) + int(self._widths[index]) - 1

    def _clamp(self, value) -> int:
        value = int(value)
        if value < self.lowest_trackable_value:
            return self.lowest_trackable_value
        if value > self.highest_trackable_value:
            return self.highest_trackable_value
        return value

    def _bucket_index(self, value: int) -> int:
        pow2_ceiling = (value | self._sub_bucket_mask).bit_length()
        return pow2_ceiling - self.unit_magnitude - (self._half_count_magnitude + 1)

    def _counts_index(self, value: int) -> int:
        bucket_index = self._bucket_index(value)
        sub_bucket_index = value >> (bucket_index + self.unit_magnitude)
        base = (bucket_index + 1) << self._half_count_magnitude
        return base + (sub_bucket_index - self.sub_bucket_half_count)

    def counts_index_for(self, value: int) -> int:
        """Slot a value lands in once clamped."""
        return self._counts_index(self._clamp(value))

    # ── Recording ───────────────────────────────────────────

    def record(self, value: int) -> None:
        """Count one observation. Out-of-range values are clamped."""
        self._counts[self._counts_index(self._clamp(value))] += 1
        self._total_count += 1

    def record_values(self, value: int, count: int) -> None:
        """Count `count` observations of the same value."""
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        self._counts[self._counts_index(self._clamp(value))] += count
        self._total_count += count

    def reset(self) -> None:
        """Zero every slot. The layout is unchanged."""
        self._counts.fill(0)
        self._total_count = 0

    def merge(self, other: "Histogram") -> int:
        """
        Add another histogram's observations into this one.

        Identical layouts add the count arrays directly. Otherwise each
        non-empty slot of `other` is re-recorded at its lowest value,
        clamped into this histogram's range. Returns the number of
        observations merged.
        """
        if not isinstance(other, Histogram):
            raise TypeError(f"cannot merge {type(other).__name__} into Histogram")
        if self._same_layout(other):
            self._counts += other._counts
            self._total_count += other._total_count
            return other._total_count

        merged = 0
        for index in np.flatnonzero(other._counts):
            count = int(other._counts[index])
            self.record_values(int(other._lows[index]), count)
            merged += count
        return merged

    def _same_layout(self, other: "Histogram") -> bool:
        return (
            self.lowest_trackable_value == other.lowest_trackable_value
            and self.highest_trackable_value == other.highest_trackable_value
            and self.significant_digits == other.significant_digits
        )

    # ── Queries ─────────────────────────────────────────────

    @property
    def total_count(self) -> int:
        return self._total_count

    @property
    def memory_size(self) -> int:
        """Bytes held by the counts array."""
        return int(self._counts.nbytes)

    def distribution(self) -> List[DistributionBucket]:
        """
        Every slot in ascending value order, empty ones included.

        Callers filter on count. Reading does not touch the counts, so
        two calls with no record() in between return equal lists.
        """
        return [
            DistributionBucket(low, low + width, count)
            for low, width, count in zip(
                self._lows.tolist(), self._widths.tolist(), self._counts.tolist()
            )
        ]

    def lowest_equivalent_value(self, value: int) -> int:
        """Smallest value recorded into the same slot as `value`."""
        return int(self._lows[self.counts_index_for(value)])

    def highest_equivalent_value(self, value: int) -> int:
        """Largest value recorded into the same slot as `value`."""
        return self._highest_at(self.counts_index_for(value))

    def values_are_equivalent(self, a: int, b: int) -> bool:
        return self.counts_index_for(a) == self.counts_index_for(b)

    def min(self) -> int:
        nonzero = np.flatnonzero(self._counts)
        if nonzero.size == 0:
            return 0
        return int(self._lows[nonzero[0]])

    def max(self) -> int:
        nonzero = np.flatnonzero(self._counts)
        if nonzero.size == 0:
            return 0
        return self._highest_at(int(nonzero[-1]))

    def _midpoints(self) -> np.ndarray:
        return (self._lows + (self._widths >> 1)).astype(np.float64)

    def mean(self) -> float:
        if self._total_count == 0:
            return 0.0
        return float(np.dot(self._midpoints(), self._counts) / self._total_count)

    def stddev(self) -> float:
        if self._total_count == 0:
            return 0.0
        deviation = self._midpoints() - self.mean()
        variance = np.dot(deviation * deviation, self._counts) / self._total_count
        return math.sqrt(float(variance))

    def value_at_quantile(self, quantile: float) -> int:
        """
        Highest equivalent value of the slot holding the given percentile.

        `quantile` is a percentage in [0, 100]. Empty histograms answer 0.
        """
        if not 0 <= quantile <= 100:
            raise ValueError(f"quantile must be in [0, 100], got {quantile}")
        if self._total_count == 0:
            return 0
        target = max(int(quantile / 100 * self._total_count + 0.5), 1)
        cumulative = np.cumsum(self._counts)
        index = int(np.searchsorted(cumulative, target, side="left"))
        return self._highest_at(index)

    def percentiles(self, quantiles: Iterable[float]) -> Dict[float, int]:
        return {q: self.value_at_quantile(q) for q in quantiles}

    def __repr__(self) -> str:
        return (
            f"Histogram(lowest={self.lowest_trackable_value}, "
            f"highest={self.highest_trackable_value}, "
            f"digits={self.significant_digits}, total={self._total_count})"
        )
