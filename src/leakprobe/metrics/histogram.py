"""Thread-safe HDR histogram for connect latencies.

Wraps ``hdrh.histogram.HdrHistogram``, which only accepts integers:
values are recorded as microseconds and reported back as milliseconds.
"""

from __future__ import annotations

import threading

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

from leakprobe.metrics.models import LatencySummary

# Range: 1 microsecond to 60 seconds (in microseconds)
_LOWEST_TRACKABLE_US = 1
_HIGHEST_TRACKABLE_US = 60_000_000
_SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """Latency histogram shared by all workers.

    Attributes:
        lowest_us: Lowest trackable value in microseconds.
        highest_us: Highest trackable value in microseconds.
    """

    def __init__(
        self,
        lowest_us: int = _LOWEST_TRACKABLE_US,
        highest_us: int = _HIGHEST_TRACKABLE_US,
        significant_digits: int = _SIGNIFICANT_DIGITS,
    ) -> None:
        self.lowest_us = lowest_us
        self.highest_us = highest_us
        self._lock = threading.Lock()
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            lowest_us, highest_us, significant_digits
        )

    def record_seconds(self, seconds: float) -> None:
        """Record a duration given in seconds, clamped to the trackable range."""
        value_us = int(seconds * 1_000_000)
        value_us = max(self.lowest_us, min(value_us, self.highest_us))
        with self._lock:
            self._histogram.record_value(value_us)

    @property
    def total_count(self) -> int:
        """Return the number of recorded values."""
        with self._lock:
            return int(self._histogram.total_count)

    def summary(self) -> LatencySummary:
        """Return min/mean/p50/p99/max in milliseconds; zeros when empty."""
        with self._lock:
            hist = self._histogram
            if hist.total_count == 0:
                return LatencySummary()
            return LatencySummary(
                count=int(hist.total_count),
                min_ms=hist.get_min_value() / 1000.0,
                mean_ms=hist.get_mean_value() / 1000.0,
                p50_ms=hist.get_value_at_percentile(50.0) / 1000.0,
                p99_ms=hist.get_value_at_percentile(99.0) / 1000.0,
                max_ms=hist.get_max_value() / 1000.0,
            )

    def reset(self) -> None:
        """Clear all recorded values."""
        with self._lock:
            self._histogram.reset()
