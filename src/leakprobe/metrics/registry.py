"""Thread-safe counters, rate meters and the registry that names them.

Every worker thread mutates the same instances, so each metric guards
its state with a ``threading.Lock``; exact counts matter for leak
diagnosis and no increment may be lost.
"""

from __future__ import annotations

import math
import threading
import time
from typing import TYPE_CHECKING

from leakprobe.metrics.models import MeterSnapshot

if TYPE_CHECKING:
    from collections.abc import Callable

# Meters fold their pending count into the moving average every 5 seconds.
_TICK_INTERVAL = 5.0
_ONE_MINUTE_ALPHA = 1.0 - math.exp(-_TICK_INTERVAL / 60.0)


class Counter:
    """Monotonic integer counter."""

    def __init__(self) -> None:
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        """Return the current count."""
        with self._lock:
            return self._count

    def inc(self, n: int = 1) -> None:
        """Increment the counter by ``n``.

        Raises:
            ValueError: If ``n`` is negative.
        """
        if n < 0:
            msg = f"counters never decrease, got increment {n}"
            raise ValueError(msg)
        with self._lock:
            self._count += n


class Meter:
    """Event counter with mean and one-minute moving-average rates.

    The moving average is an exponentially weighted rate updated in
    5-second ticks. Ticks are applied lazily on every ``mark`` and read,
    catching up on however many intervals elapsed since the last one.

    Attributes:
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._uncounted = 0
        self._start = clock()
        self._last_tick = self._start
        self._m1_rate = 0.0
        self._m1_initialized = False

    @property
    def count(self) -> int:
        """Return the total number of marked events."""
        with self._lock:
            return self._count

    def mark(self, n: int = 1) -> None:
        """Record ``n`` events."""
        with self._lock:
            self._tick_if_necessary()
            self._count += n
            self._uncounted += n

    def mean_rate(self) -> float:
        """Return events per second since the meter was created."""
        with self._lock:
            elapsed = self.clock() - self._start
            if self._count == 0 or elapsed <= 0:
                return 0.0
            return self._count / elapsed

    def one_minute_rate(self) -> float:
        """Return the one-minute exponentially weighted rate (events/s)."""
        with self._lock:
            self._tick_if_necessary()
            return self._m1_rate

    def snapshot(self) -> MeterSnapshot:
        """Return count and rates read together."""
        return MeterSnapshot(
            count=self.count,
            mean_rate=self.mean_rate(),
            one_minute_rate=self.one_minute_rate(),
        )

    def _tick_if_necessary(self) -> None:
        """Apply every full tick elapsed since the last one. Caller holds the lock."""
        now = self.clock()
        ticks = int((now - self._last_tick) // _TICK_INTERVAL)
        if ticks <= 0:
            return
        self._last_tick += ticks * _TICK_INTERVAL
        for _ in range(ticks):
            instant_rate = self._uncounted / _TICK_INTERVAL
            self._uncounted = 0
            if self._m1_initialized:
                self._m1_rate += _ONE_MINUTE_ALPHA * (instant_rate - self._m1_rate)
            else:
                self._m1_rate = instant_rate
                self._m1_initialized = True


class MetricRegistry:
    """Named collection of counters and meters.

    ``counter(name)`` and ``meter(name)`` are get-or-create, so any
    number of threads may ask for the same metric and share one instance.
    A name can hold only one kind of metric.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._counters: dict[str, Counter] = {}
        self._meters: dict[str, Meter] = {}

    def counter(self, name: str) -> Counter:
        """Return the counter registered under ``name``, creating it if needed.

        Raises:
            ValueError: If ``name`` is already registered as a meter.
        """
        with self._lock:
            if name in self._meters:
                msg = f"{name!r} is already registered as a meter"
                raise ValueError(msg)
            if name not in self._counters:
                self._counters[name] = Counter()
            return self._counters[name]

    def meter(self, name: str) -> Meter:
        """Return the meter registered under ``name``, creating it if needed.

        Raises:
            ValueError: If ``name`` is already registered as a counter.
        """
        with self._lock:
            if name in self._counters:
                msg = f"{name!r} is already registered as a counter"
                raise ValueError(msg)
            if name not in self._meters:
                self._meters[name] = Meter(clock=self._clock)
            return self._meters[name]

    def counters(self) -> dict[str, Counter]:
        """Return a copy of the registered counters, sorted by name."""
        with self._lock:
            return dict(sorted(self._counters.items()))

    def meters(self) -> dict[str, Meter]:
        """Return a copy of the registered meters, sorted by name."""
        with self._lock:
            return dict(sorted(self._meters.items()))
