"""Connection-lifecycle metrics shared by all workers of a stress run."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from leakprobe._internal.logging import get_logger
from leakprobe.metrics.histogram import LatencyHistogram
from leakprobe.metrics.models import MetricsSnapshot
from leakprobe.metrics.registry import MetricRegistry

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger("metrics.sink")

REQUESTS = "requests"
BIND_FAILURES = "bindFailures"
CONNECTIONS_REFUSED = "connectionsRefused"
SUCCESSFUL_OPENS = "successfulOpens"
FAILED_OPENS = "failedOpens"
SUCCESSFUL_CLOSES = "successfulCloses"
FAILED_CLOSES = "failedCloses"


class ConnectionMetrics:
    """Named counters and meters a worker updates once per iteration.

    Backed by a ``MetricRegistry`` so the periodic reporter can print the
    same metrics by name. All ``mark_*`` methods are safe to call from
    any number of threads.

    Attributes:
        registry: The registry holding the named metrics.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.registry = MetricRegistry(clock=clock)
        self._latency = LatencyHistogram()
        self._bind()

    def _bind(self) -> None:
        self._started = self._clock()
        self._requests = self.registry.meter(REQUESTS)
        self._bind_failures = self.registry.meter(BIND_FAILURES)
        self._connections_refused = self.registry.meter(CONNECTIONS_REFUSED)
        self._successful_opens = self.registry.counter(SUCCESSFUL_OPENS)
        self._failed_opens = self.registry.counter(FAILED_OPENS)
        self._successful_closes = self.registry.counter(SUCCESSFUL_CLOSES)
        self._failed_closes = self.registry.counter(FAILED_CLOSES)

    def reset(self) -> None:
        """Start over with zeroed metrics. Only call before workers start."""
        self.registry = MetricRegistry(clock=self._clock)
        self._latency.reset()
        self._bind()
        logger.debug("Connection metrics reset")

    def mark_open(self, latency_seconds: float | None = None) -> None:
        """Account a successful open.

        Marks ``successfulOpens`` and the ``requests`` meter; ``requests``
        counts successful requests only, never raw attempts.
        """
        self._successful_opens.inc()
        self._requests.mark()
        if latency_seconds is not None:
            self._latency.record_seconds(latency_seconds)

    def mark_failed_open(self) -> None:
        """Account a connect attempt that raised, whatever its class."""
        self._failed_opens.inc()

    def mark_bind_failure(self) -> None:
        self._bind_failures.mark()

    def mark_connection_refused(self) -> None:
        self._connections_refused.mark()

    def mark_close(self) -> None:
        """Account a clean close, or an iteration with nothing to close."""
        self._successful_closes.inc()

    def mark_failed_close(self) -> None:
        self._failed_closes.inc()

    def snapshot(self) -> MetricsSnapshot:
        """Return a read-only view of every metric."""
        return MetricsSnapshot(
            elapsed_seconds=self._clock() - self._started,
            requests=self._requests.snapshot(),
            bind_failures=self._bind_failures.snapshot(),
            connections_refused=self._connections_refused.snapshot(),
            successful_opens=self._successful_opens.count,
            failed_opens=self._failed_opens.count,
            successful_closes=self._successful_closes.count,
            failed_closes=self._failed_closes.count,
            connect_latency=self._latency.summary(),
        )
