"""Periodic and on-demand console reports of connection metrics.

The reporter runs a daemon thread that prints a Rich table of all
counters and meters every ``interval`` seconds while a run is active,
and prints one final table on ``report()``.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from leakprobe._internal.logging import get_logger

if TYPE_CHECKING:
    from leakprobe.metrics.models import MetricsSnapshot
    from leakprobe.metrics.sink import ConnectionMetrics

logger = get_logger("metrics.reporter")


def build_metrics_table(snapshot: MetricsSnapshot, *, title: str | None = None) -> Table:
    """Build a Rich table with one row per metric.

    Args:
        snapshot: Metrics to render.
        title: Optional table title.

    Returns:
        Formatted Rich Table.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    table.add_column("Mean rate", justify="right")
    table.add_column("1-minute rate", justify="right")

    for name, meter in (
        ("requests", snapshot.requests),
        ("bindFailures", snapshot.bind_failures),
        ("connectionsRefused", snapshot.connections_refused),
    ):
        table.add_row(
            name,
            str(meter.count),
            f"{meter.mean_rate:.2f}/s",
            f"{meter.one_minute_rate:.2f}/s",
        )

    for name, count in (
        ("successfulOpens", snapshot.successful_opens),
        ("failedOpens", snapshot.failed_opens),
        ("successfulCloses", snapshot.successful_closes),
        ("failedCloses", snapshot.failed_closes),
    ):
        table.add_row(name, str(count), "", "")

    latency = snapshot.connect_latency
    if latency.count:
        table.add_row(
            "connect latency",
            str(latency.count),
            f"mean {latency.mean_ms:.2f}ms",
            f"p50 {latency.p50_ms:.2f}ms / p99 {latency.p99_ms:.2f}ms / max {latency.max_ms:.2f}ms",
        )

    table.caption = f"elapsed {snapshot.elapsed_seconds:.1f}s"
    return table


class ConsoleReporter:
    """Prints connection metrics to a Rich console.

    Attributes:
        metrics: The metrics being reported.
        console: Destination console (stderr by default).
    """

    def __init__(
        self,
        metrics: ConnectionMetrics,
        console: Console | None = None,
    ) -> None:
        self.metrics = metrics
        self.console = console if console is not None else Console(stderr=True)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        """Return True while the periodic thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self, interval: float) -> None:
        """Print a report every ``interval`` seconds until ``stop()``.

        Raises:
            ValueError: If interval is not positive.
            RuntimeError: If the reporter is already running.
        """
        if interval <= 0:
            msg = f"interval must be positive, got {interval}"
            raise ValueError(msg)
        if self.running:
            msg = "reporter already started"
            raise RuntimeError(msg)

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            args=(interval,),
            name="leakprobe-reporter",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Reporter started with interval %.1fs", interval)

    def stop(self) -> None:
        """Stop the periodic thread and wait for it to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        logger.debug("Reporter stopped")

    def report(self, snapshot: MetricsSnapshot | None = None, *, title: str | None = None) -> None:
        """Print one report now, of ``snapshot`` or of the live metrics."""
        if snapshot is None:
            snapshot = self.metrics.snapshot()
        self.console.print(build_metrics_table(snapshot, title=title))

    def _run_loop(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            self.report()
