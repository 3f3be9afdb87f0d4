"""Read-only metric snapshots and the final stress-run report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from leakprobe.engine.protocol import WorkerResult

__all__ = [
    "LatencySummary",
    "MeterSnapshot",
    "MetricsSnapshot",
    "StressReport",
]


@dataclass(frozen=True)
class MeterSnapshot:
    """Point-in-time view of a rate meter.

    Attributes:
        count: Total events marked.
        mean_rate: Events per second since the meter was created.
        one_minute_rate: Exponentially weighted one-minute rate (events/s).
    """

    count: int = 0
    mean_rate: float = 0.0
    one_minute_rate: float = 0.0


@dataclass(frozen=True)
class LatencySummary:
    """Connect latency of successful opens, in milliseconds."""

    count: int = 0
    min_ms: float = 0.0
    mean_ms: float = 0.0
    p50_ms: float = 0.0
    p99_ms: float = 0.0
    max_ms: float = 0.0


@dataclass(frozen=True)
class MetricsSnapshot:
    """All connection-lifecycle counters read at one point in time.

    ``requests``, ``bind_failures`` and ``connections_refused`` are rate
    meters; the rest are plain counters. ``requests`` is marked only on a
    successful open.

    Attributes:
        elapsed_seconds: Seconds since the metrics were created or reset.
        requests: Successful request meter.
        bind_failures: Local bind / ephemeral port exhaustion meter.
        connections_refused: Remote refusal meter.
        successful_opens: Connects that produced a handle.
        failed_opens: Connects that raised, whatever the classification.
        successful_closes: Clean closes, including iterations with nothing to close.
        failed_closes: Closes that raised.
        connect_latency: Latency distribution of successful connects.
    """

    elapsed_seconds: float
    requests: MeterSnapshot = field(default_factory=MeterSnapshot)
    bind_failures: MeterSnapshot = field(default_factory=MeterSnapshot)
    connections_refused: MeterSnapshot = field(default_factory=MeterSnapshot)
    successful_opens: int = 0
    failed_opens: int = 0
    successful_closes: int = 0
    failed_closes: int = 0
    connect_latency: LatencySummary = field(default_factory=LatencySummary)

    @property
    def total_attempts(self) -> int:
        """Return the number of connect attempts accounted so far."""
        return self.successful_opens + self.failed_opens

    @property
    def total_closes(self) -> int:
        """Return the number of close accountings, phantom closes included."""
        return self.successful_closes + self.failed_closes

    @property
    def unclassified_failures(self) -> int:
        """Return failed opens that were neither bind failures nor refusals."""
        return self.failed_opens - self.bind_failures.count - self.connections_refused.count

    def as_dict(self) -> dict[str, int | float]:
        """Flatten the snapshot into ``{metric name: value}`` for printing."""
        return {
            "requests": self.requests.count,
            "requests.mean_rate": self.requests.mean_rate,
            "bindFailures": self.bind_failures.count,
            "bindFailures.mean_rate": self.bind_failures.mean_rate,
            "connectionsRefused": self.connections_refused.count,
            "connectionsRefused.mean_rate": self.connections_refused.mean_rate,
            "successfulOpens": self.successful_opens,
            "failedOpens": self.failed_opens,
            "successfulCloses": self.successful_closes,
            "failedCloses": self.failed_closes,
        }


@dataclass
class StressReport:
    """Complete result of a stress run.

    Attributes:
        worker_count: Number of workers that were started.
        target: Description of the target endpoint.
        duration_seconds: Wall-clock duration, settling delay excluded.
        metrics: Final metrics snapshot, taken after the settling delay.
        fatal_cause: First fatal failure observed, or None.
        cancelled: True if the run ended by external cancellation.
        worker_results: Per-worker exit summaries.
    """

    worker_count: int
    target: str
    duration_seconds: float
    metrics: MetricsSnapshot
    fatal_cause: BaseException | None = None
    cancelled: bool = False
    worker_results: list[WorkerResult] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        """Return True if a fatal failure ended the run."""
        return self.fatal_cause is not None

    def summary_line(self) -> str:
        """Return a one-line summary of the final counters."""
        m = self.metrics
        return (
            f"attempts={m.total_attempts} successfulOpens={m.successful_opens} "
            f"failedOpens={m.failed_opens} bindFailures={m.bind_failures.count} "
            f"connectionsRefused={m.connections_refused.count} "
            f"successfulCloses={m.successful_closes} failedCloses={m.failed_closes}"
        )
