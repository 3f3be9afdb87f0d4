"""Tests for metric snapshots and the stress report."""

from __future__ import annotations

import leakprobe.metrics.models as models
from leakprobe.engine.protocol import WorkerResult
from leakprobe.metrics.models import MeterSnapshot, MetricsSnapshot, StressReport


def _snapshot() -> MetricsSnapshot:
    return MetricsSnapshot(
        elapsed_seconds=2.0,
        requests=MeterSnapshot(count=6, mean_rate=3.0),
        bind_failures=MeterSnapshot(count=1),
        connections_refused=MeterSnapshot(count=2),
        successful_opens=6,
        failed_opens=4,
        successful_closes=9,
        failed_closes=1,
    )


class TestMetricsSnapshot:
    """Tests for MetricsSnapshot."""

    def test_derived_totals(self) -> None:
        snap = _snapshot()
        assert snap.total_attempts == 10
        assert snap.total_closes == 10
        assert snap.unclassified_failures == 1

    def test_as_dict_uses_metric_names(self) -> None:
        flat = _snapshot().as_dict()
        assert flat["requests"] == 6
        assert flat["connectionsRefused"] == 2
        assert flat["failedCloses"] == 1


class TestStressReport:
    """Tests for StressReport."""

    def test_failed_reflects_fatal_cause(self) -> None:
        ok = StressReport(worker_count=1, target="h:1", duration_seconds=0.1, metrics=_snapshot())
        bad = StressReport(
            worker_count=1,
            target="h:1",
            duration_seconds=0.1,
            metrics=_snapshot(),
            fatal_cause=ValueError("boom"),
        )
        assert not ok.failed
        assert bad.failed

    def test_summary_line(self) -> None:
        report = StressReport(
            worker_count=2,
            target="h:1",
            duration_seconds=1.0,
            metrics=_snapshot(),
            worker_results=[WorkerResult(worker_id=0, iterations=10, stopped_by_signal=True)],
        )
        line = report.summary_line()
        assert "attempts=10" in line
        assert "connectionsRefused=2" in line


def test_module_exports_only_metric_types() -> None:
    assert "WorkerResult" not in models.__all__
    assert not hasattr(models, "WorkerResult")
