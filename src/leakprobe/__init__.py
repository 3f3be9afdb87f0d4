"""LeakProbe: churn connections concurrently to expose resource leaks."""

from __future__ import annotations

from leakprobe.engine.classifier import FailureKind, classify, root_cause
from leakprobe.engine.driver import StressDriver, run_stress_test
from leakprobe.engine.protocol import Connector, FunctionConnector
from leakprobe.engine.stop_signal import StopSignal
from leakprobe.metrics.models import MetricsSnapshot, StressReport
from leakprobe.metrics.sink import ConnectionMetrics

__version__ = "0.1.0"

__all__ = [
    "ConnectionMetrics",
    "Connector",
    "FailureKind",
    "FunctionConnector",
    "MetricsSnapshot",
    "StopSignal",
    "StressDriver",
    "StressReport",
    "classify",
    "root_cause",
    "run_stress_test",
]
