"""Connection worker: one thread opening and closing connections in a loop.

Each iteration runs connect, classify, account, close, strictly in that
order. Every attempt is accounted exactly once as an open (successful or
failed) and exactly once as a close; an iteration whose connect raised
has nothing to close and counts as a successful close.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

from leakprobe._internal.logging import get_logger
from leakprobe.engine.classifier import FailureKind, classify
from leakprobe.engine.protocol import WorkerResult

if TYPE_CHECKING:
    from leakprobe._internal.types import Address
    from leakprobe.engine.protocol import Connector
    from leakprobe.engine.stop_signal import StopSignal
    from leakprobe.metrics.sink import ConnectionMetrics

logger = get_logger("engine.worker")


class OutcomeKind(Enum):
    """Result of a single connect attempt."""

    OPENED = auto()
    BIND_FAILED = auto()
    REFUSED = auto()
    FATAL = auto()


_FAILURE_OUTCOMES = {
    FailureKind.BIND_FAILURE: OutcomeKind.BIND_FAILED,
    FailureKind.CONNECTION_REFUSED: OutcomeKind.REFUSED,
    FailureKind.FATAL: OutcomeKind.FATAL,
}


@dataclass(frozen=True)
class ConnectAttemptOutcome:
    """Transient result of one connect attempt, consumed in the same iteration.

    Attributes:
        kind: What happened.
        handle: The open handle when ``kind`` is OPENED, else None.
        error: The exception raised by connect, if any.
        latency_seconds: Time spent inside connect.
    """

    kind: OutcomeKind
    handle: Any = None
    error: BaseException | None = None
    latency_seconds: float = 0.0

    @property
    def opened(self) -> bool:
        return self.kind is OutcomeKind.OPENED


@dataclass(frozen=True)
class WorkerTask:
    """Immutable configuration for one worker.

    Attributes:
        worker_id: Identifier used in logs and results.
        target: Address every attempt connects to.
        connector: The connect/close capability.
        metrics: Shared metrics sink.
        stop_signal: Shared stop signal.
        delay_seconds: Pause before each attempt; 0 disables pacing.
        max_iterations: Optional bound on attempts; None runs until stopped.
    """

    worker_id: int
    target: Address
    connector: Connector
    metrics: ConnectionMetrics
    stop_signal: StopSignal
    delay_seconds: float = 0.0
    max_iterations: int | None = None


class ConnectionWorker:
    """Runs the connect/close loop for one ``WorkerTask``."""

    def __init__(self, task: WorkerTask) -> None:
        self.task = task
        self.iterations = 0

    def run(self) -> WorkerResult:
        """Loop until the stop signal is raised or the iteration bound is hit.

        The stop signal is checked at the top of every iteration, and the
        pacing delay is cut short when the signal is raised during it.
        A connect or close that blocks is never interrupted.

        Returns:
            WorkerResult describing why the loop exited.
        """
        task = self.task
        stop = task.stop_signal
        logger.debug("Worker %d: started against %s:%d", task.worker_id, *task.target)

        while not stop.is_set:
            if task.max_iterations is not None and self.iterations >= task.max_iterations:
                logger.debug("Worker %d: reached %d iterations", task.worker_id, self.iterations)
                return WorkerResult(task.worker_id, self.iterations, stopped_by_signal=False)
            if task.delay_seconds > 0 and stop.wait(task.delay_seconds):
                break
            self.run_iteration()
            self.iterations += 1

        logger.debug("Worker %d: stop signal observed after %d iterations", task.worker_id, self.iterations)
        return WorkerResult(task.worker_id, self.iterations, stopped_by_signal=True)

    def run_iteration(self) -> ConnectAttemptOutcome:
        """Run one connect, account and close cycle."""
        outcome = self._connect()
        self._account_open(outcome)
        self._close(outcome)
        return outcome

    def _connect(self) -> ConnectAttemptOutcome:
        started = time.perf_counter()
        try:
            handle = self.task.connector.connect(self.task.target)
        except Exception as exc:  # noqa: BLE001
            return ConnectAttemptOutcome(
                kind=_FAILURE_OUTCOMES[classify(exc)],
                error=exc,
                latency_seconds=time.perf_counter() - started,
            )
        return ConnectAttemptOutcome(
            kind=OutcomeKind.OPENED,
            handle=handle,
            latency_seconds=time.perf_counter() - started,
        )

    def _account_open(self, outcome: ConnectAttemptOutcome) -> None:
        metrics = self.task.metrics
        if outcome.opened:
            metrics.mark_open(outcome.latency_seconds)
            return

        metrics.mark_failed_open()
        if outcome.kind is OutcomeKind.BIND_FAILED:
            metrics.mark_bind_failure()
        elif outcome.kind is OutcomeKind.REFUSED:
            metrics.mark_connection_refused()
        elif outcome.error is not None:
            self._record_fatal(outcome.error)

    def _record_fatal(self, error: BaseException) -> None:
        if self.task.stop_signal.trip(error):
            logger.error(
                "Worker %d: fatal connect failure, stopping all workers",
                self.task.worker_id,
                exc_info=error,
            )
        else:
            logger.debug(
                "Worker %d: fatal failure after stop already recorded: %r",
                self.task.worker_id,
                error,
            )

    def _close(self, outcome: ConnectAttemptOutcome) -> None:
        metrics = self.task.metrics
        if not outcome.opened:
            # Nothing was opened, so there is nothing to leak.
            metrics.mark_close()
            return

        try:
            self.task.connector.close(outcome.handle)
        except Exception:
            metrics.mark_failed_close()
            logger.warning(
                "Worker %d: failed to close %s handle",
                self.task.worker_id,
                self.task.connector.name,
                exc_info=True,
            )
        else:
            metrics.mark_close()
