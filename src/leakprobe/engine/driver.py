"""Stress driver: runs N connection workers until a fatal failure or cancellation."""

from __future__ import annotations

import signal
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Any

from leakprobe._internal.errors import EngineError
from leakprobe._internal.logging import get_logger, setup_logging
from leakprobe.engine.protocol import FunctionConnector
from leakprobe.engine.stop_signal import StopSignal
from leakprobe.engine.worker import ConnectionWorker, WorkerTask
from leakprobe.metrics.models import StressReport
from leakprobe.metrics.reporter import ConsoleReporter
from leakprobe.metrics.sink import ConnectionMetrics

if TYPE_CHECKING:
    from collections.abc import Callable

    from rich.console import Console

    from leakprobe._internal.types import Address
    from leakprobe.engine.protocol import Connector, WorkerResult

logger = get_logger("engine.driver")


class StressDriver:
    """Orchestrates one connection-churn stress run.

    Starts ``worker_count`` worker threads against a single target, blocks
    until every worker has exited, waits ``settle_seconds`` for in-flight
    metric updates to land, prints and returns the final report, and
    re-raises the first fatal failure if one ended the run.

    Without a fatal failure, workers only exit through cancellation:
    ``cancel()``, SIGINT/SIGTERM (when running on the main thread), the
    ``duration_seconds`` timer, or their own ``max_iterations`` bound.

    Attributes:
        connector: The connect/close capability every worker uses.
        target: Address every worker connects to.
        worker_count: Number of concurrent workers.
        metrics: Metrics sink, reset at the start of every run.
        last_report: Report of the most recent run, also set when the run
            ended with a fatal failure.
    """

    def __init__(
        self,
        connector: Connector,
        target: Address,
        *,
        worker_count: int = 10,
        delay_seconds: float = 0.0,
        max_iterations: int | None = None,
        duration_seconds: float | None = None,
        settle_seconds: float = 1.0,
        report_interval: float | None = None,
        print_report: bool = True,
        metrics: ConnectionMetrics | None = None,
        console: Console | None = None,
        log_level: int = 20,
    ) -> None:
        """Initialize the driver.

        Args:
            connector: The connect/close capability.
            target: ``(host, port)`` every worker connects to.
            worker_count: Number of concurrent workers.
            delay_seconds: Per-worker pause before each attempt.
            max_iterations: Optional per-worker bound on attempts.
            duration_seconds: Optional wall-clock limit, after which the
                run is cancelled.
            settle_seconds: Pause between the last worker exiting and the
                final snapshot.
            report_interval: Seconds between periodic console reports;
                None or 0 disables them.
            print_report: Print the final metrics table.
            metrics: Metrics sink to use; a fresh one by default.
            console: Console for reports (stderr by default).
            log_level: Logging level.

        Raises:
            EngineError: If a numeric setting is out of range.
        """
        if worker_count < 1:
            msg = f"worker_count must be >= 1, got {worker_count}"
            raise EngineError(msg)
        if delay_seconds < 0:
            msg = f"delay_seconds must not be negative, got {delay_seconds}"
            raise EngineError(msg)
        if settle_seconds < 0:
            msg = f"settle_seconds must not be negative, got {settle_seconds}"
            raise EngineError(msg)
        if max_iterations is not None and max_iterations < 1:
            msg = f"max_iterations must be >= 1, got {max_iterations}"
            raise EngineError(msg)
        if duration_seconds is not None and duration_seconds <= 0:
            msg = f"duration_seconds must be positive, got {duration_seconds}"
            raise EngineError(msg)

        self.connector = connector
        self.target = target
        self.worker_count = worker_count
        self._delay_seconds = delay_seconds
        self._max_iterations = max_iterations
        self._duration_seconds = duration_seconds
        self._settle_seconds = settle_seconds
        self._report_interval = report_interval
        self._print_report = print_report
        self._log_level = log_level

        self.metrics = metrics if metrics is not None else ConnectionMetrics()
        self.reporter = ConsoleReporter(self.metrics, console=console)
        self.last_report: StressReport | None = None
        self._stop_signal: StopSignal | None = None

    @property
    def stop_signal(self) -> StopSignal | None:
        """Return the stop signal of the current or last run."""
        return self._stop_signal

    def cancel(self) -> None:
        """Cancel the current run; workers exit after their in-flight attempt."""
        if self._stop_signal is not None:
            logger.info("Cancellation requested")
            self._stop_signal.cancel()

    def run(self) -> StressReport:
        """Execute the stress run.

        Returns:
            StressReport when the run ended without a fatal failure.

        Raises:
            BaseException: The first fatal failure, re-raised unchanged
                with a final-metrics note attached.
            EngineError: If a worker thread crashed outside its attempt loop.
        """
        setup_logging(level=self._log_level)
        self.metrics.reset()
        stop = StopSignal()
        self._stop_signal = stop

        host, port = self.target
        logger.info(
            "Starting stress run: target=%s:%d, connector=%s, workers=%d, delay=%.3fs",
            host,
            port,
            self.connector.name,
            self.worker_count,
            self._delay_seconds,
        )

        start_time = time.monotonic()
        with self._cancellation_sources(stop):
            results, crash = self._run_workers(stop)
        duration = time.monotonic() - start_time

        if self._settle_seconds > 0:
            time.sleep(self._settle_seconds)

        report = StressReport(
            worker_count=self.worker_count,
            target=f"{host}:{port}",
            duration_seconds=duration,
            metrics=self.metrics.snapshot(),
            fatal_cause=stop.fatal_cause,
            cancelled=stop.cancelled,
            worker_results=sorted(results, key=lambda r: r.worker_id),
        )
        self.last_report = report

        if self._print_report:
            self.reporter.report(report.metrics, title="Final connection metrics")

        if crash is not None:
            msg = "Connection worker crashed"
            raise EngineError(msg) from crash

        logger.info(
            "Stress run finished in %.1fs (%s): %s",
            duration,
            "fatal" if report.failed else "cancelled" if report.cancelled else "bounded",
            report.summary_line(),
        )

        if report.fatal_cause is not None:
            report.fatal_cause.add_note(f"leakprobe final metrics: {report.summary_line()}")
            raise report.fatal_cause

        return report

    def _run_workers(self, stop: StopSignal) -> tuple[list[WorkerResult], BaseException | None]:
        """Run all workers to completion; cancel the rest if one crashes."""
        results: list[WorkerResult] = []
        crash: BaseException | None = None

        with ThreadPoolExecutor(
            max_workers=self.worker_count,
            thread_name_prefix="leakprobe-worker",
        ) as executor:
            futures = [
                executor.submit(ConnectionWorker(self._make_task(i, stop)).run)
                for i in range(self.worker_count)
            ]
            for future in as_completed(futures):
                try:
                    results.append(future.result())
                except Exception as exc:
                    logger.exception("Connection worker crashed, cancelling run")
                    stop.cancel()
                    if crash is None:
                        crash = exc

        return results, crash

    def _make_task(self, worker_id: int, stop: StopSignal) -> WorkerTask:
        return WorkerTask(
            worker_id=worker_id,
            target=self.target,
            connector=self.connector,
            metrics=self.metrics,
            stop_signal=stop,
            delay_seconds=self._delay_seconds,
            max_iterations=self._max_iterations,
        )

    def _cancellation_sources(self, stop: StopSignal) -> _CancellationSources:
        return _CancellationSources(
            stop,
            duration_seconds=self._duration_seconds,
            reporter=self.reporter,
            report_interval=self._report_interval,
        )


class _CancellationSources:
    """Context manager owning everything that runs alongside the workers.

    Installs SIGINT/SIGTERM handlers (main thread only), arms the duration
    timer and starts the periodic reporter; undoes all of it on exit.
    """

    def __init__(
        self,
        stop: StopSignal,
        *,
        duration_seconds: float | None,
        reporter: ConsoleReporter,
        report_interval: float | None,
    ) -> None:
        self._stop = stop
        self._duration_seconds = duration_seconds
        self._reporter = reporter
        self._report_interval = report_interval
        self._timer: threading.Timer | None = None
        self._original_handlers: dict[int, Any] = {}

    def __enter__(self) -> _CancellationSources:
        if threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGINT, signal.SIGTERM):
                self._original_handlers[signum] = signal.getsignal(signum)
                signal.signal(signum, self._signal_handler)

        if self._duration_seconds is not None:
            self._timer = threading.Timer(self._duration_seconds, self._on_timeout)
            self._timer.daemon = True
            self._timer.start()

        if self._report_interval:
            self._reporter.start(self._report_interval)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._reporter.stop()
        if self._timer is not None:
            self._timer.cancel()
        for signum, handler in self._original_handlers.items():
            signal.signal(signum, handler)
        self._original_handlers.clear()

    def _signal_handler(self, signum: int, _frame: object) -> None:
        logger.info("Signal %d received, stopping workers", signum)
        self._stop.cancel()

    def _on_timeout(self) -> None:
        logger.info("Duration of %.1fs elapsed, stopping workers", self._duration_seconds)
        self._stop.cancel()


def run_stress_test(
    worker_count: int,
    target: Address,
    connect: Callable[[Address], Any],
    close: Callable[[Any], None],
    delay_seconds: float = 0.0,
    **driver_options: Any,
) -> StressReport:
    """Run a stress test with a plain ``(connect, close)`` callable pair.

    Args:
        worker_count: Number of concurrent workers.
        target: ``(host, port)`` every worker connects to.
        connect: Opens a connection and returns a handle, or raises.
        close: Releases a handle returned by ``connect``.
        delay_seconds: Per-worker pause before each attempt.
        **driver_options: Further ``StressDriver`` keyword arguments.

    Returns:
        StressReport of a run that ended without a fatal failure.

    Raises:
        BaseException: The first fatal failure observed by any worker.
    """
    driver = StressDriver(
        FunctionConnector(connect, close),
        target,
        worker_count=worker_count,
        delay_seconds=delay_seconds,
        **driver_options,
    )
    return driver.run()
