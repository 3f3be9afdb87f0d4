"""``leakprobe run``: drive a connect/close stress test from the command line."""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.panel import Panel

from leakprobe._internal.config import load_config
from leakprobe._internal.errors import LeakProbeError
from leakprobe._internal.logging import setup_logging
from leakprobe.engine.classifier import root_cause
from leakprobe.engine.driver import StressDriver
from leakprobe.transports import TRANSPORTS, build_connector

console = Console(stderr=True)


def parse_target(value: str) -> tuple[str, int]:
    """Parse ``HOST:PORT`` (or ``[IPV6]:PORT``) into an address tuple.

    Raises:
        typer.BadParameter: If the value is malformed.
    """
    host, sep, port_str = value.rpartition(":")
    if not sep or not host:
        msg = f"target must look like HOST:PORT, got {value!r}"
        raise typer.BadParameter(msg)
    host = host.removeprefix("[").removesuffix("]")
    try:
        port = int(port_str)
    except ValueError:
        msg = f"port must be an integer, got {port_str!r}"
        raise typer.BadParameter(msg) from None
    if not 1 <= port <= 65535:
        msg = f"port must be between 1 and 65535, got {port}"
        raise typer.BadParameter(msg)
    return host, port


def run_cmd(
    target: str | None = typer.Option(
        None,
        "--target",
        "-t",
        help="Endpoint as HOST:PORT (default: LEAKPROBE_TARGET_HOST:LEAKPROBE_TARGET_PORT).",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        help="Concurrent connection workers (default: LEAKPROBE_WORKERS or 10).",
        min=1,
    ),
    transport: str = typer.Option(
        "socket",
        "--transport",
        help=f"Connector to churn: {', '.join(TRANSPORTS)}.",
    ),
    delay: float | None = typer.Option(
        None,
        "--delay",
        help="Seconds each worker pauses before every attempt.",
        min=0.0,
    ),
    duration: float | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Cancel the run after this many seconds.",
        min=0.001,
    ),
    max_iterations: int | None = typer.Option(
        None,
        "--max-iterations",
        "-n",
        help="Stop each worker after this many attempts.",
        min=1,
    ),
    connect_timeout: float | None = typer.Option(
        None,
        "--connect-timeout",
        help="Connector timeout in seconds (default: none).",
        min=0.001,
    ),
    report_interval: float | None = typer.Option(
        None,
        "--report-interval",
        help="Seconds between periodic metric reports; 0 disables.",
        min=0.0,
    ),
    settle: float | None = typer.Option(
        None,
        "--settle",
        help="Seconds to wait after the workers exit before the final report.",
        min=0.0,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit logs as one JSON object per line.",
    ),
) -> None:
    """Open and close connections from many workers until a fatal failure or cancellation."""
    log_level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=log_level, json_format=json_logs)

    try:
        config = load_config()
        address = parse_target(target) if target is not None else config.target
        connector = build_connector(
            transport,
            timeout=connect_timeout if connect_timeout is not None else config.connect_timeout,
        )
        driver = StressDriver(
            connector,
            address,
            worker_count=workers if workers is not None else config.worker_count,
            delay_seconds=delay if delay is not None else config.delay_seconds,
            max_iterations=max_iterations,
            duration_seconds=duration,
            settle_seconds=settle if settle is not None else config.settle_seconds,
            report_interval=report_interval if report_interval is not None else config.report_interval,
            console=console,
            log_level=log_level,
        )
    except LeakProbeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]Target:[/bold]    {address[0]}:{address[1]}\n"
            f"[bold]Transport:[/bold] {connector.name}\n"
            f"[bold]Workers:[/bold]   {driver.worker_count}",
            title="LeakProbe",
            border_style="cyan",
        )
    )

    try:
        report = driver.run()
    except LeakProbeError as exc:
        console.print(f"[red]Stress run failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    except Exception as exc:
        root = root_cause(exc)
        console.print(f"[red]FATAL:[/red] {type(exc).__name__}: {exc}")
        if root is not exc:
            console.print(f"  root cause: {type(root).__name__}: {root}")
        raise typer.Exit(code=1) from exc

    outcome = "cancelled" if report.cancelled else "completed"
    console.print(f"[green]Stress run {outcome} without fatal failures.[/green] {report.summary_line()}")
