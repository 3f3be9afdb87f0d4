"""Configuration loading for LeakProbe."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from leakprobe._internal.errors import ConfigError

if TYPE_CHECKING:
    from leakprobe._internal.types import Address


@dataclass(frozen=True)
class LeakProbeConfig:
    """Global LeakProbe configuration.

    Attributes:
        worker_count: Number of concurrent connection workers.
        target_host: Host every worker connects to.
        target_port: Port every worker connects to. The default is a port
            nothing normally listens on, so refusals are the steady state.
        delay_seconds: Pause before each connect attempt; 0 disables pacing.
        report_interval: Seconds between periodic console reports; 0 disables.
        settle_seconds: Pause after all workers exit, before the final report.
        connect_timeout: Timeout handed to bundled connectors, or None.
    """

    worker_count: int = 10
    target_host: str = "127.0.0.1"
    target_port: int = 6666
    delay_seconds: float = 0.0
    report_interval: float = 10.0
    settle_seconds: float = 1.0
    connect_timeout: float | None = None

    @property
    def target(self) -> Address:
        """Return the target as a ``(host, port)`` tuple."""
        return (self.target_host, self.target_port)


def _read_int(name: str, default: int, *, minimum: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got: {raw!r}"
        raise ConfigError(msg) from None
    if value < minimum:
        msg = f"{name} must be >= {minimum}, got: {value}"
        raise ConfigError(msg)
    return value


def _read_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None
    if value < 0:
        msg = f"{name} must not be negative, got: {value}"
        raise ConfigError(msg)
    return value


def load_config() -> LeakProbeConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        LEAKPROBE_WORKERS: Worker count (default: 10).
        LEAKPROBE_TARGET_HOST: Target host (default: 127.0.0.1).
        LEAKPROBE_TARGET_PORT: Target port (default: 6666).
        LEAKPROBE_DELAY: Seconds to pause before each attempt (default: 0).
        LEAKPROBE_REPORT_INTERVAL: Seconds between console reports (default: 10).
        LEAKPROBE_SETTLE: Seconds to wait before the final report (default: 1).
        LEAKPROBE_CONNECT_TIMEOUT: Connector timeout in seconds; unset or 0
            means no timeout.

    Returns:
        Populated LeakProbeConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    port = _read_int("LEAKPROBE_TARGET_PORT", 6666, minimum=1)
    if port > 65535:
        msg = f"LEAKPROBE_TARGET_PORT must be <= 65535, got: {port}"
        raise ConfigError(msg)

    timeout = _read_float("LEAKPROBE_CONNECT_TIMEOUT", 0.0)

    return LeakProbeConfig(
        worker_count=_read_int("LEAKPROBE_WORKERS", 10, minimum=1),
        target_host=os.environ.get("LEAKPROBE_TARGET_HOST", "127.0.0.1"),
        target_port=port,
        delay_seconds=_read_float("LEAKPROBE_DELAY", 0.0),
        report_interval=_read_float("LEAKPROBE_REPORT_INTERVAL", 10.0),
        settle_seconds=_read_float("LEAKPROBE_SETTLE", 1.0),
        connect_timeout=timeout or None,
    )
