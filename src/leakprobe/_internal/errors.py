"""Custom exception hierarchy for LeakProbe."""

from __future__ import annotations


class LeakProbeError(Exception):
    """Base exception for all LeakProbe errors.

    Fatal failures raised by a connect capability are *not* wrapped in
    this hierarchy; the driver re-raises them unchanged so the original
    diagnostic survives.
    """


class ConfigError(LeakProbeError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Required environment variable has an invalid value.
        - Configuration value is out of acceptable range.
    """


class EngineError(LeakProbeError):
    """Raised when a stress run cannot be started or a worker crashes.

    Examples:
        - Worker count is not positive.
        - A worker thread died outside of its connect/close cycle.
    """


class TransportError(LeakProbeError):
    """Raised when a transport name does not map to a bundled connector."""
