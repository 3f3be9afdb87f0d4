"""Bundled connect/close capabilities."""

from __future__ import annotations

from typing import TYPE_CHECKING

from leakprobe._internal.errors import TransportError
from leakprobe.transports.asyncio_connector import AsyncioConnector
from leakprobe.transports.http_connector import HttpConnector
from leakprobe.transports.selector_connector import SelectorConnector
from leakprobe.transports.socket_connector import SocketConnector

if TYPE_CHECKING:
    from leakprobe.engine.protocol import Connector

TRANSPORTS = ("socket", "selector", "asyncio", "uvloop", "http")


def build_connector(name: str, *, timeout: float | None = None) -> Connector:
    """Construct a bundled connector by transport name.

    Args:
        name: One of ``TRANSPORTS``.
        timeout: Connect timeout handed to the connector.

    Returns:
        A ready-to-use connector.

    Raises:
        TransportError: If ``name`` is not a bundled transport.
    """
    if name == "socket":
        return SocketConnector(timeout=timeout)
    if name == "selector":
        return SelectorConnector(timeout=timeout)
    if name == "asyncio":
        return AsyncioConnector(timeout=timeout)
    if name == "uvloop":
        return AsyncioConnector(timeout=timeout, use_uvloop=True)
    if name == "http":
        return HttpConnector(timeout=timeout)

    msg = f"Unknown transport: {name}. Choose from: {', '.join(TRANSPORTS)}"
    raise TransportError(msg)


__all__ = [
    "TRANSPORTS",
    "AsyncioConnector",
    "HttpConnector",
    "SelectorConnector",
    "SocketConnector",
    "build_connector",
]
