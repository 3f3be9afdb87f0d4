"""Connector that builds a fresh asyncio event loop for every attempt.

A new loop per attempt churns the loop's own selector and self-pipe
descriptors alongside the TCP socket, the way a per-connection NIO
transport would.
"""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from leakprobe._internal.logging import get_logger

if TYPE_CHECKING:
    from leakprobe._internal.types import Address

logger = get_logger("transports.asyncio")


@dataclass
class AsyncioHandle:
    """An open stream and the private loop that owns it."""

    loop: asyncio.AbstractEventLoop
    writer: asyncio.StreamWriter


def _new_event_loop(use_uvloop: bool) -> asyncio.AbstractEventLoop:
    """Return a new uvloop loop when requested and available, else a default loop."""
    if use_uvloop and sys.platform != "win32":
        try:
            import uvloop
        except ImportError:
            logger.debug("uvloop not available, using default asyncio event loop")
        else:
            return uvloop.new_event_loop()
    return asyncio.new_event_loop()


def close_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Join the loop's default executor, then close the loop.

    Hostname lookups run on the default executor, whose threads would
    otherwise outlive the attempt.
    """
    try:
        loop.run_until_complete(loop.shutdown_default_executor())
    finally:
        loop.close()


class AsyncioConnector:
    """Opens ``asyncio.open_connection`` on a private event loop per attempt.

    Attributes:
        timeout: Connect timeout in seconds, or None.
        use_uvloop: Build uvloop event loops instead of the default loop.
    """

    def __init__(self, timeout: float | None = None, *, use_uvloop: bool = False) -> None:
        self.timeout = timeout
        self.use_uvloop = use_uvloop
        self.name = "uvloop" if use_uvloop else "asyncio"

    def connect(self, address: Address) -> AsyncioHandle:
        host, port = address
        loop = _new_event_loop(self.use_uvloop)
        try:
            _reader, writer = loop.run_until_complete(
                asyncio.wait_for(asyncio.open_connection(host, port), self.timeout)
            )
        except BaseException:
            close_loop(loop)
            raise
        return AsyncioHandle(loop=loop, writer=writer)

    def close(self, handle: AsyncioHandle) -> None:
        try:
            handle.writer.close()
            handle.loop.run_until_complete(handle.writer.wait_closed())
        finally:
            close_loop(handle.loop)
