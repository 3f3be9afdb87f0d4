"""Non-blocking TCP connector that waits for connection completion on a selector.

Each attempt owns a fresh selector as well as a socket, so both kinds of
file descriptor are churned.
"""

from __future__ import annotations

import errno
import os
import selectors
import socket
from dataclasses import dataclass
from typing import TYPE_CHECKING

from leakprobe.transports.socket_connector import resolve_stream_address

if TYPE_CHECKING:
    from leakprobe._internal.types import Address

_IN_PROGRESS = frozenset({0, errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EALREADY})


@dataclass
class SelectorHandle:
    """A connected non-blocking socket and the selector that watched it."""

    selector: selectors.BaseSelector
    sock: socket.socket


def _raise_for_errno(err: int) -> None:
    # OSError(errno, ...) instantiates the matching subclass, e.g.
    # ConnectionRefusedError for ECONNREFUSED.
    if err:
        raise OSError(err, os.strerror(err))


class SelectorConnector:
    """Connects a non-blocking socket and selects for writability.

    Attributes:
        timeout: Seconds to wait for the connection to complete, or None.
    """

    name = "selector"

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def connect(self, address: Address) -> SelectorHandle:
        family, type_, proto, sockaddr = resolve_stream_address(address)
        selector = selectors.DefaultSelector()
        sock: socket.socket | None = None
        try:
            sock = socket.socket(family, type_, proto)
            sock.setblocking(False)
            err = sock.connect_ex(sockaddr)
            if err not in _IN_PROGRESS:
                _raise_for_errno(err)
            if err:
                selector.register(sock, selectors.EVENT_WRITE)
                if not selector.select(self.timeout):
                    msg = f"connect to {address[0]}:{address[1]} timed out"
                    raise TimeoutError(msg)
                _raise_for_errno(sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR))
        except BaseException:
            if sock is not None:
                sock.close()
            selector.close()
            raise
        return SelectorHandle(selector=selector, sock=sock)

    def close(self, handle: SelectorHandle) -> None:
        try:
            handle.selector.close()
        finally:
            handle.sock.close()
