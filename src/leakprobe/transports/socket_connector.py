"""Raw TCP connector over a blocking socket."""

from __future__ import annotations

import socket
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from leakprobe._internal.types import Address

SockAddr = tuple[socket.AddressFamily, socket.SocketKind, int, tuple]


def resolve_stream_address(address: Address) -> SockAddr:
    """Resolve ``(host, port)`` to the first TCP ``(family, type, proto, sockaddr)``.

    Raises:
        socket.gaierror: If the host cannot be resolved.
    """
    host, port = address
    family, type_, proto, _canon, sockaddr = socket.getaddrinfo(
        host, port, type=socket.SOCK_STREAM
    )[0]
    return family, type_, proto, sockaddr


class SocketConnector:
    """Opens one blocking TCP socket per attempt.

    The handle is the connected ``socket.socket``; closing it releases the
    file descriptor. A socket whose connect fails is closed before the
    error propagates.

    Attributes:
        timeout: Connect timeout in seconds, or None to block indefinitely.
    """

    name = "socket"

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def connect(self, address: Address) -> socket.socket:
        family, type_, proto, sockaddr = resolve_stream_address(address)
        sock = socket.socket(family, type_, proto)
        try:
            sock.settimeout(self.timeout)
            sock.connect(sockaddr)
        except BaseException:
            sock.close()
            raise
        return sock

    def close(self, handle: socket.socket) -> None:
        handle.close()
