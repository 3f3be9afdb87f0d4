"""Request/response connector: one aiohttp session and request per attempt.

An attempt counts as opened once a response has been read, whatever its
status code; the protocol exchange itself is what is being churned.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiohttp

from leakprobe.transports.asyncio_connector import close_loop

if TYPE_CHECKING:
    from leakprobe._internal.types import Address


@dataclass
class HttpHandle:
    """An aiohttp session, its last response and the loop that owns both."""

    loop: asyncio.AbstractEventLoop
    session: aiohttp.ClientSession
    response: aiohttp.ClientResponse


def build_url(address: Address, path: str) -> str:
    """Build an ``http://`` URL for ``address``, bracketing IPv6 literals."""
    host, port = address
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    if not path.startswith("/"):
        path = f"/{path}"
    return f"http://{host}:{port}{path}"


class HttpConnector:
    """Sends one HTTP request over a fresh connection per attempt.

    Attributes:
        timeout: Total request timeout in seconds, or None.
        method: HTTP method to send.
        path: Request path.
    """

    name = "http"

    def __init__(
        self,
        timeout: float | None = None,
        *,
        method: str = "GET",
        path: str = "/",
    ) -> None:
        self.timeout = timeout
        self.method = method
        self.path = path

    def connect(self, address: Address) -> HttpHandle:
        loop = asyncio.new_event_loop()
        try:
            session, response = loop.run_until_complete(self._request(address))
        except BaseException:
            close_loop(loop)
            raise
        return HttpHandle(loop=loop, session=session, response=response)

    async def _request(self, address: Address) -> tuple[aiohttp.ClientSession, aiohttp.ClientResponse]:
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            connector=aiohttp.TCPConnector(force_close=True, limit=1),
        )
        try:
            response = await session.request(self.method, build_url(address, self.path))
            await response.read()
        except BaseException:
            await session.close()
            raise
        return session, response

    def close(self, handle: HttpHandle) -> None:
        try:
            handle.response.release()
            handle.loop.run_until_complete(handle.session.close())
        finally:
            close_loop(handle.loop)
