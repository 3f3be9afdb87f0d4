"""Shared test fixtures for the LeakProbe test suite."""

from __future__ import annotations

import asyncio
import logging
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


@pytest.fixture(autouse=True)
def _reset_leakprobe_logging() -> Iterator[None]:
    """Drop handlers bound to streams that a test (or CliRunner) may close."""
    yield
    logger = logging.getLogger("leakprobe")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def refused_address() -> tuple[str, int]:
    """Address on localhost with nothing listening, so connects are refused."""
    return ("127.0.0.1", _get_free_port())


@pytest.fixture
def tcp_listener() -> Iterator[tuple[str, int]]:
    """Plain TCP listener that accepts every connection and closes it at once."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server.bind(("127.0.0.1", 0))
    server.listen(512)
    server.settimeout(0.1)
    stopped = threading.Event()

    def _accept_loop() -> None:
        while not stopped.is_set():
            try:
                conn, _addr = server.accept()
            except TimeoutError:
                continue
            except OSError:
                break
            conn.close()

    thread = threading.Thread(target=_accept_loop, name="test-listener", daemon=True)
    thread.start()

    yield server.getsockname()

    stopped.set()
    thread.join(timeout=5.0)
    server.close()


# =============================================================================
# HTTP server in a background thread
# =============================================================================


async def _ok_handler(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


def _create_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/", _ok_handler)
    app.router.add_get("/health", _ok_handler)
    return app


@pytest.fixture
def http_server() -> Iterator[tuple[str, int]]:
    """aiohttp server running on its own loop in a background thread."""
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(_create_app())
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield ("127.0.0.1", port)

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)
