"""Integration tests for the bundled connectors against real local sockets."""

from __future__ import annotations

import io
import os
import sys
import threading

import pytest
from rich.console import Console

from leakprobe._internal.errors import TransportError
from leakprobe.engine.classifier import FailureKind, classify
from leakprobe.engine.driver import StressDriver
from leakprobe.transports import (
    AsyncioConnector,
    HttpConnector,
    SelectorConnector,
    SocketConnector,
    build_connector,
)
from leakprobe.transports.http_connector import build_url

_RAW_CONNECTORS = [SocketConnector, SelectorConnector, AsyncioConnector]


def _open_fd_count() -> int:
    return len(os.listdir("/proc/self/fd"))


def _executor_threads() -> set[threading.Thread]:
    return {t for t in threading.enumerate() if t.name.startswith("asyncio_")}


@pytest.mark.timeout(30)
class TestRawConnectors:
    """Socket, selector and asyncio connectors."""

    @pytest.mark.parametrize("connector_cls", _RAW_CONNECTORS)
    def test_refused_connect_is_classified_as_refusal(
        self, connector_cls: type, refused_address: tuple[str, int]
    ) -> None:
        connector = connector_cls(timeout=5.0)
        with pytest.raises(OSError) as excinfo:
            connector.connect(refused_address)
        assert classify(excinfo.value) is FailureKind.CONNECTION_REFUSED

    @pytest.mark.parametrize("connector_cls", _RAW_CONNECTORS)
    def test_connect_and_close(self, connector_cls: type, tcp_listener: tuple[str, int]) -> None:
        connector = connector_cls(timeout=5.0)
        handle = connector.connect(tcp_listener)
        connector.close(handle)

    def test_socket_handle_is_released(self, tcp_listener: tuple[str, int]) -> None:
        connector = SocketConnector(timeout=5.0)
        sock = connector.connect(tcp_listener)
        connector.close(sock)
        assert sock.fileno() == -1

    def test_selector_handle_is_released(self, tcp_listener: tuple[str, int]) -> None:
        connector = SelectorConnector(timeout=5.0)
        handle = connector.connect(tcp_listener)
        connector.close(handle)
        assert handle.sock.fileno() == -1

    def test_asyncio_loop_is_closed(self, tcp_listener: tuple[str, int]) -> None:
        connector = AsyncioConnector(timeout=5.0)
        handle = connector.connect(tcp_listener)
        connector.close(handle)
        assert handle.loop.is_closed()

    def test_asyncio_hostname_lookup_threads_are_joined(
        self, tcp_listener: tuple[str, int]
    ) -> None:
        before = _executor_threads()
        connector = AsyncioConnector(timeout=5.0)
        handle = connector.connect(("localhost", tcp_listener[1]))
        connector.close(handle)
        assert _executor_threads() - before == set()

    def test_asyncio_failed_connect_closes_its_loop(
        self, refused_address: tuple[str, int], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        import asyncio

        loops: list[asyncio.AbstractEventLoop] = []
        original = asyncio.new_event_loop

        def _tracking_loop() -> asyncio.AbstractEventLoop:
            loop = original()
            loops.append(loop)
            return loop

        monkeypatch.setattr(asyncio, "new_event_loop", _tracking_loop)
        with pytest.raises(ConnectionRefusedError):
            AsyncioConnector(timeout=5.0).connect(refused_address)
        assert loops and all(loop.is_closed() for loop in loops)


@pytest.mark.timeout(30)
class TestHttpConnector:
    """aiohttp request/response connector."""

    def test_request_and_close(self, http_server: tuple[str, int]) -> None:
        connector = HttpConnector(timeout=5.0)
        handle = connector.connect(http_server)
        assert handle.response.status == 200
        connector.close(handle)
        assert handle.session.closed
        assert handle.loop.is_closed()

    def test_refusal_is_unwrapped(self, refused_address: tuple[str, int]) -> None:
        with pytest.raises(Exception) as excinfo:  # noqa: PT011
            HttpConnector(timeout=5.0).connect(refused_address)
        assert classify(excinfo.value) is FailureKind.CONNECTION_REFUSED

    def test_build_url(self) -> None:
        assert build_url(("127.0.0.1", 80), "health") == "http://127.0.0.1:80/health"
        assert build_url(("::1", 8080), "/") == "http://[::1]:8080/"


class TestBuildConnector:
    """Tests for build_connector."""

    @pytest.mark.parametrize(
        ("name", "cls"),
        [
            ("socket", SocketConnector),
            ("selector", SelectorConnector),
            ("asyncio", AsyncioConnector),
            ("uvloop", AsyncioConnector),
            ("http", HttpConnector),
        ],
    )
    def test_known_transports(self, name: str, cls: type) -> None:
        connector = build_connector(name, timeout=1.5)
        assert isinstance(connector, cls)
        assert connector.name == name

    def test_unknown_transport(self) -> None:
        with pytest.raises(TransportError, match="Unknown transport"):
            build_connector("grpc")


@pytest.mark.timeout(60)
class TestDriverWithRealSockets:
    """The driver against real listeners."""

    def test_refused_port_with_ten_workers(self, refused_address: tuple[str, int]) -> None:
        driver = StressDriver(
            SocketConnector(timeout=5.0),
            refused_address,
            worker_count=10,
            duration_seconds=0.5,
            settle_seconds=0.0,
            console=Console(file=io.StringIO()),
        )

        report = driver.run()

        m = report.metrics
        assert report.cancelled
        assert report.fatal_cause is None
        assert m.connections_refused.count > 0
        assert m.connections_refused.count == m.failed_opens
        assert m.successful_opens == 0
        assert m.successful_closes == m.total_attempts

    @pytest.mark.parametrize("transport", ["socket", "selector", "asyncio"])
    def test_accepting_listener(self, transport: str, tcp_listener: tuple[str, int]) -> None:
        driver = StressDriver(
            build_connector(transport, timeout=5.0),
            tcp_listener,
            worker_count=4,
            max_iterations=25,
            settle_seconds=0.0,
            print_report=False,
        )

        report = driver.run()

        m = report.metrics
        assert m.successful_opens == m.successful_closes == 100
        assert m.failed_opens == 0
        assert m.connect_latency.count == 100

    @pytest.mark.skipif(not sys.platform.startswith("linux"), reason="needs /proc/self/fd")
    def test_no_descriptor_leak(self, tcp_listener: tuple[str, int]) -> None:
        driver = StressDriver(
            SocketConnector(timeout=5.0),
            tcp_listener,
            worker_count=4,
            max_iterations=50,
            settle_seconds=0.0,
            print_report=False,
        )
        # Warm up once so lazily created descriptors are not counted as leaks.
        driver.run()
        before = _open_fd_count()

        driver.run()

        # The listener thread may be holding one accepted socket at either count.
        assert _open_fd_count() <= before + 1
