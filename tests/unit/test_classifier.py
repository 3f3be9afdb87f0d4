"""Tests for root-cause unwrapping and failure classification."""

from __future__ import annotations

import errno
import socket

import pytest

from leakprobe.engine.classifier import (
    FailureKind,
    classify,
    is_bind_failure,
    is_connection_refused,
    root_cause,
)


def _wrapped(inner: BaseException, *layers: type[Exception]) -> BaseException:
    """Wrap ``inner`` in ``layers`` using explicit ``raise ... from`` chaining."""
    current = inner
    for layer in layers:
        try:
            raise layer("wrapper") from current
        except Exception as exc:  # noqa: BLE001
            current = exc
    return current


class TestRootCause:
    """Tests for root_cause."""

    def test_exception_without_cause_is_its_own_root(self) -> None:
        exc = ValueError("alone")
        assert root_cause(exc) is exc

    def test_follows_explicit_cause_chain(self) -> None:
        inner = ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
        outer = _wrapped(inner, RuntimeError, OSError, RuntimeError)
        assert root_cause(outer) is inner

    def test_does_not_follow_implicit_context(self) -> None:
        try:
            try:
                raise KeyError("inner")
            except KeyError:
                raise RuntimeError("during handling")  # noqa: B904
        except RuntimeError as exc:
            assert root_cause(exc) is exc

    def test_stops_at_suppressed_context(self) -> None:
        try:
            try:
                raise KeyError("hidden")
            except KeyError:
                raise RuntimeError("visible") from None
        except RuntimeError as exc:
            assert root_cause(exc) is exc

    def test_self_referential_cause_terminates(self) -> None:
        exc = RuntimeError("loops onto itself")
        exc.__cause__ = exc
        assert root_cause(exc) is exc

    def test_two_node_cycle_terminates(self) -> None:
        first = RuntimeError("first")
        second = RuntimeError("second")
        first.__cause__ = second
        second.__cause__ = first
        assert root_cause(first) is second

    def test_cycle_below_a_wrapper_returns_last_unvisited_node(self) -> None:
        looping = ValueError("looping")
        looping.__cause__ = looping
        outer = RuntimeError("outer")
        outer.__cause__ = looping
        assert root_cause(outer) is looping


class TestPredicates:
    """Tests for the bind/refusal predicates."""

    @pytest.mark.parametrize("code", [errno.EADDRINUSE, errno.EADDRNOTAVAIL])
    def test_bind_errnos(self, code: int) -> None:
        assert is_bind_failure(OSError(code, "bind failed"))

    def test_refusal_is_not_a_bind_failure(self) -> None:
        assert not is_bind_failure(ConnectionRefusedError(errno.ECONNREFUSED, "refused"))

    def test_oserror_without_errno_is_not_a_bind_failure(self) -> None:
        assert not is_bind_failure(OSError("no errno"))

    def test_connection_refused_error(self) -> None:
        assert is_connection_refused(ConnectionRefusedError())

    def test_errno_constructed_oserror(self) -> None:
        assert is_connection_refused(OSError(errno.ECONNREFUSED, "Connection refused"))

    def test_reset_is_not_a_refusal(self) -> None:
        assert not is_connection_refused(ConnectionResetError(errno.ECONNRESET, "reset"))


class TestClassify:
    """Tests for classify."""

    def test_bind_failure(self) -> None:
        exc = OSError(errno.EADDRNOTAVAIL, "Cannot assign requested address")
        assert classify(exc) is FailureKind.BIND_FAILURE

    def test_wrapped_bind_failure(self) -> None:
        exc = _wrapped(OSError(errno.EADDRINUSE, "Address already in use"), RuntimeError)
        assert classify(exc) is FailureKind.BIND_FAILURE

    def test_connection_refused(self) -> None:
        assert classify(ConnectionRefusedError(errno.ECONNREFUSED, "refused")) is (
            FailureKind.CONNECTION_REFUSED
        )

    def test_wrapped_connection_refused(self) -> None:
        exc = _wrapped(ConnectionRefusedError(errno.ECONNREFUSED, "refused"), OSError, RuntimeError)
        assert classify(exc) is FailureKind.CONNECTION_REFUSED

    def test_error_raised_while_handling_refusal_is_fatal(self) -> None:
        try:
            try:
                raise ConnectionRefusedError(errno.ECONNREFUSED, "refused")
            except ConnectionRefusedError:
                raise ValueError("protocol violation")  # noqa: B904
        except ValueError as exc:
            assert isinstance(exc.__context__, ConnectionRefusedError)
            assert classify(exc) is FailureKind.FATAL

    def test_refusal_hidden_under_fatal_root_is_fatal(self) -> None:
        refused = ConnectionRefusedError(errno.ECONNREFUSED, "refused")
        outer = ValueError("protocol error")
        refused.__cause__ = outer
        # Classification looks at the root, which is ValueError here.
        assert classify(refused) is FailureKind.FATAL

    @pytest.mark.parametrize(
        "exc",
        [
            ValueError("protocol violation"),
            TimeoutError("timed out"),
            ConnectionResetError(errno.ECONNRESET, "reset by peer"),
            OSError(errno.EMFILE, "Too many open files"),
            socket.gaierror(socket.EAI_NONAME, "Name or service not known"),
        ],
    )
    def test_everything_else_is_fatal(self, exc: BaseException) -> None:
        assert classify(exc) is FailureKind.FATAL

    def test_self_referential_fatal_terminates(self) -> None:
        exc = RuntimeError("cyclic")
        exc.__cause__ = exc
        assert classify(exc) is FailureKind.FATAL

    def test_is_expected(self) -> None:
        assert FailureKind.BIND_FAILURE.is_expected
        assert FailureKind.CONNECTION_REFUSED.is_expected
        assert not FailureKind.FATAL.is_expected
