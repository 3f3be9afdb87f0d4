"""Classification of connect/close failures into expected and fatal kinds.

A failure is judged by its *root cause*: the innermost exception reached
by following explicit ``__cause__`` links. Implicit ``__context__`` is
not followed: an error raised while handling a refusal is a new failure.
Connection libraries usually wrap the OS error several layers deep, e.g.
``aiohttp.ClientConnectorError`` raised ``from`` a ``ConnectionRefusedError``.
"""

from __future__ import annotations

import errno
from enum import Enum, auto

# Local address allocation failures: ephemeral ports exhausted, or the
# chosen source address/port is unavailable.
_BIND_ERRNOS = frozenset({errno.EADDRINUSE, errno.EADDRNOTAVAIL})


class FailureKind(Enum):
    """Outcome of classifying a failed connect attempt."""

    BIND_FAILURE = auto()
    CONNECTION_REFUSED = auto()
    FATAL = auto()

    @property
    def is_expected(self) -> bool:
        """Return True for failures that are counted but never escalated."""
        return self is not FailureKind.FATAL


def root_cause(exc: BaseException) -> BaseException:
    """Return the innermost exception in ``exc``'s cause chain.

    Unwrapping stops when a node has no cause or when the next cause was
    already visited, so self-referential and longer cyclic chains return
    the last unvisited node instead of looping.

    Args:
        exc: The outermost exception.

    Returns:
        The root cause, which is ``exc`` itself when it has no cause.
    """
    seen = {id(exc)}
    current = exc
    while True:
        nxt = current.__cause__
        if nxt is None or id(nxt) in seen:
            return current
        seen.add(id(nxt))
        current = nxt


def is_bind_failure(exc: BaseException) -> bool:
    """Return True if ``exc`` is an OS-level local bind/address failure."""
    return isinstance(exc, OSError) and exc.errno in _BIND_ERRNOS


def is_connection_refused(exc: BaseException) -> bool:
    """Return True if ``exc`` is the remote peer refusing the connection.

    Only ``ECONNREFUSED`` qualifies; resets, timeouts and unreachable
    hosts are different conditions.
    """
    if isinstance(exc, ConnectionRefusedError):
        return True
    return isinstance(exc, OSError) and exc.errno == errno.ECONNREFUSED


def classify(exc: BaseException) -> FailureKind:
    """Classify a connect failure by its root cause.

    Args:
        exc: Exception raised by a connect capability.

    Returns:
        ``BIND_FAILURE``, ``CONNECTION_REFUSED`` or ``FATAL``.
    """
    root = root_cause(exc)
    if is_bind_failure(root):
        return FailureKind.BIND_FAILURE
    if is_connection_refused(root):
        return FailureKind.CONNECTION_REFUSED
    return FailureKind.FATAL
