"""Contracts between the stress engine and the connect/close capability it drives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

    from leakprobe._internal.types import Address


@runtime_checkable
class Connector(Protocol):
    """A connect/close capability pair.

    ``connect`` blocks until a connection to ``address`` is established
    and returns an opaque handle, or raises. A connector that acquires
    resources before failing must release them before raising; the
    worker only closes handles that ``connect`` returned.

    ``close`` releases a handle returned by ``connect`` and may raise.
    Neither call is given a timeout by the engine.
    """

    name: str

    def connect(self, address: Address) -> Any: ...

    def close(self, handle: Any) -> None: ...


class FunctionConnector:
    """Adapts a plain ``(connect, close)`` callable pair to ``Connector``.

    Attributes:
        name: Label used in logs and reports.
    """

    def __init__(
        self,
        connect: Callable[[Address], Any],
        close: Callable[[Any], None],
        *,
        name: str = "custom",
    ) -> None:
        self._connect = connect
        self._close = close
        self.name = name

    def connect(self, address: Address) -> Any:
        return self._connect(address)

    def close(self, handle: Any) -> None:
        self._close(handle)

    def __repr__(self) -> str:
        return f"FunctionConnector(name={self.name!r})"


@dataclass(frozen=True)
class WorkerResult:
    """Summary a worker returns when its loop exits.

    Attributes:
        worker_id: Identifier of the worker.
        iterations: Connect attempts the worker made.
        stopped_by_signal: True if the worker exited because the stop
            signal was raised, False if it hit its iteration bound.
    """

    worker_id: int
    iterations: int
    stopped_by_signal: bool
