"""Shared stop flag and first-fatal-wins cause slot."""

from __future__ import annotations

import threading


class StopSignal:
    """Cancellation flag plus a single-assignment fatal-cause slot.

    Every worker of a run shares one instance. ``trip()`` records a fatal
    cause and raises the flag; only the first cause is kept, later ones
    are reported back as losers and discarded. ``cancel()`` raises the
    flag without a cause (external cancellation). The flag is never
    lowered; a new run needs a new instance.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._cause: BaseException | None = None
        self._cancelled = False

    @property
    def is_set(self) -> bool:
        """Return True once the run has been told to stop."""
        return self._event.is_set()

    @property
    def fatal_cause(self) -> BaseException | None:
        """Return the first recorded fatal cause, or None."""
        with self._lock:
            return self._cause

    @property
    def cancelled(self) -> bool:
        """Return True if the flag was raised by external cancellation."""
        with self._lock:
            return self._cancelled

    def trip(self, cause: BaseException) -> bool:
        """Record ``cause`` as the fatal cause and raise the flag.

        Compare-and-set under the lock: the slot is written only while it
        is empty, so the original diagnostic is never overwritten.

        Args:
            cause: The fatal exception.

        Returns:
            True if this call recorded the cause, False if another cause
            was already recorded.
        """
        with self._lock:
            won = self._cause is None
            if won:
                self._cause = cause
        self._event.set()
        return won

    def cancel(self) -> None:
        """Raise the flag without a fatal cause."""
        with self._lock:
            if self._cause is None:
                self._cancelled = True
        self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the flag is raised or ``timeout`` elapses.

        Returns:
            True if the flag is set.
        """
        return self._event.wait(timeout)
