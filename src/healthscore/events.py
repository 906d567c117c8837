"""Minimal publish/subscribe and debounce primitives for the orchestrator.

Both run on the current asyncio event loop and never spawn threads.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Observable(Generic[T]):
    """A value that notifies subscribers when it changes.

    Publishing a value equal to the current one is a no-op.
    """

    def __init__(self, initial: T, name: str = "") -> None:
        self._value = initial
        self.name = name
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, callback: Callable[[T], None], *, replay: bool = False) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it.

        With ``replay=True`` the callback is invoked once immediately with
        the current value.
        """
        self._subscribers.append(callback)
        if replay:
            callback(self._value)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, value: T) -> bool:
        """Set the value; notify subscribers and return True if it changed."""
        if value == self._value:
            return False
        self._value = value
        logger.debug("%s -> %r", self.name or "observable", value)
        for callback in list(self._subscribers):
            callback(value)
        return True

    def __repr__(self) -> str:
        return f"Observable({self.name or '?'}={self._value!r}, subs={len(self._subscribers)})"


class Debouncer:
    """Trailing-edge debounce: run *callback* once, *delay* seconds after
    the last :meth:`trigger`.

    Timing uses ``loop.call_later`` on the running loop.  Triggers made
    with no running loop stay pending until :meth:`flush`.
    """

    def __init__(self, delay: float, callback: Callable[[], None], name: str = "") -> None:
        self.delay = delay
        self.callback = callback
        self.name = name
        self._pending = False
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._pending

    def trigger(self) -> None:
        self._cancel_timer()
        self._pending = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._handle = loop.call_later(self.delay, self._fire)

    def flush(self) -> bool:
        """Run the callback now if a trigger is pending; True if it ran."""
        if not self._pending:
            return False
        self._fire()
        return True

    def cancel(self) -> None:
        self._cancel_timer()
        self._pending = False

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._cancel_timer()
        self._pending = False
        logger.debug("Debouncer %s fired", self.name or "?")
        self.callback()
