"""Observer registration with explicit unsubscribe handles.

Every ``connect`` returns a ``Subscription``; cancelling it is the only way a
handler leaves a signal, so a window that closes can tear down exactly what it
registered. Handlers run on the event loop thread, in registration order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import structlog

log = structlog.get_logger()


@dataclass(eq=False)
class Subscription:
    """Handle returned by ``Signal.connect``."""

    signal: Signal
    handler: Callable[..., Any]
    active: bool = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self.signal._remove(self)


class Signal:
    """Named signal. A failing handler is logged and does not stop the others."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscriptions: list[Subscription] = []

    def connect(self, handler: Callable[..., Any]) -> Subscription:
        sub = Subscription(signal=self, handler=handler)
        self._subscriptions.append(sub)
        return sub

    def emit(self, *args: Any) -> None:
        for sub in list(self._subscriptions):
            if not sub.active:
                continue
            try:
                sub.handler(*args)
            except Exception:
                log.error("signal_handler_failed", signal=self.name, exc_info=True)

    def _remove(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass

    @property
    def handler_count(self) -> int:
        return len(self._subscriptions)


@dataclass
class SignalGroup:
    """Tracks the subscriptions made by one owner so they can be disposed together."""

    subscriptions: list[Subscription] = field(default_factory=list)

    def connect(self, signal: Signal, handler: Callable[..., Any]) -> Subscription:
        sub = signal.connect(handler)
        self.subscriptions.append(sub)
        return sub

    def dispose(self) -> None:
        for sub in self.subscriptions:
            sub.cancel()
        self.subscriptions.clear()
