"""Timer and visibility capability used by the export poller.

The poller never touches the event loop clock directly. It asks a
``Scheduler`` for one-shot timers and for the current visibility of the
host (a browser tab, a terminal session, a worker that can be paused),
so it can run under asyncio in production and under a fake clock in tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol

Unsubscribe = Callable[[], None]
VisibilityListener = Callable[[bool], None]


class CancelHandle(Protocol):
    """Handle owning one scheduled callback."""

    def cancel(self) -> None:
        """Cancel the callback. Safe to call after firing or more than once."""
        ...


class Scheduler(Protocol):
    """Protocol for one-shot timers plus host visibility."""

    def now_ms(self) -> float:
        """Current monotonic time in milliseconds."""
        ...

    def schedule_after(self, delay_ms: float, callback: Callable[[], None]) -> CancelHandle:
        """Run ``callback`` once after ``delay_ms`` milliseconds."""
        ...

    def is_page_visible(self) -> bool:
        """Whether the host is currently visible to the user."""
        ...

    def on_visibility_change(self, listener: VisibilityListener) -> Unsubscribe:
        """Register ``listener(visible)``; returns an idempotent unsubscribe callable."""
        ...


class _TimerHandle:
    def __init__(self, handle: asyncio.TimerHandle) -> None:
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler:
    """Scheduler backed by ``loop.call_later`` with a settable visibility flag.

    Args:
        loop: Event loop to schedule on; defaults to the running loop at
            first use.
        visible: Initial visibility.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None, *, visible: bool = True) -> None:
        self._loop = loop
        self._visible = visible
        self._listeners: list[VisibilityListener] = []

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self._get_loop().time() * 1000

    def schedule_after(self, delay_ms: float, callback: Callable[[], None]) -> CancelHandle:
        return _TimerHandle(self._get_loop().call_later(max(delay_ms, 0) / 1000, callback))

    def is_page_visible(self) -> bool:
        return self._visible

    def on_visibility_change(self, listener: VisibilityListener) -> Unsubscribe:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_visible(self, visible: bool) -> None:
        """Change visibility and notify listeners when it actually changes."""
        if visible == self._visible:
            return
        self._visible = visible
        for listener in list(self._listeners):
            listener(visible)
