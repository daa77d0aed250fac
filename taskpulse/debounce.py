"""Trailing-edge debounce on the running asyncio loop."""

from __future__ import annotations

import asyncio
from typing import Callable


class Debouncer:
    """Run *callback* once, *delay* seconds after the last ``trigger()``.

    Each trigger cancels the pending timer and schedules a new one, so a burst
    of edits produces a single call after the quiet period.
    """

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        """Run the pending callback now instead of waiting for the timer."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def _fire(self) -> None:
        self._handle = None
        self._callback()
