"""Coalesce rapid editor keystrokes into a single history/persistence commit."""
from __future__ import annotations

import asyncio
from typing import Callable


class EditDebouncer:
    """Run ``callback`` once the edits have been quiet for ``delay`` seconds.

    Each :meth:`trigger` cancels and restarts the timer. Outside a running
    event loop (or with a zero delay) the callback runs immediately.
    """

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        if delay < 0.0:
            raise ValueError("delay must not be negative")
        self._delay = float(delay)
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        if self._delay == 0.0:
            self._fire()
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._fire()
            return
        self._handle = loop.call_later(self._delay, self._fire)

    def flush(self) -> bool:
        """Fire a pending callback now; return whether one was pending."""

        if self._handle is None:
            return False
        self.cancel()
        self._fire()
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()


__all__ = ["EditDebouncer"]
