"""One-shot cancellable delayed actions.

The debouncer only needs "run this once after a delay unless cancelled";
any timer facility offering that can back it.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from typing import Any, Protocol


class CancellableTimer(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    """Start and cancel one-shot delayed actions.

    ``cancel`` must be idempotent and a no-op for a timer that already
    fired.
    """

    def after(self, delay: float, action: Callable[[], None]) -> CancellableTimer: ...

    def cancel(self, timer: CancellableTimer) -> None: ...


class ThreadingScheduler:
    """Runs each action on its own daemon :class:`threading.Timer` thread."""

    def __init__(self, *, name: str = "gadgetsync-cutoff") -> None:
        self._name = name

    def after(self, delay: float, action: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, action)
        timer.name = self._name
        timer.daemon = True
        timer.start()
        return timer

    def cancel(self, timer: CancellableTimer) -> None:
        timer.cancel()


class AsyncioScheduler:
    """Schedules actions with ``loop.call_later``.

    ``after`` and ``cancel`` must be called from the loop's thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def after(self, delay: float, action: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, action)

    def cancel(self, timer: CancellableTimer) -> None:
        timer.cancel()
