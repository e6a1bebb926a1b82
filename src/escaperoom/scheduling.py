"""Scheduled callbacks for the play timer and geometry debouncing."""

from __future__ import annotations

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Callable, List, Tuple


class ScheduledHandle(ABC):
    """Cancellable reference to a scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent any further invocations of the callback."""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        """Return ``True`` once :meth:`cancel` has been called."""


class Scheduler(ABC):
    """Interface for scheduling one-shot and repeating callbacks."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledHandle:
        """Invoke ``callback`` once after ``delay`` seconds."""

    @abstractmethod
    def call_repeating(
        self, interval: float, callback: Callable[[], None]
    ) -> ScheduledHandle:
        """Invoke ``callback`` every ``interval`` seconds until cancelled."""


def _validate_delay(value: float, *, field_name: str, allow_zero: bool) -> float:
    if not isinstance(value, (int, float)):
        raise TypeError(f"{field_name} must be a number, got {type(value)!r}")
    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise ValueError(f"{field_name} must be {qualifier}")
    return float(value)


class _ManualHandle(ScheduledHandle):
    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """Deterministic scheduler driven by an explicit virtual clock.

    Nothing runs until :meth:`advance` moves the clock forward, which makes
    timer and debounce behaviour reproducible in tests and headless sessions.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._counter = itertools.count()
        self._queue: List[
            Tuple[float, int, _ManualHandle, Callable[[], None], float | None]
        ] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledHandle:
        delay = _validate_delay(delay, field_name="delay", allow_zero=True)
        handle = _ManualHandle()
        heapq.heappush(
            self._queue, (self.now + delay, next(self._counter), handle, callback, None)
        )
        return handle

    def call_repeating(
        self, interval: float, callback: Callable[[], None]
    ) -> ScheduledHandle:
        interval = _validate_delay(interval, field_name="interval", allow_zero=False)
        handle = _ManualHandle()
        heapq.heappush(
            self._queue,
            (self.now + interval, next(self._counter), handle, callback, interval),
        )
        return handle

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every callback that falls due.

        Returns:
            The number of callback invocations performed.
        """

        seconds = _validate_delay(seconds, field_name="seconds", allow_zero=True)
        target = self.now + seconds
        invoked = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback, interval = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = due
            if interval is not None:
                heapq.heappush(
                    self._queue,
                    (due + interval, next(self._counter), handle, callback, interval),
                )
            callback()
            invoked += 1
        self.now = target
        return invoked

    @property
    def pending(self) -> int:
        """Return the number of live scheduled callbacks."""

        return sum(1 for entry in self._queue if not entry[2].cancelled)


class _AsyncioHandle(ScheduledHandle):
    def __init__(self) -> None:
        self._cancelled = False
        self.timer: asyncio.TimerHandle | None = None

    def cancel(self) -> None:
        self._cancelled = True
        if self.timer is not None:
            self.timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(Scheduler):
    """Schedule callbacks on an :mod:`asyncio` event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledHandle:
        delay = _validate_delay(delay, field_name="delay", allow_zero=True)
        handle = _AsyncioHandle()

        def _run() -> None:
            if not handle.cancelled:
                callback()

        handle.timer = self.loop.call_later(delay, _run)
        return handle

    def call_repeating(
        self, interval: float, callback: Callable[[], None]
    ) -> ScheduledHandle:
        interval = _validate_delay(interval, field_name="interval", allow_zero=False)
        handle = _AsyncioHandle()
        loop = self.loop

        def _run() -> None:
            if handle.cancelled:
                return
            handle.timer = loop.call_later(interval, _run)
            callback()

        handle.timer = loop.call_later(interval, _run)
        return handle


__all__ = ["ScheduledHandle", "Scheduler", "ManualScheduler", "AsyncioScheduler"]
