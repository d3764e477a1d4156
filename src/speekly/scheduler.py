"""
Cancellable delayed callbacks.

The tracker debounces paragraph completion: instead of advancing the moment
the closing words are heard, it schedules the advance and re-checks when the
timer fires. Scheduling returns a handle so that navigation can cancel an
advance that no longer applies.

Three schedulers share one interface:
- ThreadingScheduler: threading.Timer, for hosts without an event loop
- AsyncioScheduler: loop.call_later, for the aiohttp server
- ManualScheduler: virtual clock, for replay and tests
"""

import asyncio
import heapq
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable

logger = logging.getLogger(__name__)


class TimerHandle(ABC):
    """Handle to a scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running if it has not run yet."""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""


class Scheduler(ABC):
    """Runs callbacks after a delay."""

    @abstractmethod
    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """
        Run callback once after delay_seconds.

        Args:
            delay_seconds: Delay before the callback runs
            callback: Zero-argument callable

        Returns:
            Handle that can cancel the pending callback
        """


class _ThreadingTimerHandle(TimerHandle):
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ThreadingScheduler(Scheduler):
    """Schedules callbacks on daemon timer threads.

    Callbacks run on the timer thread, so the code they call must do its own
    locking.
    """

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_seconds, self._run, args=(callback,))
        timer.daemon = True
        timer.name = "SpeeklyTimer"
        timer.start()
        return _ThreadingTimerHandle(timer)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.error("Error in scheduled callback: %s", e, exc_info=True)


class _AsyncioTimerHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle) -> None:
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """Schedules callbacks on an asyncio event loop.

    Must be used from the loop's own thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        return _AsyncioTimerHandle(self.loop.call_later(delay_seconds, callback))


class _ManualTimerHandle(TimerHandle):
    def __init__(self) -> None:
        self._cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """
    Scheduler driven by an explicit virtual clock.

    Nothing runs until advance() or run_all() is called, which makes
    debounce behaviour deterministic.

    Usage:
        scheduler = ManualScheduler()
        handle = scheduler.schedule(1.0, callback)
        scheduler.advance(0.5)   # nothing yet
        scheduler.advance(0.5)   # callback runs
    """

    def __init__(self) -> None:
        self.now: float = 0.0
        self._queue: list[tuple[float, int, _ManualTimerHandle, Callable[[], None]]] = []
        self._counter = itertools.count()

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualTimerHandle()
        heapq.heappush(
            self._queue, (self.now + delay_seconds, next(self._counter), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        """Number of callbacks that are scheduled and not cancelled."""
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running callbacks that become due.

        Returns:
            Number of callbacks run
        """
        target: float = self.now + seconds
        ran: int = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if handle.cancelled:
                continue
            handle.fired = True
            callback()
            ran += 1
        self.now = target
        return ran

    def run_all(self) -> int:
        """Run every pending callback, including ones scheduled while running."""
        ran: int = 0
        while self._queue:
            ran += self.advance(max(0.0, self._queue[0][0] - self.now))
        return ran
