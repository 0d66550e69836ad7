"""Timer facilities shared by the shield monitor and the session clock.

Both periodic tasks and the deferred fail go through a ``Scheduler`` so the
whole engine can run either on the asyncio event loop against the real wall
clock (``AsyncioScheduler``) or on virtual time that is advanced explicitly
(``ManualScheduler``). Every timer returns a handle whose ``cancel()`` is
idempotent; a cancelled timer never fires.
"""
import asyncio
import heapq
import itertools
import logging
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Callback = Callable[[], None]

class TimerHandle:
    """Cancellable reference to a scheduled callback"""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

class Scheduler:
    """Interface for wall-clock time and timers (milliseconds)"""

    def now_ms(self) -> float:
        raise NotImplementedError

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        raise NotImplementedError

    def call_repeating(self, interval_ms: float, callback: Callback) -> TimerHandle:
        """Run callback every interval_ms, first run one interval from now"""
        raise NotImplementedError

class _AsyncioTimer(TimerHandle):
    def __init__(self, inner):
        super().__init__()
        self._inner = inner

    def cancel(self) -> None:
        if not self.cancelled:
            self._inner.cancel()
        super().cancel()

class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now_ms(self) -> float:
        return time.time() * 1000

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        return _AsyncioTimer(self.loop.call_later(delay_ms / 1000, callback))

    def call_repeating(self, interval_ms: float, callback: Callback) -> TimerHandle:
        task = self.loop.create_task(self._repeat(interval_ms, callback))
        return _AsyncioTimer(task)

    async def _repeat(self, interval_ms: float, callback: Callback):
        # Anchor to the loop clock so slow callbacks don't accumulate drift
        interval = interval_ms / 1000
        next_run = self.loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_run - self.loop.time()))
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in repeating timer callback: {e}", exc_info=True)
                raise
            next_run += interval

class _ManualTimer(TimerHandle):
    def __init__(self, due_ms: float, callback: Callback, interval_ms: Optional[float]):
        super().__init__()
        self.due_ms = due_ms
        self.callback = callback
        self.interval_ms = interval_ms

class ManualScheduler(Scheduler):
    """Virtual-time scheduler; time only moves when advance() is called.

    Timers due at the same instant fire in the order they were scheduled.
    Exceptions raised by callbacks propagate to the caller of advance().
    """

    def __init__(self, start_ms: float = 0.0):
        self._now_ms = float(start_ms)
        self._queue: List[Tuple[float, int, _ManualTimer]] = []
        self._seq = itertools.count()

    def now_ms(self) -> float:
        return self._now_ms

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        return self._push(_ManualTimer(self._now_ms + max(0.0, delay_ms), callback, None))

    def call_repeating(self, interval_ms: float, callback: Callback) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError(f"Repeating interval must be positive, got {interval_ms}")
        return self._push(_ManualTimer(self._now_ms + interval_ms, callback, interval_ms))

    def _push(self, timer: _ManualTimer) -> _ManualTimer:
        heapq.heappush(self._queue, (timer.due_ms, next(self._seq), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of live (not cancelled) timers"""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, delta_ms: float) -> None:
        """Move time forward, firing every timer that falls due on the way"""
        self.advance_to(self._now_ms + delta_ms)

    def advance_to(self, target_ms: float) -> None:
        if target_ms < self._now_ms:
            raise ValueError("Virtual time cannot move backwards")
        while self._queue and self._queue[0][0] <= target_ms:
            due_ms, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now_ms = due_ms
            if timer.interval_ms is not None:
                timer.due_ms = due_ms + timer.interval_ms
                self._push(timer)
            timer.callback()
        self._now_ms = target_ms
