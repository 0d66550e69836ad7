import logging
from typing import Callable, Optional

from focus_shield.models.events import ClockEvent, ClockExpired, ClockTick
from focus_shield.services.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

class SessionClock:
    """Countdown anchored to a fixed start timestamp.

    Remaining time is recomputed from the start on every tick rather than
    decremented, so a suspended host process catches up on resume.
    """

    def __init__(self, scheduler: Scheduler, emit: Callable[[ClockEvent], None]):
        self.scheduler = scheduler
        self._emit = emit
        self.start_ms: Optional[float] = None
        self.duration_minutes = 0
        self.expired = False
        self._handle: Optional[TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self, start_ms: float, duration_minutes: int, tick_interval_ms: float = 1000) -> None:
        self.stop()
        self.start_ms = start_ms
        self.duration_minutes = duration_minutes
        self.expired = False
        self._handle = self.scheduler.call_repeating(tick_interval_ms, self.tick)
        logger.info(f"Session clock started for {duration_minutes} minutes")

    def stop(self) -> None:
        """Cancel the tick timer; safe to call repeatedly"""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            logger.debug("Session clock stopped")

    def remaining_seconds(self, now_ms: Optional[float] = None) -> int:
        if self.start_ms is None:
            return 0
        now_ms = self.scheduler.now_ms() if now_ms is None else now_ms
        elapsed = int((now_ms - self.start_ms) // 1000)
        return max(0, self.duration_minutes * 60 - elapsed)

    def tick(self) -> None:
        if self._handle is None or self.expired:
            return
        now = self.scheduler.now_ms()
        remaining = self.remaining_seconds(now)
        self._emit(ClockTick(remaining_seconds=remaining, at_ms=now))
        if remaining == 0 and self._handle is not None and not self.expired:
            self.expired = True
            self.stop()
            logger.info("Session clock expired")
            self._emit(ClockExpired(at_ms=now))
