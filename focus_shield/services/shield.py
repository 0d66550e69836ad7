"""Soft shield: watches foreground visibility and enforces the grace policy.

The monitor keeps per-episode bookkeeping only (``ShieldState``) and talks
to the outside world through a single event callback receiving
``Disturbance``, ``GraceWarning`` and ``Fail`` events. It knows nothing
about rewards or persistence.

Two independent paths can fail a session: the hard away ceiling
(``away_threshold_seconds``) and expiry of the warning's grace window.
When the thresholds are close both may fire within one tick, so failing is
idempotent and only the first attempt emits.
"""
import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

from focus_shield.config.config import ShieldConfig
from focus_shield.models.events import Disturbance, Fail, GraceWarning, ShieldEvent
from focus_shield.services.errors import MonitorNotArmedError
from focus_shield.services.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

@dataclass
class ShieldState:
    armed: bool = False
    disturbed: bool = False
    episode_started_at: Optional[float] = None
    warning_started_at: Optional[float] = None
    warning_remaining: Optional[int] = None  # Last value emitted
    warning_expired: bool = False
    failed: bool = False

class SoftShieldMonitor:
    def __init__(self, scheduler: Scheduler, emit: Callable[[ShieldEvent], None]):
        self.scheduler = scheduler
        self._emit = emit
        self.config = ShieldConfig()
        self.state = ShieldState()
        self._tick_handle: Optional[TimerHandle] = None
        self._fail_handle: Optional[TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self.state.armed

    @property
    def is_disturbed(self) -> bool:
        """True while an away episode is open"""
        return self.state.disturbed

    @property
    def warning_pending(self) -> bool:
        return self.state.warning_started_at is not None

    def arm(self, config: Optional[ShieldConfig] = None) -> None:
        """Begin monitoring with fresh state"""
        self._cancel_timers()
        if config is not None:
            self.config = config
        self.state = ShieldState(armed=True)
        self._tick_handle = self.scheduler.call_repeating(self.config.tick_interval_ms, self.tick)
        logger.info(
            f"Soft shield armed (warning={self.config.warning_threshold_seconds}s, "
            f"away={self.config.away_threshold_seconds}s, "
            f"grace={self.config.grace_window_seconds}s)"
        )

    def disarm(self) -> None:
        """Stop monitoring and release every timer. Safe from any state."""
        was_armed = self.state.armed
        self._cancel_timers()
        self.state = ShieldState()
        if was_armed:
            logger.info("Soft shield disarmed")

    def _cancel_timers(self) -> None:
        for handle in (self._tick_handle, self._fail_handle):
            if handle is not None:
                handle.cancel()
        self._tick_handle = None
        self._fail_handle = None

    def _require_armed(self, operation: str) -> None:
        if not self.state.armed:
            raise MonitorNotArmedError(f"Cannot {operation}: soft shield is not armed")

    def away_ms(self, now_ms: Optional[float] = None) -> float:
        """Duration of the in-progress away episode, 0 when in the foreground"""
        if self.state.episode_started_at is None:
            return 0.0
        now_ms = self.scheduler.now_ms() if now_ms is None else now_ms
        return max(0.0, now_ms - self.state.episode_started_at)

    def on_hidden(self) -> None:
        self._require_armed("handle visibility loss")
        if self.state.episode_started_at is not None:
            return  # Already away
        self.state.episode_started_at = self.scheduler.now_ms()
        self.state.disturbed = True
        logger.debug("Soft shield: surface hidden, away episode opened")

    def on_visible(self) -> None:
        self._require_armed("handle visibility regain")
        started_at = self.state.episode_started_at
        if started_at is None:
            return  # No episode to close

        now = self.scheduler.now_ms()
        duration_ms = max(0.0, now - started_at)
        if duration_ms > 0:
            seconds = math.ceil(duration_ms / 1000)
            logger.info(f"Soft shield: back after {duration_ms / 1000:.1f}s away")
            self._emit(Disturbance(duration_ms=duration_ms, seconds=seconds, at_ms=now))

        if self.state.warning_started_at is not None:
            logger.info("Soft shield: user returned, warning cancelled")
        if self._fail_handle is not None:
            self._fail_handle.cancel()
            self._fail_handle = None
        # Fresh per-episode state; the listener may have disarmed us meanwhile
        if self.state.armed:
            self.state.episode_started_at = None
            self.state.disturbed = False
            self._clear_warning()

    def _clear_warning(self) -> None:
        self.state.warning_started_at = None
        self.state.warning_remaining = None
        self.state.warning_expired = False

    def tick(self) -> None:
        """Periodic check of the current away episode"""
        if not self.state.armed:
            return
        now = self.scheduler.now_ms()
        away_ms = self.away_ms(now)
        config = self.config

        if (
            away_ms >= config.warning_threshold_seconds * 1000
            and self.state.warning_started_at is None
        ):
            self.state.warning_started_at = now
            self._warn(config.grace_window_seconds, now)
            logger.warning(
                f"Soft shield: away for {away_ms / 1000:.0f}s, "
                f"{config.grace_window_seconds}s grace window started"
            )
        elif self.state.warning_started_at is not None and not self.state.warning_expired:
            self._update_warning(now)

        if not self.state.armed:
            return
        if away_ms >= config.away_threshold_seconds * 1000:
            logger.warning(f"Soft shield: max away time reached ({away_ms / 1000:.0f}s)")
            self.fail("away_threshold")

    def _update_warning(self, now: float) -> None:
        grace_ms = self.config.grace_window_seconds * 1000
        remaining_ms = grace_ms - (now - self.state.warning_started_at)
        if remaining_ms > 0:
            remaining = max(1, math.ceil(remaining_ms / 1000))
            last = self.state.warning_remaining
            if last is not None and remaining < last - 1:
                remaining = last - 1  # Count down one step at a time
            self._warn(remaining, now)
            return

        self.state.warning_expired = True
        logger.warning("Soft shield: grace window expired")
        self._warn(0, now)
        if self.state.armed and self._fail_handle is None:
            self._fail_handle = self.scheduler.call_later(
                self.config.fail_delay_ms,
                lambda: self.fail("grace_expired")
            )

    def _warn(self, remaining: int, now: float) -> None:
        self.state.warning_remaining = remaining
        self._emit(GraceWarning(remaining_seconds=remaining, at_ms=now))

    def fail(self, reason: str = "manual") -> bool:
        """Emit a fail event; later calls for the same arming are no-ops.

        Returns True only for the call that actually emitted.
        """
        self._require_armed("fail")
        if self.state.failed:
            return False
        self.state.failed = True
        now = self.scheduler.now_ms()
        away_seconds = self.away_ms(now) / 1000
        self._cancel_timers()
        logger.warning(f"Soft shield: failing session ({reason}, away {away_seconds:.1f}s)")
        self._emit(Fail(away_seconds=away_seconds, reason=reason, at_ms=now))
        return True
