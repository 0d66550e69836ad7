"""Session lifecycle: Idle -> Active -> Terminating -> Idle.

The controller is the only owner of the active session slot. It arms the
soft shield and the session clock on start, turns their events into a
terminal outcome, and hands completed sessions to the reward resolver and
persistence gateway without waiting for either.
"""
import asyncio
import logging
import math
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, List, Optional, Set

from focus_shield.config.config import ShieldConfig
from focus_shield.models.events import (
    ClockEvent,
    ClockExpired,
    ClockTick,
    Disturbance,
    Fail,
    GraceWarning,
    ShieldEvent,
    VisibilitySignal,
)
from focus_shield.models.rewards import PlayerTotals, RewardDeltas, RewardRequest, SessionProgress, SessionResult
from focus_shield.models.session import ActionKind, Session, SessionOutcome, is_valid_duration, valid_durations
from focus_shield.services.clock import SessionClock
from focus_shield.services.collaborators import (
    NotificationSink,
    NullNotificationSink,
    PersistenceGateway,
    RewardResolver,
    SessionIdIssuer,
    UuidSessionIdIssuer,
)
from focus_shield.services.errors import InvalidDurationError, SequencingError, SessionAlreadyActiveError, UsageError
from focus_shield.services.scheduler import Scheduler
from focus_shield.services.shield import SoftShieldMonitor

logger = logging.getLogger(__name__)

# Finished sessions kept for inspection
RESULT_HISTORY = 50

class ControllerState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    TERMINATING = "terminating"

def _to_datetime(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)

class SessionController:
    def __init__(
        self,
        scheduler: Scheduler,
        reward_resolver: RewardResolver,
        persistence: PersistenceGateway,
        notifier: Optional[NotificationSink] = None,
        id_issuer: Optional[SessionIdIssuer] = None,
        shield_config: Optional[ShieldConfig] = None,
        totals: Optional[PlayerTotals] = None,
    ):
        self.scheduler = scheduler
        self.reward_resolver = reward_resolver
        self.persistence = persistence
        self.notifier = notifier or NullNotificationSink()
        self.id_issuer = id_issuer or UuidSessionIdIssuer()
        self.shield_config = shield_config or ShieldConfig.from_settings()
        self.totals = totals or PlayerTotals()

        self.monitor = SoftShieldMonitor(scheduler, self._on_shield_event)
        self.clock = SessionClock(scheduler, self._on_clock_event)

        self.state = ControllerState.IDLE
        self._session: Optional[Session] = None
        self._settlements: Set[asyncio.Task] = set()
        self.results: Deque[SessionResult] = deque(maxlen=RESULT_HISTORY)

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self.state == ControllerState.ACTIVE

    def start(self, action: ActionKind, duration_minutes: int) -> Session:
        """Begin a session; rejected synchronously if one is already active"""
        if self._session is not None or self.state != ControllerState.IDLE:
            raise SessionAlreadyActiveError(
                f"Session {self._session.id if self._session else '?'} is already active"
            )
        if not is_valid_duration(duration_minutes):
            raise InvalidDurationError(
                f"Unsupported duration {duration_minutes} minutes; "
                f"allowed: {valid_durations()}"
            )
        try:
            action = ActionKind(action)
        except ValueError:
            raise UsageError(f"Unknown action: {action}")

        session = Session(
            id=self.id_issuer(),
            action=action,
            duration_minutes=duration_minutes,
            started_at_ms=self.scheduler.now_ms(),
        )
        self._session = session
        self.state = ControllerState.ACTIVE

        self.monitor.arm(self.shield_config)
        self.clock.start(session.started_at_ms, duration_minutes, self.shield_config.tick_interval_ms)
        logger.info(f"Session {session.id} started: {action.value} for {duration_minutes} minutes")
        return session

    def stop(self) -> Optional[SessionResult]:
        """User-initiated stop. Always cancels; a no-op when idle."""
        if self.state != ControllerState.ACTIVE:
            logger.debug("Stop requested with no active session")
            return None
        logger.info(f"Session {self._session.id} stopped by user")
        return self._terminate(SessionOutcome.CANCELLED)

    def handle_visibility(self, signal: VisibilitySignal) -> None:
        """Route a foreground/background transition to the shield"""
        if self.state != ControllerState.ACTIVE:
            logger.debug(f"Ignoring visibility signal '{signal.value}' with no active session")
            return
        if signal == VisibilitySignal.HIDDEN:
            self.monitor.on_hidden()
        else:
            self.monitor.on_visible()

    def progress(self) -> Optional[SessionProgress]:
        session = self._session
        if session is None:
            return None
        now = self.scheduler.now_ms()
        warning = self.monitor.state.warning_remaining if self.monitor.warning_pending else None
        return SessionProgress(
            session_id=session.id,
            action=session.action,
            duration_minutes=session.duration_minutes,
            elapsed_seconds=max(0, int((now - session.started_at_ms) // 1000)),
            remaining_seconds=self.clock.remaining_seconds(now),
            is_disturbed=self.monitor.is_disturbed,
            disturbed_seconds=session.disturbed_seconds,
            warning_seconds=warning,
        )

    def _require_active(self, event) -> Session:
        if self.state != ControllerState.ACTIVE or self._session is None:
            raise SequencingError(
                f"{type(event).__name__} received while {self.state.value}"
            )
        return self._session

    def _on_shield_event(self, event: ShieldEvent) -> None:
        session = self._require_active(event)
        if isinstance(event, Disturbance):
            session.record_disturbance(event.seconds)
            logger.info(
                f"Session {session.id} disturbed for {event.seconds}s "
                f"(total {session.disturbed_seconds}s)"
            )
        elif isinstance(event, GraceWarning):
            try:
                self.notifier.warning(session, event.remaining_seconds)
            except Exception as e:
                logger.error(f"Notification sink failed on warning: {e}")
        elif isinstance(event, Fail):
            logger.warning(f"Session {session.id} failed by soft shield ({event.reason})")
            self._terminate(SessionOutcome.FAILED)
        else:
            raise SequencingError(f"Unknown shield event: {event!r}")

    def _on_clock_event(self, event: ClockEvent) -> None:
        session = self._require_active(event)
        if isinstance(event, ClockTick):
            logger.debug(f"Session {session.id}: {event.remaining_seconds}s remaining")
        elif isinstance(event, ClockExpired):
            if self.monitor.is_disturbed:
                logger.warning(f"Session {session.id} reached zero while away")
                self._terminate(SessionOutcome.FAILED)
            else:
                self._terminate(SessionOutcome.COMPLETED)
        else:
            raise SequencingError(f"Unknown clock event: {event!r}")

    def _terminate(self, outcome: SessionOutcome) -> Optional[SessionResult]:
        if self.state != ControllerState.ACTIVE:
            return None  # Already resolved
        self.state = ControllerState.TERMINATING
        session = self._session
        try:
            now = self.scheduler.now_ms()
            # An episode still open at the end counts toward the ledger too
            open_ms = self.monitor.away_ms(now) if self.monitor.armed else 0
            if open_ms > 0:
                session.record_disturbance(math.ceil(open_ms / 1000))

            self.monitor.disarm()
            self.clock.stop()

            session.outcome = outcome
            session.ended_at_ms = now
            result = SessionResult(
                session_id=session.id,
                action=session.action,
                outcome=outcome,
                duration_minutes=session.duration_minutes,
                elapsed_minutes=session.elapsed_minutes(now),
                disturbed_seconds=session.disturbed_seconds,
                started_at=_to_datetime(session.started_at_ms),
                ended_at=_to_datetime(now),
            )
            self.results.append(result)
            logger.info(
                f"Session {session.id} ended: {outcome.value} after "
                f"{result.elapsed_minutes} minutes, {result.disturbed_seconds}s disturbed"
            )

            try:
                self.notifier.session_finished(result)
            except Exception as e:
                logger.error(f"Notification sink failed on session end: {e}")

            if outcome == SessionOutcome.COMPLETED:
                self._spawn_settlement(result)
            return result
        finally:
            self._session = None
            self.state = ControllerState.IDLE

    def _spawn_settlement(self, result: SessionResult) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Driven from synchronous code: settle before returning
            logger.debug(f"No running event loop, settling session {result.session_id} inline")
            asyncio.run(self._settle(result))
            return
        task = loop.create_task(self._settle(result))
        self._settlements.add(task)
        task.add_done_callback(self._settlements.discard)

    async def _settle(self, result: SessionResult) -> Optional[RewardDeltas]:
        """Resolve rewards, apply them locally, then persist"""
        request = RewardRequest(
            action=result.action,
            elapsed_minutes=result.elapsed_minutes,
            disturbed_seconds=result.disturbed_seconds,
            outcome=result.outcome,
        )
        try:
            deltas = await self.reward_resolver.resolve(request)
        except Exception as e:
            logger.error(f"Failed to resolve rewards for session {result.session_id}: {e}")
            return None

        # Local totals are kept even if remote persistence fails
        self.totals = self.totals.apply(deltas)
        logger.info(
            f"Session {result.session_id} rewarded: +{deltas.xp_delta} xp, "
            f"+{deltas.coins_delta} coins, +{deltas.sparks_delta} sparks"
            + (f", level up to {deltas.new_level}" if deltas.leveled_up else "")
        )
        try:
            self.notifier.rewards_resolved(result, deltas, self.totals)
        except Exception as e:
            logger.error(f"Notification sink failed on rewards: {e}")

        try:
            stored = await self.persistence.persist(result.session_id, result.outcome, deltas, self.totals)
            if not stored:
                logger.error(f"Persistence gateway rejected session {result.session_id}")
        except Exception as e:
            logger.error(f"Failed to persist session {result.session_id}: {e}")
        return deltas

    async def wait_for_settlements(self) -> List[Optional[RewardDeltas]]:
        """Wait for in-flight reward and persistence work"""
        if not self._settlements:
            return []
        return list(await asyncio.gather(*self._settlements))

    def shutdown(self) -> None:
        """Cancel any active session and release every timer"""
        self.stop()
        self.monitor.disarm()
        self.clock.stop()
