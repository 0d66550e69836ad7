"""Interfaces of the collaborators the session engine calls out to.

The reward formula and the persistence transport live outside this
package; the implementations here are the small in-process ones used for
local runs and tests.
"""
import logging
import uuid
from typing import List, Optional, Protocol

from pydantic import BaseModel

from focus_shield.models.rewards import PlayerTotals, RewardDeltas, RewardRequest, SessionResult
from focus_shield.models.session import Session, SessionOutcome

logger = logging.getLogger(__name__)

class SessionIdIssuer(Protocol):
    def __call__(self) -> str: ...

class RewardResolver(Protocol):
    async def resolve(self, request: RewardRequest) -> RewardDeltas: ...

class PersistenceGateway(Protocol):
    async def persist(
        self,
        session_id: str,
        outcome: SessionOutcome,
        deltas: RewardDeltas,
        totals: PlayerTotals,
    ) -> bool: ...

class NotificationSink(Protocol):
    def warning(self, session: Session, remaining_seconds: int) -> None: ...

    def session_finished(self, result: SessionResult) -> None: ...

    def rewards_resolved(self, result: SessionResult, deltas: RewardDeltas, totals: PlayerTotals) -> None: ...

class UuidSessionIdIssuer:
    def __call__(self) -> str:
        return str(uuid.uuid4())

class NullNotificationSink:
    """Sink that discards every notification"""

    def warning(self, session: Session, remaining_seconds: int) -> None:
        pass

    def session_finished(self, result: SessionResult) -> None:
        pass

    def rewards_resolved(self, result: SessionResult, deltas: RewardDeltas, totals: PlayerTotals) -> None:
        pass

class PerMinuteRewardResolver:
    """Flat-rate stand-in for the real reward policy.

    Grants a fixed amount per elapsed minute for completed sessions and
    nothing otherwise. Disturbance time is ignored. Level-ups are computed
    from `totals`, so seed it with the same totals the controller starts from.
    """

    def __init__(
        self,
        xp_per_minute: int = 1,
        coins_per_minute: int = 0,
        xp_per_level: int = 100,
        totals: Optional[PlayerTotals] = None,
    ):
        self.xp_per_minute = xp_per_minute
        self.coins_per_minute = coins_per_minute
        self.xp_per_level = xp_per_level
        self.totals = totals or PlayerTotals()

    async def resolve(self, request: RewardRequest) -> RewardDeltas:
        if request.outcome != SessionOutcome.COMPLETED:
            return RewardDeltas(new_level=self.totals.level)
        xp = request.elapsed_minutes * self.xp_per_minute
        new_level = 1 + (self.totals.xp + xp) // self.xp_per_level
        deltas = RewardDeltas(
            xp_delta=xp,
            coins_delta=request.elapsed_minutes * self.coins_per_minute,
            leveled_up=new_level > self.totals.level,
            new_level=new_level,
        )
        self.totals = self.totals.apply(deltas)
        return deltas

class PersistedSession(BaseModel):
    session_id: str
    outcome: SessionOutcome
    deltas: RewardDeltas
    totals: PlayerTotals

class InMemoryPersistenceGateway:
    """Keeps persisted outcomes in a list"""

    def __init__(self):
        self.records: List[PersistedSession] = []

    async def persist(
        self,
        session_id: str,
        outcome: SessionOutcome,
        deltas: RewardDeltas,
        totals: PlayerTotals,
    ) -> bool:
        self.records.append(PersistedSession(
            session_id=session_id,
            outcome=outcome,
            deltas=deltas,
            totals=totals,
        ))
        logger.debug(f"Stored session {session_id} ({outcome.value})")
        return True
