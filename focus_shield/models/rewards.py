from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from focus_shield.models.session import ActionKind, SessionOutcome

class RewardRequest(BaseModel):
    """What the reward resolver is told about a finished session"""
    action: ActionKind
    elapsed_minutes: int = Field(ge=0, description="Wall-clock minutes the session ran")
    disturbed_seconds: int = Field(ge=0, description="Cumulative away time")
    outcome: SessionOutcome

class RewardDeltas(BaseModel):
    """Currency and experience granted for a session"""
    xp_delta: int = Field(default=0, ge=0)
    coins_delta: int = Field(default=0, ge=0)
    sparks_delta: int = Field(default=0, ge=0)
    leveled_up: bool = False
    new_level: int = Field(default=1, ge=1)

class PlayerTotals(BaseModel):
    """Locally held player progression"""
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    coins: int = Field(default=0, ge=0)
    sparks: int = Field(default=0, ge=0)

    def apply(self, deltas: RewardDeltas) -> "PlayerTotals":
        """Return new totals with the deltas added"""
        return PlayerTotals(
            level=max(self.level, deltas.new_level),
            xp=self.xp + deltas.xp_delta,
            coins=self.coins + deltas.coins_delta,
            sparks=self.sparks + deltas.sparks_delta,
        )

class SessionResult(BaseModel):
    """Terminal summary of a session"""
    session_id: str
    action: ActionKind
    outcome: SessionOutcome
    duration_minutes: int
    elapsed_minutes: int
    disturbed_seconds: int
    started_at: datetime
    ended_at: datetime

class SessionProgress(BaseModel):
    """Snapshot of the active session"""
    session_id: str
    action: ActionKind
    duration_minutes: int
    elapsed_seconds: int
    remaining_seconds: int
    is_disturbed: bool
    disturbed_seconds: int
    warning_seconds: Optional[int] = Field(
        default=None,
        description="Remaining grace while a warning is pending"
    )
