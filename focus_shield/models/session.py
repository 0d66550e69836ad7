from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from focus_shield.config.settings import settings

class ActionKind(str, Enum):
    """Activity categories a focus session can be dedicated to"""
    TRAIN = "Train"
    EAT = "Eat"
    LEARN = "Learn"
    BATHE = "Bathe"
    SLEEP = "Sleep"
    MAINTAIN = "Maintain"
    FIGHT = "Fight"
    ADVENTURE = "Adventure"

class SessionOutcome(str, Enum):
    COMPLETED = "success"
    FAILED = "fail"
    CANCELLED = "cancelled"

# Upper bound (inclusive, minutes) for each action
_ACTION_BANDS = [
    (15, ActionKind.TRAIN),
    (30, ActionKind.EAT),
    (45, ActionKind.LEARN),
    (60, ActionKind.BATHE),
    (75, ActionKind.SLEEP),
    (90, ActionKind.MAINTAIN),
    (105, ActionKind.FIGHT),
]

def valid_durations() -> List[int]:
    """Allowed session durations in minutes"""
    return settings.allowed_durations()

def is_valid_duration(minutes: int) -> bool:
    return minutes in valid_durations()

def action_for_minutes(minutes: float) -> ActionKind:
    """Suggested action for a session of the given length"""
    m = max(5, min(120, round(minutes)))
    for upper, action in _ACTION_BANDS:
        if m <= upper:
            return action
    return ActionKind.ADVENTURE

@dataclass
class Session:
    """A single focus session, owned by the lifecycle controller while active"""
    id: str
    action: ActionKind
    duration_minutes: int
    started_at_ms: float
    disturbed_seconds: int = 0
    outcome: Optional[SessionOutcome] = None
    ended_at_ms: Optional[float] = None

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    @property
    def is_finished(self) -> bool:
        return self.outcome is not None

    def record_disturbance(self, seconds: int) -> None:
        """Add an away episode to the disturbance ledger"""
        if seconds < 0:
            raise ValueError(f"Disturbance seconds must be non-negative, got {seconds}")
        self.disturbed_seconds += seconds

    def elapsed_minutes(self, now_ms: float) -> int:
        return max(0, int((now_ms - self.started_at_ms) // 60000))
