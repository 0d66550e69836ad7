"""Events flowing from the shield monitor and session clock to the controller"""
from dataclasses import dataclass
from enum import Enum
from typing import Union

class VisibilitySignal(str, Enum):
    HIDDEN = "hidden"
    VISIBLE = "visible"

@dataclass(frozen=True)
class Disturbance:
    """An away episode closed; the user is back in the foreground"""
    duration_ms: float
    seconds: int  # Rounded up so any nonzero gap counts
    at_ms: float

@dataclass(frozen=True)
class GraceWarning:
    """Grace countdown update; 0 means the window has run out"""
    remaining_seconds: int
    at_ms: float

@dataclass(frozen=True)
class Fail:
    away_seconds: float
    reason: str  # "away_threshold" or "grace_expired"
    at_ms: float

@dataclass(frozen=True)
class ClockTick:
    remaining_seconds: int
    at_ms: float

@dataclass(frozen=True)
class ClockExpired:
    at_ms: float

ShieldEvent = Union[Disturbance, GraceWarning, Fail]
ClockEvent = Union[ClockTick, ClockExpired]
