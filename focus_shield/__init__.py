"""
Focus Shield - timed focus sessions with a soft anti-distraction shield
"""

__version__ = "0.1.0"

from .models.session import ActionKind, Session, SessionOutcome
from .services.controller import SessionController
from .services.shield import SoftShieldMonitor
from .services.clock import SessionClock
from .services.scheduler import AsyncioScheduler, ManualScheduler

__all__ = [
    'ActionKind',
    'Session',
    'SessionOutcome',
    'SessionController',
    'SoftShieldMonitor',
    'SessionClock',
    'AsyncioScheduler',
    'ManualScheduler',
]
