import itertools
import pytest
from typing import List, Optional
from unittest.mock import Mock

from focus_shield.config.config import ShieldConfig
from focus_shield.models.rewards import PlayerTotals, RewardDeltas, RewardRequest
from focus_shield.models.session import SessionOutcome
from focus_shield.services.controller import SessionController
from focus_shield.services.scheduler import ManualScheduler
from focus_shield.services.shield import SoftShieldMonitor

START_MS = 1_700_000_000_000.0

class FakeRewardResolver:
    """Records every request and returns fixed deltas"""

    def __init__(self, deltas: Optional[RewardDeltas] = None, error: Optional[Exception] = None):
        self.deltas = deltas or RewardDeltas(xp_delta=25, coins_delta=5, sparks_delta=1, new_level=1)
        self.error = error
        self.requests: List[RewardRequest] = []

    async def resolve(self, request: RewardRequest) -> RewardDeltas:
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.deltas

class FakePersistence:
    def __init__(self, result: bool = True, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls = []

    async def persist(self, session_id: str, outcome: SessionOutcome, deltas: RewardDeltas, totals: PlayerTotals) -> bool:
        self.calls.append((session_id, outcome, deltas, totals))
        if self.error:
            raise self.error
        return self.result

@pytest.fixture
def scheduler():
    """Provide a virtual-time scheduler"""
    return ManualScheduler(start_ms=START_MS)

@pytest.fixture
def shield_config():
    return ShieldConfig()

@pytest.fixture
def events():
    """Collects events emitted by the monitor or clock"""
    return []

@pytest.fixture
def monitor(scheduler, events, shield_config):
    """Provide an armed soft shield monitor"""
    shield = SoftShieldMonitor(scheduler, events.append)
    shield.arm(shield_config)
    yield shield
    shield.disarm()

@pytest.fixture
def resolver():
    return FakeRewardResolver()

@pytest.fixture
def persistence():
    return FakePersistence()

@pytest.fixture
def notifier():
    return Mock()

@pytest.fixture
def controller(scheduler, resolver, persistence, notifier, shield_config):
    """Provide a session controller running on virtual time"""
    counter = itertools.count(1)
    controller = SessionController(
        scheduler,
        resolver,
        persistence,
        notifier=notifier,
        id_issuer=lambda: f"session-{next(counter)}",
        shield_config=shield_config,
    )
    yield controller
    controller.monitor.disarm()
    controller.clock.stop()
