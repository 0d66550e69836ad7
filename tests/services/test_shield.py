import pytest

from focus_shield.config.config import ShieldConfig
from focus_shield.models.events import Disturbance, Fail, GraceWarning
from focus_shield.services.errors import MonitorNotArmedError
from focus_shield.services.shield import SoftShieldMonitor

def warnings_in(events):
    return [e.remaining_seconds for e in events if isinstance(e, GraceWarning)]

def fails_in(events):
    return [e for e in events if isinstance(e, Fail)]

def test_arm_and_disarm(scheduler, events):
    """Test arming starts a tick timer and disarming releases it"""
    shield = SoftShieldMonitor(scheduler, events.append)
    assert not shield.armed

    shield.arm(ShieldConfig())
    assert shield.armed
    assert scheduler.pending == 1

    shield.disarm()
    shield.disarm()  # Idempotent
    assert not shield.armed
    assert scheduler.pending == 0

def test_disarmed_monitor_rejects_signals(scheduler, events):
    """Test acting on a disarmed monitor is a usage error"""
    shield = SoftShieldMonitor(scheduler, events.append)
    with pytest.raises(MonitorNotArmedError):
        shield.on_hidden()
    with pytest.raises(MonitorNotArmedError):
        shield.on_visible()
    with pytest.raises(MonitorNotArmedError):
        shield.fail()
    assert events == []

def test_short_episode_reports_disturbance(monitor, scheduler, events):
    """Test a short away episode yields one disturbance and no warning"""
    monitor.on_hidden()
    assert monitor.is_disturbed
    scheduler.advance(3000)
    monitor.on_visible()

    assert events == [Disturbance(duration_ms=3000, seconds=3, at_ms=scheduler.now_ms())]
    assert not monitor.is_disturbed
    assert monitor.state.episode_started_at is None

def test_sub_second_gap_counts(monitor, scheduler, events):
    """Test any nonzero gap is reported, rounded up to a second"""
    monitor.on_hidden()
    scheduler.advance(300)
    monitor.on_visible()

    assert len(events) == 1
    assert events[0].seconds == 1
    assert events[0].duration_ms == 300

def test_zero_gap_is_not_a_disturbance(monitor, events):
    """Test hide and show at the same instant reports nothing"""
    monitor.on_hidden()
    monitor.on_visible()
    assert events == []
    assert not monitor.is_disturbed

def test_reentrant_hide_keeps_first_start(monitor, scheduler, events):
    """Test a second hide does not reopen the episode"""
    monitor.on_hidden()
    scheduler.advance(2000)
    monitor.on_hidden()
    scheduler.advance(1000)
    monitor.on_visible()

    assert [e.seconds for e in events] == [3]

def test_visible_without_episode_is_noop(monitor, events):
    """Test closing an episode that was never opened"""
    monitor.on_visible()
    monitor.on_visible()
    assert events == []

def test_warning_then_hard_ceiling(monitor, scheduler, events):
    """Test the default thresholds: warning at 10s, counted down, fail at 15s"""
    monitor.on_hidden()
    scheduler.advance(9000)
    assert events == []

    scheduler.advance(1000)
    assert warnings_in(events) == [5]
    assert monitor.warning_pending

    scheduler.advance(4000)
    assert warnings_in(events) == [5, 4, 3, 2, 1]
    assert fails_in(events) == []

    scheduler.advance(1000)
    assert warnings_in(events) == [5, 4, 3, 2, 1, 0]
    fails = fails_in(events)
    assert len(fails) == 1
    assert fails[0].reason == "away_threshold"
    assert fails[0].away_seconds == 15

    # The deferred grace-expiry fail never follows
    scheduler.advance(5000)
    assert len(fails_in(events)) == 1

def test_grace_expiry_fails_after_delay(scheduler, events):
    """Test the warning window alone fails the session"""
    shield = SoftShieldMonitor(scheduler, events.append)
    shield.arm(ShieldConfig(warning_threshold_seconds=10, away_threshold_seconds=60))
    shield.on_hidden()

    scheduler.advance(15_000)
    assert warnings_in(events) == [5, 4, 3, 2, 1, 0]
    assert fails_in(events) == []

    scheduler.advance(100)
    fails = fails_in(events)
    assert len(fails) == 1
    assert fails[0].reason == "grace_expired"
    assert warnings_in(events).count(0) == 1

    scheduler.advance(10_000)
    assert len(fails_in(events)) == 1
    shield.disarm()

def test_return_during_warning_cancels_it(monitor, scheduler, events):
    """Test coming back mid-warning cancels it with no further penalty"""
    monitor.on_hidden()
    scheduler.advance(12_000)
    assert warnings_in(events) == [5, 4, 3]

    monitor.on_visible()
    assert isinstance(events[-1], Disturbance)
    assert events[-1].seconds == 12
    assert not monitor.warning_pending
    assert not monitor.is_disturbed

    scheduler.advance(30_000)
    assert warnings_in(events) == [5, 4, 3]
    assert fails_in(events) == []

def test_return_between_expiry_and_fail(scheduler, events):
    """Test returning inside the fail delay still cancels the fail"""
    shield = SoftShieldMonitor(scheduler, events.append)
    shield.arm(ShieldConfig(warning_threshold_seconds=10, away_threshold_seconds=60, fail_delay_ms=500))
    shield.on_hidden()
    scheduler.advance(15_000)
    assert warnings_in(events)[-1] == 0

    scheduler.advance(200)
    shield.on_visible()
    scheduler.advance(5000)
    assert fails_in(events) == []
    shield.disarm()

def test_warning_rearms_on_new_episode(monitor, scheduler, events):
    """Test each episode crossing the threshold gets its own warning"""
    monitor.on_hidden()
    scheduler.advance(10_000)
    monitor.on_visible()
    monitor.on_hidden()
    scheduler.advance(10_000)

    assert warnings_in(events) == [5, 5]
    assert [e.seconds for e in events if isinstance(e, Disturbance)] == [10]

def test_close_thresholds_fail_once(scheduler, events):
    """Test equal thresholds: warning and ceiling in one tick, one fail"""
    shield = SoftShieldMonitor(scheduler, events.append)
    shield.arm(ShieldConfig(warning_threshold_seconds=15, away_threshold_seconds=15))
    shield.on_hidden()

    scheduler.advance(15_000)
    assert warnings_in(events) == [5]
    assert len(fails_in(events)) == 1

    scheduler.advance(10_000)
    assert len(fails_in(events)) == 1
    shield.disarm()

def test_countdown_does_not_skip_integers(scheduler, events):
    """Test a slow tick still counts the warning down one step"""
    shield = SoftShieldMonitor(scheduler, events.append)
    shield.arm(ShieldConfig(tick_interval_ms=2000, warning_threshold_seconds=10, away_threshold_seconds=60))
    shield.on_hidden()

    scheduler.advance(12_000)
    assert warnings_in(events) == [5, 4]
    shield.disarm()

def test_fail_is_idempotent(monitor, events):
    """Test only the first fail emits"""
    assert monitor.fail("manual") is True
    assert monitor.fail("manual") is False
    assert len(fails_in(events)) == 1

def test_disarm_cancels_pending_timers(monitor, scheduler, events):
    """Test no event fires after disarm"""
    monitor.on_hidden()
    scheduler.advance(14_950)
    count = len(events)

    monitor.disarm()
    assert scheduler.pending == 0
    scheduler.advance(60_000)
    assert len(events) == count

def test_rearm_resets_state(monitor, scheduler):
    """Test arming again starts from a clean state"""
    monitor.on_hidden()
    scheduler.advance(11_000)
    assert monitor.warning_pending

    monitor.arm()
    assert monitor.armed
    assert not monitor.is_disturbed
    assert not monitor.warning_pending
    assert monitor.away_ms() == 0
    assert scheduler.pending == 1
