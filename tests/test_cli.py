import io

import click
import pytest
from click.testing import CliRunner
from rich.console import Console

from focus_shield.cli.commands import build_timeline, cli, parse_away, run_simulation
from focus_shield.models.session import ActionKind, SessionOutcome
from focus_shield.services.display import TerminalDisplay

@pytest.fixture
def runner():
    return CliRunner()

def invoke(runner, tmp_path, *args):
    return runner.invoke(cli, ["--log-dir", str(tmp_path / "logs"), *args])

def test_durations_lists_actions(runner, tmp_path):
    """Test the durations table"""
    result = invoke(runner, tmp_path, "durations")
    assert result.exit_code == 0
    assert "Train" in result.output
    assert "Adventure" in result.output
    assert "120" in result.output

def test_simulate_undisturbed_completes(runner, tmp_path):
    result = invoke(runner, tmp_path, "simulate", "--duration", "5")
    assert result.exit_code == 0, result.output
    assert "success" in result.output
    assert "Rewards" in result.output

def test_simulate_long_absence_fails(runner, tmp_path):
    result = invoke(runner, tmp_path, "simulate", "--duration", "25", "--away", "200:16")
    assert result.exit_code == 0, result.output
    assert "fail" in result.output
    assert "Come back!" in result.output
    assert "Rewards" not in result.output

def test_simulate_manual_stop(runner, tmp_path):
    result = invoke(runner, tmp_path, "simulate", "--duration", "25", "--stop-at", "300")
    assert result.exit_code == 0, result.output
    assert "cancelled" in result.output

def test_simulate_rejects_bad_duration(runner, tmp_path):
    result = invoke(runner, tmp_path, "simulate", "--duration", "7")
    assert result.exit_code == 1
    assert "Unsupported duration" in result.output

def test_simulate_rejects_bad_away(runner, tmp_path):
    result = invoke(runner, tmp_path, "simulate", "--away", "soon")
    assert result.exit_code == 2

def test_parse_away():
    assert parse_away("100:3") == (100.0, 3.0)
    assert parse_away("0.5:0.25") == (0.5, 0.25)

def test_build_timeline_orders_steps():
    timeline = build_timeline([(50, 10), (20, 2)], stop_at=55)
    assert timeline == [
        (20_000, "hidden"),
        (22_000, "visible"),
        (50_000, "hidden"),
        (55_000, "stop"),
        (60_000, "visible"),
    ]

def test_build_timeline_closes_episode_before_next_opens():
    """Test back-to-back episodes given out of order"""
    timeline = build_timeline([(15, 3), (10, 5)], stop_at=None)
    assert timeline == [
        (10_000, "hidden"),
        (15_000, "visible"),
        (15_000, "hidden"),
        (18_000, "visible"),
    ]

def test_build_timeline_rejects_overlap():
    with pytest.raises(click.BadParameter):
        build_timeline([(10, 5), (12, 2)], stop_at=None)

@pytest.mark.asyncio
async def test_simulation_records_back_to_back_episodes():
    display = TerminalDisplay(Console(file=io.StringIO()))
    controller = await run_simulation(5, ActionKind.TRAIN, [(15, 3), (10, 5)], None, 1, display)
    result = controller.results[-1]
    assert result.outcome == SessionOutcome.COMPLETED
    assert result.disturbed_seconds == 8

def test_simulate_rejects_overlapping_away(runner, tmp_path):
    result = invoke(runner, tmp_path, "simulate", "--away", "10:5", "--away", "12:2")
    assert result.exit_code == 2
    assert "overlaps" in result.output
