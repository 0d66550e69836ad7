import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

import click
from rich.console import Console

from focus_shield.config.config import ShieldConfig
from focus_shield.config.logging_config import setup_logging
from focus_shield.models.events import VisibilitySignal
from focus_shield.models.session import ActionKind, action_for_minutes, valid_durations
from focus_shield.services.collaborators import InMemoryPersistenceGateway, PerMinuteRewardResolver
from focus_shield.services.controller import SessionController
from focus_shield.services.display import TerminalDisplay
from focus_shield.services.errors import ServiceError
from focus_shield.services.scheduler import AsyncioScheduler, ManualScheduler
from focus_shield.services.visibility import parse_signal, pump_visibility, stdin_lines

# Set up logging
logger = logging.getLogger(__name__)

# Initialize console
console = Console()

ACTION_CHOICES = [a.value for a in ActionKind]

@click.group()
@click.option('--log-dir', type=click.Path(file_okay=False, path_type=Path), default=None,
              help='Directory for the log file')
@click.option('--verbose', is_flag=True, help='Also log to the console')
@click.option('--debug', is_flag=True, help='Enable debug logging')
def cli(log_dir, verbose, debug):
    """Focus session engine"""
    # Set up logging before anything else
    setup_logging(log_dir=log_dir, debug=debug or None, console=verbose)

@cli.command()
def durations():
    """List allowed session durations and their actions"""
    TerminalDisplay(console).show_durations(valid_durations())

def parse_away(value: str) -> Tuple[float, float]:
    """Parse an away episode given as START:SECONDS"""
    try:
        start, length = value.split(":", 1)
        start_s, length_s = float(start), float(length)
    except ValueError:
        raise click.BadParameter(f"'{value}' is not START:SECONDS")
    if start_s < 0 or length_s < 0:
        raise click.BadParameter(f"'{value}' must not be negative")
    return start_s, length_s

def build_timeline(away: List[Tuple[float, float]], stop_at: Optional[float]) -> List[Tuple[float, str]]:
    """Scripted (offset_ms, action) pairs, ordered by time.

    A return sorts before a leave at the same instant so back-to-back
    episodes are both recorded. Overlapping episodes are rejected.
    """
    windows = sorted(away)
    for (start_a, length_a), (start_b, _) in zip(windows, windows[1:]):
        if start_b < start_a + length_a:
            raise click.BadParameter(
                f"away episode at {start_b:g}s overlaps the one at {start_a:g}s",
                param_hint="'--away'",
            )
    timeline = []
    for start_s, length_s in away:
        timeline.append((start_s * 1000, VisibilitySignal.HIDDEN.value))
        timeline.append(((start_s + length_s) * 1000, VisibilitySignal.VISIBLE.value))
    if stop_at is not None:
        timeline.append((stop_at * 1000, "stop"))
    return sorted(timeline, key=lambda item: (item[0], item[1] != VisibilitySignal.VISIBLE.value))

async def run_simulation(
    duration: int,
    action: ActionKind,
    away: List[Tuple[float, float]],
    stop_at: Optional[float],
    xp_per_minute: int,
    display: TerminalDisplay,
) -> SessionController:
    """Play a whole session in virtual time"""
    scheduler = ManualScheduler(start_ms=time.time() * 1000)
    controller = SessionController(
        scheduler,
        PerMinuteRewardResolver(xp_per_minute=xp_per_minute),
        InMemoryPersistenceGateway(),
        notifier=display,
        shield_config=ShieldConfig.from_settings(),
    )
    session = controller.start(action, duration)
    origin = session.started_at_ms

    for offset_ms, step in build_timeline(away, stop_at):
        scheduler.advance_to(origin + offset_ms)
        if not controller.is_active:
            break
        if step == "stop":
            controller.stop()
        else:
            controller.handle_visibility(VisibilitySignal(step))

    # Run out the clock, plus a tick of slack
    end_ms = origin + duration * 60 * 1000 + controller.shield_config.tick_interval_ms
    if controller.is_active:
        scheduler.advance_to(max(end_ms, scheduler.now_ms()))
    await controller.wait_for_settlements()
    return controller

@cli.command()
@click.option('--duration', type=int, default=25, show_default=True, help='Session length in minutes')
@click.option('--action', type=click.Choice(ACTION_CHOICES), default=None,
              help='Activity (defaults to the one suggested for the duration)')
@click.option('--away', 'away', multiple=True, callback=lambda ctx, param, values: [parse_away(v) for v in values],
              help='Away episode as START:SECONDS from session start (repeatable)')
@click.option('--stop-at', type=float, default=None, help='Stop the session manually at this second')
@click.option('--xp-per-minute', type=int, default=1, show_default=True)
def simulate(duration, action, away, stop_at, xp_per_minute):
    """Run a session in virtual time with scripted away episodes"""
    action = ActionKind(action) if action else action_for_minutes(duration)
    display = TerminalDisplay(console)
    try:
        asyncio.run(run_simulation(duration, action, away, stop_at, xp_per_minute, display))
    except ServiceError as e:
        logger.error(f"Simulation failed: {e}")
        console.print(f"[red]Simulation failed: {e}[/red]")
        sys.exit(1)

async def _stdin_signals(controller: SessionController) -> AsyncIterator[VisibilitySignal]:
    async for line in stdin_lines():
        command = line.strip().lower()
        if command in ("s", "stop"):
            controller.stop()
            continue
        signal = parse_signal(command)
        if signal is None:
            if command:
                console.print(f"[yellow]Unknown command '{command}' (h, v or s)[/yellow]")
            continue
        yield signal

async def run_live(duration: int, action: ActionKind, display: TerminalDisplay) -> SessionController:
    controller = SessionController(
        AsyncioScheduler(),
        PerMinuteRewardResolver(),
        InMemoryPersistenceGateway(),
        notifier=display,
    )
    controller.start(action, duration)
    pump = asyncio.create_task(pump_visibility(_stdin_signals(controller), controller))
    last_shown = None
    try:
        while controller.is_active:
            progress = controller.progress()
            if progress and progress.remaining_seconds // 60 != last_shown:
                last_shown = progress.remaining_seconds // 60
                display.show_progress(progress)
            await asyncio.sleep(0.5)
    finally:
        pump.cancel()
        controller.shutdown()
    await controller.wait_for_settlements()
    return controller

@cli.command()
@click.option('--duration', type=int, default=25, show_default=True, help='Session length in minutes')
@click.option('--action', type=click.Choice(ACTION_CHOICES), default=None)
def run(duration, action):
    """Run a real-time session; type h (hidden), v (visible) or s (stop)"""
    action = ActionKind(action) if action else action_for_minutes(duration)
    console.print(f"[yellow]Starting {action.value} session for {duration} minutes...[/yellow]")
    try:
        asyncio.run(run_live(duration, action, TerminalDisplay(console)))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, session cancelled")
    except ServiceError as e:
        logger.error(f"Session failed to run: {e}")
        console.print(f"[red]Session failed to run: {e}[/red]")
        sys.exit(1)
