from typing import List, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.text import Text

from focus_shield.models.rewards import PlayerTotals, RewardDeltas, SessionProgress, SessionResult
from focus_shield.models.session import ActionKind, Session, SessionOutcome, action_for_minutes

OUTCOME_STYLES = {
    SessionOutcome.COMPLETED: ("🎯", "bold green"),
    SessionOutcome.FAILED: ("💥", "bold red"),
    SessionOutcome.CANCELLED: ("⏹", "bold yellow"),
}

def format_seconds(seconds: int) -> str:
    mins, secs = divmod(max(0, seconds), 60)
    return f"{mins}:{secs:02d}"

class TerminalDisplay:
    """Notification sink that renders session events with rich"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def warning(self, session: Session, remaining_seconds: int) -> None:
        if remaining_seconds > 0:
            self.console.print(
                f"[bold yellow]⚠ Come back! {remaining_seconds}s left before "
                f"your {session.action.value} session fails[/bold yellow]"
            )
        else:
            self.console.print("[bold red]⚠ Grace window expired[/bold red]")

    def session_finished(self, result: SessionResult) -> None:
        emoji, style = OUTCOME_STYLES[result.outcome]
        header = Text()
        header.append(f"{emoji} {result.action.value} session ", style="bold cyan")
        header.append(result.outcome.value, style=style)
        header.append(
            f"\n{result.elapsed_minutes}/{result.duration_minutes} minutes, "
            f"{result.disturbed_seconds}s disturbed",
            style="dim"
        )
        self.console.print(Panel(header, expand=False))

    def rewards_resolved(self, result: SessionResult, deltas: RewardDeltas, totals: PlayerTotals) -> None:
        stats = Text()
        stats.append("\n📈 Rewards\n", style="bold yellow")
        stats.append(f"XP: +{deltas.xp_delta} ({totals.xp} total)\n", style="dim")
        stats.append(f"Coins: +{deltas.coins_delta} ({totals.coins} total)\n", style="dim")
        stats.append(f"Sparks: +{deltas.sparks_delta} ({totals.sparks} total)\n", style="dim")
        if deltas.leveled_up:
            stats.append(f"Level up! Now level {deltas.new_level}\n", style="bold green")
        self.console.print(Panel(stats, expand=False))

    def show_progress(self, progress: SessionProgress) -> None:
        line = Text()
        line.append(f"🕒 {format_seconds(progress.remaining_seconds)} remaining", style="bold cyan")
        if progress.is_disturbed:
            line.append("  DISTURBED!", style="bold red")
        if progress.warning_seconds is not None:
            line.append(f"  grace {progress.warning_seconds}s", style="yellow")
        line.append(f"  ({progress.disturbed_seconds}s away so far)", style="dim")
        self.console.print(line)

    def show_durations(self, durations: List[int]) -> None:
        table = Table(title="Session durations")
        table.add_column("Minutes", justify="right")
        table.add_column("Action")
        for minutes in durations:
            action: ActionKind = action_for_minutes(minutes)
            table.add_row(str(minutes), action.value)
        self.console.print(table)
