"""Terminal rendering of a session with rich.

Every builder is a pure function of the snapshots it is handed; ``render``
reads the store once so a frame never mixes two snapshots.
"""

from __future__ import annotations

from datetime import datetime

from rich.align import Align
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from quizbowl.bracket import (
    NextMatch,
    group_by_round,
    next_match_for_team,
    partition_teams,
    standings,
    suggested_matches,
    team_name,
)
from quizbowl.core.models import BracketName, BracketState, GameState
from quizbowl.timer import CountdownTimer

TEAM_COLORS = {
    "A": "cyan",
    "B": "magenta",
}
BAR_WIDTH = 30


def _timer_style(progress: float) -> str:
    if progress > 0.5:
        return "bold green"
    if progress > 0.25:
        return "bold yellow"
    return "bold dark_orange"


def build_scoreboard(game: GameState | None, syncing: bool = False) -> Panel:
    """Team names, scores, question number and bonus eligibility."""
    game = game or GameState.default()
    table = Table(show_header=False, show_edge=False, pad_edge=False, expand=True)
    table.add_column("team", ratio=1)
    table.add_column("score", justify="right", width=6)

    for team in ("A", "B"):
        label = Text()
        if game.last_tossup_winner == team:
            label.append("* ", style="bold yellow")
        label.append(game.team_name(team), style=f"bold {TEAM_COLORS[team]}")
        table.add_row(label, Text(str(game.score(team)), style="bold"))

    sub = Text()
    sub.append(f"Question {game.question_number}", style="bold")
    sub.append("  |  ", style="dim")
    if game.last_tossup_winner:
        sub.append(
            f"Bonus +10 → {game.team_name(game.last_tossup_winner)}",
            style="bold yellow",
        )
    else:
        sub.append("Bonus +10 (await tossup)", style="dim")
    if syncing:
        sub.append("  |  Syncing…", style="dim italic")

    return Panel(
        Group(table, Align.center(sub)),
        title="[bold]Scoreboard[/bold]",
        border_style="bright_white",
        padding=(0, 1),
    )


def build_timer(timer: CountdownTimer) -> Panel:
    progress = timer.progress
    style = _timer_style(progress)
    filled = round(progress * BAR_WIDTH)

    clock = Text()
    clock.append(f"{timer.mode.upper()} TIMER  ", style="dim")
    clock.append(f"{timer.remaining:>2d}s  ", style=style)
    clock.append("█" * filled, style=style)
    clock.append("░" * (BAR_WIDTH - filled), style="dim")
    clock.append("  running" if timer.running else "  stopped", style="dim")
    return Panel(Align.center(clock), border_style="bright_white", padding=(0, 1))


def build_history(game: GameState | None, limit: int = 10) -> Panel:
    """Most recent awards first."""
    lines: list[Text] = []
    events = list(reversed(game.history)) if game else []
    if not events:
        lines.append(Text("  No events yet.", style="dim italic"))
    for event in events[:limit]:
        line = Text()
        stamp = datetime.fromtimestamp(event.timestamp / 1000).strftime("%H:%M:%S")
        line.append(f"  {stamp}  ", style="dim")
        line.append(event.description, style=f"bold {TEAM_COLORS.get(event.team, 'white')}")
        lines.append(line)
    return Panel(
        Group(*lines),
        title="[bold]History[/bold]",
        border_style="yellow",
        padding=(0, 1),
    )


def _score(value: int | None) -> str:
    return "-" if value is None else str(value)


def build_bracket_tree(bracket: BracketState | None, side: BracketName) -> Panel:
    table = Table(expand=True, show_edge=False)
    table.add_column("Round", width=6)
    table.add_column("Team A", ratio=1)
    table.add_column("", justify="center", width=7)
    table.add_column("Team B", ratio=1)
    table.add_column("Winner", ratio=1)

    for rnd in group_by_round(bracket, side):
        for match in rnd.matches:
            table.add_row(
                str(rnd.number),
                team_name(bracket, match.team_a_id),
                f"{_score(match.score_a)} : {_score(match.score_b)}",
                team_name(bracket, match.team_b_id),
                team_name(bracket, match.winner_id),
            )
    color = "green" if side is BracketName.WINNERS else "red"
    return Panel(
        table,
        title=f"[bold]{side.value.title()} Bracket[/bold]",
        border_style=color,
        padding=(0, 1),
    )


def build_bracket_summary(bracket: BracketState | None) -> Panel:
    parts = partition_teams(bracket)
    text = Text()
    for label, teams, style in (
        ("Winners", parts.winners, "green"),
        ("Losers", parts.losers, "yellow"),
        ("Eliminated", parts.eliminated, "red"),
    ):
        text.append(f"{label}: ", style=f"bold {style}")
        text.append(", ".join(t.name for t in teams) or "-")
        text.append("\n")
    for suggestion in suggested_matches(bracket):
        text.append(f"Next {suggestion.bracket.value.lower()} match: ", style="dim")
        text.append(f"{suggestion.team_a} vs {suggestion.team_b}\n", style="bold")
    if bracket is not None and bracket.finished:
        text.append("Bracket finished\n", style="bold red")
    return Panel(text, title="[bold]Teams[/bold]", border_style="bright_white", padding=(0, 1))


def build_standings(bracket: BracketState | None) -> Panel:
    table = Table(expand=True, show_edge=False)
    table.add_column("#", width=3)
    table.add_column("Team", ratio=1)
    table.add_column("W", justify="right", width=3)
    table.add_column("L", justify="right", width=3)
    table.add_column("Status", width=10)
    for rank, row in enumerate(standings(bracket), 1):
        table.add_row(str(rank), row.team.name, str(row.wins), str(row.losses), row.status)
    return Panel(table, title="[bold]Standings[/bold]", border_style="blue", padding=(0, 1))


def build_next_match(
    bracket: BracketState | None, team_id: str | None, nxt: NextMatch | None = None,
) -> Panel | None:
    if nxt is None:
        nxt = next_match_for_team(bracket, team_id)
    if nxt is None:
        return None
    text = Text()
    text.append(f"{team_name(bracket, team_id) or team_id}: ", style="bold")
    text.append(nxt.status)
    if nxt.bracket is not None:
        rnd = "TBD" if nxt.round is None else str(nxt.round)
        text.append(f"  |  {nxt.bracket.value} round {rnd}", style="dim")
    if nxt.opponent:
        text.append(f"  |  vs {nxt.opponent}", style="bold")
    return Panel(text, title="[bold]Your Next Match[/bold]", border_style="cyan", padding=(0, 1))


def build_footer(is_admin: bool, message: str = "", stream_open: bool = True) -> Text:
    footer = Text()
    if is_admin:
        footer.append(" OPERATOR ", style="bold white on red")
    else:
        footer.append(" VIEWER ", style="bold white on green")
    if not stream_open:
        footer.append("  stream closed, polling only", style="dim")
    if message:
        footer.append(f"  {message}", style="bold yellow")
    footer.append("  |  Ctrl+C to exit", style="dim")
    return footer


def render(session, page: str = "control", controls: str = "") -> Group:
    """Build the full display for a Session; ``controls`` is a key legend."""
    game, bracket = session.store.snapshot()
    parts = []
    if page == "bracket":
        parts.append(build_bracket_summary(bracket))
        parts.append(build_standings(bracket))
        parts.append(build_bracket_tree(bracket, BracketName.WINNERS))
        parts.append(build_bracket_tree(bracket, BracketName.LOSERS))
        next_panel = build_next_match(
            bracket, session.player_team_id, session.next_match_for(),
        )
        if next_panel is not None:
            parts.append(next_panel)
    else:
        parts.append(build_scoreboard(game, syncing=session.sync.loading_game))
        parts.append(build_timer(session.timer))
        parts.append(build_history(game))
    parts.append(build_footer(session.is_admin, session.message, session.sync.stream_open))
    if controls:
        parts.append(Text(controls, style="dim"))
    return Group(*parts)
