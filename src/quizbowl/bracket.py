"""Bracket derivations: pure views over a double-elimination BracketState.

Nothing here talks to the network or the store. Every function takes a
snapshot (None where a caller may not have loaded one yet) and returns
plain data for rendering: winners/losers/eliminated partitions, the
round-grouped tree, standings, and "where does team X play next".
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from quizbowl.core.models import BracketName, BracketState, Match, Team


# ── Next-match statuses ──────────────────────────────────────────

STATUS_SCHEDULED = "scheduled"
STATUS_AWAITING_WINNERS = "awaiting winners pairing"
STATUS_AWAITING_LOSERS = "awaiting losers pairing"
STATUS_ELIMINATED = "eliminated"
STATUS_FINISHED = "bracket finished"
STATUS_WAITING = "waiting for scheduling"


@dataclass(frozen=True)
class Partition:
    winners: tuple[Team, ...]
    losers: tuple[Team, ...]
    eliminated: tuple[Team, ...]


@dataclass(frozen=True)
class Round:
    number: int
    matches: tuple[Match, ...]


@dataclass(frozen=True)
class NextMatch:
    """Where a team stands next. ``round`` is None while only suggested."""

    status: str
    bracket: BracketName | None = None
    round: int | None = None
    opponent: str | None = None


@dataclass(frozen=True)
class Standing:
    team: Team
    wins: int
    losses: int

    @property
    def status(self) -> str:
        if self.team.eliminated:
            return "eliminated"
        return "winners" if self.losses == 0 else "losers"


@dataclass(frozen=True)
class SuggestedMatch:
    bracket: BracketName
    team_a: str
    team_b: str


def team_name(bracket: BracketState | None, team_id: str | None) -> str:
    """Display name for ``team_id``, or "" if unknown."""
    if bracket is None or not team_id:
        return ""
    team = bracket.team(team_id)
    return team.name if team else ""


def partition_teams(bracket: BracketState | None) -> Partition:
    """Split teams into winners (0 losses), losers (1 loss) and eliminated."""
    teams = bracket.teams if bracket else ()
    return Partition(
        winners=tuple(t for t in teams if not t.eliminated and t.losses == 0),
        losers=tuple(t for t in teams if not t.eliminated and t.losses == 1),
        eliminated=tuple(t for t in teams if t.eliminated),
    )


def group_by_round(
    bracket: BracketState | None, bracket_name: BracketName | str,
) -> list[Round]:
    """Matches of one bracket side, grouped by round in ascending order.

    Within a round the server's match order is kept.
    """
    if bracket is None:
        return []
    name = BracketName(bracket_name)
    by_round: dict[int, list[Match]] = defaultdict(list)
    for match in bracket.matches:
        if match.bracket is name:
            by_round[match.round].append(match)
    return [Round(number=r, matches=tuple(by_round[r])) for r in sorted(by_round)]


def next_match_for_team(
    bracket: BracketState | None, team_id: str | None,
) -> NextMatch | None:
    """Resolve a team's next fixture. The first matching rule wins:

    1. an incomplete match involving the team
    2. a suggested winners-bracket pairing
    3. a suggested losers-bracket pairing
    4. the team is eliminated
    5. the bracket is finished
    6. otherwise it is waiting to be scheduled
    """
    if bracket is None or not team_id:
        return None

    for match in bracket.matches:
        if not match.completed and match.involves(team_id):
            return NextMatch(
                status=STATUS_SCHEDULED,
                bracket=match.bracket,
                round=match.round,
                opponent=team_name(bracket, match.opponent_of(team_id)),
            )

    for pairs, side, status in (
        (bracket.suggested_winners_pairs, BracketName.WINNERS, STATUS_AWAITING_WINNERS),
        (bracket.suggested_losers_pairs, BracketName.LOSERS, STATUS_AWAITING_LOSERS),
    ):
        for pair in pairs:
            if pair.involves(team_id):
                return NextMatch(
                    status=status,
                    bracket=side,
                    opponent=team_name(bracket, pair.opponent_of(team_id)),
                )

    team = bracket.team(team_id)
    if team is not None and team.eliminated:
        return NextMatch(status=STATUS_ELIMINATED)
    if bracket.finished:
        return NextMatch(status=STATUS_FINISHED)
    return NextMatch(status=STATUS_WAITING)


def standings(bracket: BracketState | None) -> list[Standing]:
    """Teams ordered by fewest losses, then most wins, then name."""
    if bracket is None:
        return []
    wins: dict[str, int] = defaultdict(int)
    for match in bracket.matches:
        if match.completed and match.winner_id:
            wins[match.winner_id] += 1
    rows = [Standing(team=t, wins=wins[t.id], losses=t.losses) for t in bracket.teams]
    rows.sort(key=lambda s: (s.losses, -s.wins, s.team.name.lower()))
    return rows


def suggested_matches(bracket: BracketState | None) -> list[SuggestedMatch]:
    """The singled-out next winners and losers matchups, by team name."""
    if bracket is None:
        return []
    result = []
    for side, a_id, b_id in (
        (BracketName.WINNERS, bracket.suggested_winners_team_a_id,
         bracket.suggested_winners_team_b_id),
        (BracketName.LOSERS, bracket.suggested_losers_team_a_id,
         bracket.suggested_losers_team_b_id),
    ):
        if a_id and b_id:
            result.append(SuggestedMatch(
                bracket=side,
                team_a=team_name(bracket, a_id),
                team_b=team_name(bracket, b_id),
            ))
    return result


def pairing_candidates(bracket: BracketState | None) -> list[Team]:
    """Teams the operator may push to the game: everyone not eliminated."""
    if bracket is None:
        return []
    return [t for t in bracket.teams if not t.eliminated]


def default_pairing(bracket: BracketState | None) -> tuple[str | None, str | None]:
    """First two pairing candidates, preselected in the operator's picker."""
    candidates = pairing_candidates(bracket)
    first = candidates[0].id if len(candidates) > 0 else None
    second = candidates[1].id if len(candidates) > 1 else None
    return first, second


def parse_team_names(text: str) -> list[str]:
    """One team per line; surrounding whitespace and blank lines dropped."""
    return [line.strip() for line in text.splitlines() if line.strip()]
