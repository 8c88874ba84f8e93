"""Snapshot types for a quiz bowl match and its double-elimination bracket.

Every type is a frozen dataclass: a snapshot is replaced wholesale or
transformed into a new snapshot, never mutated in place. ``from_dict``
builds a snapshot from an already-validated camelCase payload (see
``quizbowl.core.schemas``); ``to_dict`` goes the other way.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

POINTS_PER_AWARD = 10
DEFAULT_TEAM_A = "Team A"
DEFAULT_TEAM_B = "Team B"
TEAMS = ("A", "B")


def epoch_ms(value) -> int:
    """Normalize a history timestamp to epoch milliseconds.

    Accepts a finite number of milliseconds, a numeric string, or an ISO 8601
    string (naive values are taken as UTC). Anything else raises ValueError.
    """
    if isinstance(value, bool):
        raise ValueError(f"timestamp {value!r} is not a time")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError(f"timestamp {value!r} is not finite")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return epoch_ms(float(text))
        except ValueError:
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)
    raise ValueError(f"timestamp {value!r} is not a time")


class EventType(Enum):
    TOSSUP = "TOSSUP"
    BONUS = "BONUS"


class BracketName(Enum):
    WINNERS = "WINNERS"
    LOSERS = "LOSERS"


@dataclass(frozen=True)
class HistoryEvent:
    """One scoring award, as shown in the match log."""

    type: EventType
    description: str
    timestamp: int  # epoch milliseconds
    team: str
    points: int = POINTS_PER_AWARD

    @classmethod
    def from_dict(cls, raw: dict) -> HistoryEvent:
        return cls(
            type=EventType(raw["type"]),
            description=raw.get("description", ""),
            timestamp=epoch_ms(raw["timestamp"]),
            team=raw["team"],
            points=raw.get("points", POINTS_PER_AWARD),
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "description": self.description,
            "timestamp": self.timestamp,
            "team": self.team,
            "points": self.points,
        }


@dataclass(frozen=True)
class GameState:
    team_a_name: str = DEFAULT_TEAM_A
    team_b_name: str = DEFAULT_TEAM_B
    team_a_score: int = 0
    team_b_score: int = 0
    question_number: int = 1
    last_tossup_winner: str | None = None
    history: tuple[HistoryEvent, ...] = ()

    @classmethod
    def default(cls) -> GameState:
        """The fresh game a viewer starts from or resets to."""
        return cls()

    def team_name(self, team: str) -> str:
        if team == "A":
            return self.team_a_name or DEFAULT_TEAM_A
        if team == "B":
            return self.team_b_name or DEFAULT_TEAM_B
        raise ValueError(f"Unknown team {team!r}, expected 'A' or 'B'")

    def score(self, team: str) -> int:
        if team == "A":
            return self.team_a_score
        if team == "B":
            return self.team_b_score
        raise ValueError(f"Unknown team {team!r}, expected 'A' or 'B'")

    def with_points(self, team: str, points: int) -> GameState:
        """Return a copy with ``points`` added to ``team``'s score."""
        if team == "A":
            return replace(self, team_a_score=self.team_a_score + points)
        if team == "B":
            return replace(self, team_b_score=self.team_b_score + points)
        raise ValueError(f"Unknown team {team!r}, expected 'A' or 'B'")

    @classmethod
    def from_dict(cls, raw: dict) -> GameState:
        return cls(
            team_a_name=raw.get("teamAName") or DEFAULT_TEAM_A,
            team_b_name=raw.get("teamBName") or DEFAULT_TEAM_B,
            team_a_score=raw.get("teamAScore") or 0,
            team_b_score=raw.get("teamBScore") or 0,
            question_number=raw.get("questionNumber") or 1,
            last_tossup_winner=raw.get("lastTossupWinner"),
            history=tuple(
                HistoryEvent.from_dict(e) for e in raw.get("history") or []
            ),
        )

    def to_dict(self) -> dict:
        return {
            "teamAName": self.team_a_name,
            "teamBName": self.team_b_name,
            "teamAScore": self.team_a_score,
            "teamBScore": self.team_b_score,
            "questionNumber": self.question_number,
            "lastTossupWinner": self.last_tossup_winner,
            "history": [e.to_dict() for e in self.history],
        }


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    losses: int = 0
    eliminated: bool = False

    @classmethod
    def from_dict(cls, raw: dict) -> Team:
        return cls(
            id=str(raw["id"]),
            name=raw.get("name", ""),
            losses=raw.get("losses", 0),
            eliminated=bool(raw.get("eliminated", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "losses": self.losses,
            "eliminated": self.eliminated,
        }


def _optional_id(value) -> str | None:
    # Ids arrive as strings or numbers; null and "" both mean unset
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class Match:
    id: str
    bracket: BracketName
    round: int
    team_a_id: str
    team_b_id: str
    score_a: int | None = None
    score_b: int | None = None
    winner_id: str | None = None
    completed: bool = False

    def involves(self, team_id: str) -> bool:
        return team_id in (self.team_a_id, self.team_b_id)

    def opponent_of(self, team_id: str) -> str:
        return self.team_b_id if self.team_a_id == team_id else self.team_a_id

    @classmethod
    def from_dict(cls, raw: dict) -> Match:
        return cls(
            id=str(raw["id"]),
            bracket=BracketName(raw["bracket"]),
            round=raw["round"],
            team_a_id=str(raw["teamAId"]),
            team_b_id=str(raw["teamBId"]),
            score_a=raw.get("scoreA"),
            score_b=raw.get("scoreB"),
            winner_id=_optional_id(raw.get("winnerId")),
            completed=bool(raw.get("completed", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bracket": self.bracket.value,
            "round": self.round,
            "teamAId": self.team_a_id,
            "teamBId": self.team_b_id,
            "scoreA": self.score_a,
            "scoreB": self.score_b,
            "winnerId": self.winner_id,
            "completed": self.completed,
        }


@dataclass(frozen=True)
class Pairing:
    """A server-proposed matchup not yet committed as a Match."""

    team_a_id: str
    team_b_id: str

    def involves(self, team_id: str) -> bool:
        return team_id in (self.team_a_id, self.team_b_id)

    def opponent_of(self, team_id: str) -> str:
        return self.team_b_id if self.team_a_id == team_id else self.team_a_id

    @classmethod
    def from_dict(cls, raw: dict) -> Pairing:
        return cls(team_a_id=str(raw["teamAId"]), team_b_id=str(raw["teamBId"]))

    def to_dict(self) -> dict:
        return {"teamAId": self.team_a_id, "teamBId": self.team_b_id}


@dataclass(frozen=True)
class BracketState:
    teams: tuple[Team, ...] = ()
    matches: tuple[Match, ...] = ()
    suggested_winners_pairs: tuple[Pairing, ...] = ()
    suggested_losers_pairs: tuple[Pairing, ...] = ()
    suggested_winners_team_a_id: str | None = None
    suggested_winners_team_b_id: str | None = None
    suggested_losers_team_a_id: str | None = None
    suggested_losers_team_b_id: str | None = None
    finished: bool = False
    _by_id: dict[str, Team] = field(
        default=None, init=False, repr=False, compare=False,
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_id", {t.id: t for t in self.teams})

    def team(self, team_id: str) -> Team | None:
        return self._by_id.get(team_id)

    @classmethod
    def from_dict(cls, raw: dict) -> BracketState:
        return cls(
            teams=tuple(Team.from_dict(t) for t in raw.get("teams") or []),
            matches=tuple(Match.from_dict(m) for m in raw.get("matches") or []),
            suggested_winners_pairs=tuple(
                Pairing.from_dict(p) for p in raw.get("suggestedWinnersPairs") or []
            ),
            suggested_losers_pairs=tuple(
                Pairing.from_dict(p) for p in raw.get("suggestedLosersPairs") or []
            ),
            suggested_winners_team_a_id=_optional_id(raw.get("suggestedWinnersTeamAId")),
            suggested_winners_team_b_id=_optional_id(raw.get("suggestedWinnersTeamBId")),
            suggested_losers_team_a_id=_optional_id(raw.get("suggestedLosersTeamAId")),
            suggested_losers_team_b_id=_optional_id(raw.get("suggestedLosersTeamBId")),
            finished=bool(raw.get("finished", False)),
        )

    def to_dict(self) -> dict:
        return {
            "teams": [t.to_dict() for t in self.teams],
            "matches": [m.to_dict() for m in self.matches],
            "suggestedWinnersPairs": [p.to_dict() for p in self.suggested_winners_pairs],
            "suggestedLosersPairs": [p.to_dict() for p in self.suggested_losers_pairs],
            "suggestedWinnersTeamAId": self.suggested_winners_team_a_id,
            "suggestedWinnersTeamBId": self.suggested_winners_team_b_id,
            "suggestedLosersTeamAId": self.suggested_losers_team_a_id,
            "suggestedLosersTeamBId": self.suggested_losers_team_b_id,
            "finished": self.finished,
        }
