"""Schema loading and boundary validation for backend payloads.

Payloads are checked against the JSON Schema files shipped beside this
module, then against the cross-field invariants JSON Schema cannot
express (elimination follows losses, completed matches name a winner).
Anything that fails raises PayloadError and never reaches the store.
"""

import json
from functools import lru_cache
from pathlib import Path

import jsonschema

from quizbowl.core.models import BracketState, GameState

_SCHEMA_DIR = Path(__file__).parent


class PayloadError(ValueError):
    """Raised when a backend payload does not describe a valid snapshot."""


def load_schema(path: Path) -> dict:
    """Load a JSON Schema file and return as dict."""
    with open(path) as f:
        return json.load(f)


@lru_cache(maxsize=None)
def _schema(name: str) -> dict:
    return load_schema(_SCHEMA_DIR / f"{name}_schema.json")


def _validate(raw, name: str) -> None:
    if not isinstance(raw, dict):
        raise PayloadError(f"{name} payload is not an object")
    try:
        jsonschema.validate(raw, _schema(name))
    except jsonschema.ValidationError as e:
        path = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise PayloadError(f"{name} payload invalid at {path}: {e.message}") from e


def parse_game(raw) -> GameState:
    """Validate a game payload and build a GameState."""
    _validate(raw, "game")
    try:
        return GameState.from_dict(raw)
    except (ValueError, OverflowError) as e:
        raise PayloadError(f"game payload invalid: {e}") from e


def parse_bracket(raw) -> BracketState:
    """Validate a bracket payload and build a BracketState."""
    _validate(raw, "bracket")
    bracket = BracketState.from_dict(raw)

    seen: set[str] = set()
    for team in bracket.teams:
        if team.id in seen:
            raise PayloadError(f"duplicate team id {team.id!r}")
        seen.add(team.id)
        if team.eliminated != (team.losses == 2):
            raise PayloadError(
                f"team {team.id!r} has {team.losses} losses but "
                f"eliminated={team.eliminated}"
            )

    for match in bracket.matches:
        if match.completed and match.winner_id not in (match.team_a_id, match.team_b_id):
            raise PayloadError(
                f"completed match {match.id!r} has winner {match.winner_id!r} "
                f"which is not one of its teams"
            )
    return bracket
