"""Shared test fixtures for quizbowl."""

import pytest

from quizbowl.core.store import StateStore


def make_game_payload(**overrides) -> dict:
    payload = {
        "teamAName": "Owls",
        "teamBName": "Hawks",
        "teamAScore": 0,
        "teamBScore": 0,
        "questionNumber": 1,
        "lastTossupWinner": None,
        "history": [],
    }
    payload.update(overrides)
    return payload


def make_team(team_id, name, losses=0) -> dict:
    return {"id": team_id, "name": name, "losses": losses, "eliminated": losses == 2}


def make_match(match_id, bracket, rnd, a, b, completed=False, winner=None,
               score_a=None, score_b=None) -> dict:
    return {
        "id": match_id,
        "bracket": bracket,
        "round": rnd,
        "teamAId": a,
        "teamBId": b,
        "scoreA": score_a,
        "scoreB": score_b,
        "winnerId": winner,
        "completed": completed,
    }


def make_bracket_payload(**overrides) -> dict:
    payload = {
        "teams": [
            make_team("t1", "Owls"),
            make_team("t2", "Hawks", losses=1),
            make_team("t3", "Crows", losses=2),
            make_team("t4", "Wrens"),
        ],
        "matches": [
            make_match("m1", "WINNERS", 1, "t1", "t3", completed=True, winner="t1",
                       score_a=230, score_b=120),
            make_match("m2", "WINNERS", 1, "t4", "t2", completed=True, winner="t4",
                       score_a=180, score_b=150),
            make_match("m3", "LOSERS", 1, "t2", "t3", completed=True, winner="t2",
                       score_a=200, score_b=90),
            make_match("m4", "WINNERS", 2, "t1", "t4"),
        ],
        "suggestedWinnersPairs": [],
        "suggestedLosersPairs": [],
        "suggestedWinnersTeamAId": None,
        "suggestedWinnersTeamBId": None,
        "suggestedLosersTeamAId": None,
        "suggestedLosersTeamBId": None,
        "finished": False,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def store():
    return StateStore()


@pytest.fixture
def game_payload():
    return make_game_payload()


@pytest.fixture
def bracket_payload():
    return make_bracket_payload()
