"""Tests for bracket derivations over a double-elimination snapshot."""

from conftest import make_bracket_payload, make_match, make_team

from quizbowl.bracket import (
    STATUS_AWAITING_LOSERS,
    STATUS_AWAITING_WINNERS,
    STATUS_ELIMINATED,
    STATUS_FINISHED,
    STATUS_SCHEDULED,
    STATUS_WAITING,
    default_pairing,
    group_by_round,
    next_match_for_team,
    pairing_candidates,
    parse_team_names,
    partition_teams,
    standings,
    suggested_matches,
    team_name,
)
from quizbowl.core.models import BracketName
from quizbowl.core.schemas import parse_bracket


def _bracket(**overrides):
    return parse_bracket(make_bracket_payload(**overrides))


# ── Partitions ───────────────────────────────────────────────────


class TestPartitionTeams:
    def test_partitions(self):
        parts = partition_teams(_bracket())
        assert [t.name for t in parts.winners] == ["Owls", "Wrens"]
        assert [t.name for t in parts.losers] == ["Hawks"]
        assert [t.name for t in parts.eliminated] == ["Crows"]

    def test_disjoint_and_exhaustive(self):
        bracket = _bracket()
        parts = partition_teams(bracket)
        ids = [t.id for group in (parts.winners, parts.losers, parts.eliminated) for t in group]
        assert sorted(ids) == sorted(t.id for t in bracket.teams)
        assert len(ids) == len(set(ids))

    def test_eliminated_iff_two_losses(self):
        for team in _bracket().teams:
            assert team.eliminated == (team.losses == 2)

    def test_no_bracket(self):
        parts = partition_teams(None)
        assert parts.winners == parts.losers == parts.eliminated == ()


# ── Round grouping ───────────────────────────────────────────────


class TestGroupByRound:
    def test_winners_rounds_ascending(self):
        rounds = group_by_round(_bracket(), BracketName.WINNERS)
        assert [r.number for r in rounds] == [1, 2]
        assert [m.id for m in rounds[0].matches] == ["m1", "m2"]

    def test_accepts_string_name(self):
        rounds = group_by_round(_bracket(), "LOSERS")
        assert [r.number for r in rounds] == [1]
        assert rounds[0].matches[0].id == "m3"

    def test_numeric_not_lexical_order(self):
        matches = [
            make_match("a", "WINNERS", 10, "t1", "t4"),
            make_match("b", "WINNERS", 2, "t1", "t4"),
            make_match("c", "WINNERS", 2, "t4", "t1"),
        ]
        rounds = group_by_round(_bracket(matches=matches), BracketName.WINNERS)
        assert [r.number for r in rounds] == [2, 10]
        assert [m.id for m in rounds[0].matches] == ["b", "c"]

    def test_empty_side(self):
        matches = [make_match("a", "WINNERS", 1, "t1", "t4")]
        assert group_by_round(_bracket(matches=matches), BracketName.LOSERS) == []

    def test_no_bracket(self):
        assert group_by_round(None, BracketName.WINNERS) == []


# ── Next match ───────────────────────────────────────────────────


class TestNextMatchForTeam:
    def test_incomplete_match(self):
        nxt = next_match_for_team(_bracket(), "t1")
        assert nxt.status == STATUS_SCHEDULED
        assert nxt.bracket is BracketName.WINNERS
        assert nxt.round == 2
        assert nxt.opponent == "Wrens"

    def test_opponent_from_team_b_side(self):
        nxt = next_match_for_team(_bracket(), "t4")
        assert nxt.opponent == "Owls"

    def test_incomplete_match_beats_suggestion(self):
        bracket = _bracket(
            suggestedWinnersPairs=[{"teamAId": "t1", "teamBId": "t2"}],
            suggestedLosersPairs=[{"teamAId": "t1", "teamBId": "t2"}],
        )
        nxt = next_match_for_team(bracket, "t1")
        assert nxt.status == STATUS_SCHEDULED
        assert nxt.round == 2

    def test_winners_suggestion(self):
        bracket = _bracket(
            matches=[],
            suggestedWinnersPairs=[{"teamAId": "t1", "teamBId": "t4"}],
            suggestedLosersPairs=[{"teamAId": "t4", "teamBId": "t2"}],
        )
        nxt = next_match_for_team(bracket, "t4")
        assert nxt.status == STATUS_AWAITING_WINNERS
        assert nxt.bracket is BracketName.WINNERS
        assert nxt.round is None
        assert nxt.opponent == "Owls"

    def test_losers_suggestion(self):
        bracket = _bracket(
            matches=[],
            suggestedLosersPairs=[{"teamAId": "t2", "teamBId": "t4"}],
        )
        nxt = next_match_for_team(bracket, "t2")
        assert nxt.status == STATUS_AWAITING_LOSERS
        assert nxt.bracket is BracketName.LOSERS
        assert nxt.opponent == "Wrens"

    def test_eliminated(self):
        assert next_match_for_team(_bracket(), "t3").status == STATUS_ELIMINATED

    def test_eliminated_beats_finished(self):
        bracket = _bracket(finished=True)
        assert next_match_for_team(bracket, "t3").status == STATUS_ELIMINATED

    def test_finished(self):
        bracket = _bracket(finished=True)
        assert next_match_for_team(bracket, "t2").status == STATUS_FINISHED

    def test_waiting(self):
        nxt = next_match_for_team(_bracket(), "t2")
        assert nxt.status == STATUS_WAITING
        assert nxt.bracket is None
        assert nxt.opponent is None

    def test_completed_matches_ignored(self):
        matches = [make_match("m1", "WINNERS", 1, "t1", "t4", completed=True, winner="t1")]
        nxt = next_match_for_team(_bracket(matches=matches), "t1")
        assert nxt.status == STATUS_WAITING

    def test_no_bracket_or_team(self):
        assert next_match_for_team(None, "t1") is None
        assert next_match_for_team(_bracket(), "") is None
        assert next_match_for_team(_bracket(), None) is None


# ── Standings and helpers ────────────────────────────────────────


class TestStandings:
    def test_order(self):
        rows = standings(_bracket())
        assert [r.team.name for r in rows] == ["Owls", "Wrens", "Hawks", "Crows"]

    def test_wins_counted_from_completed_matches(self):
        rows = {r.team.id: r for r in standings(_bracket())}
        assert rows["t1"].wins == 1
        assert rows["t2"].wins == 1
        assert rows["t3"].wins == 0

    def test_status(self):
        rows = {r.team.id: r.status for r in standings(_bracket())}
        assert rows == {"t1": "winners", "t2": "losers", "t3": "eliminated", "t4": "winners"}

    def test_no_bracket(self):
        assert standings(None) == []


class TestSuggestions:
    def test_both_ids_required(self):
        bracket = _bracket(
            suggestedWinnersTeamAId="t1",
            suggestedWinnersTeamBId="t4",
            suggestedLosersTeamAId="t2",
        )
        result = suggested_matches(bracket)
        assert len(result) == 1
        assert result[0].bracket is BracketName.WINNERS
        assert (result[0].team_a, result[0].team_b) == ("Owls", "Wrens")

    def test_none(self):
        assert suggested_matches(_bracket()) == []


class TestPairingHelpers:
    def test_candidates_exclude_eliminated(self):
        names = [t.name for t in pairing_candidates(_bracket())]
        assert names == ["Owls", "Hawks", "Wrens"]

    def test_default_pairing(self):
        assert default_pairing(_bracket()) == ("t1", "t2")

    def test_default_pairing_short(self):
        bracket = _bracket(teams=[make_team("t1", "Owls")], matches=[])
        assert default_pairing(bracket) == ("t1", None)
        assert default_pairing(None) == (None, None)

    def test_team_name(self):
        bracket = _bracket()
        assert team_name(bracket, "t2") == "Hawks"
        assert team_name(bracket, "nope") == ""
        assert team_name(None, "t2") == ""

    def test_parse_team_names(self):
        text = "  Owls \n\nHawks\n   \nCrows"
        assert parse_team_names(text) == ["Owls", "Hawks", "Crows"]
