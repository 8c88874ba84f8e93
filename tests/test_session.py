"""Tests for Session routing: operator vs viewer, failures, auth, cues."""

from unittest.mock import MagicMock

import pytest
from conftest import make_bracket_payload, make_game_payload

from quizbowl.config import ClientConfig, PollingConfig
from quizbowl.core.api import ApiClient, ApiError, AuthRejected
from quizbowl.core.credentials import CredentialStore, Credentials
from quizbowl.core.schemas import parse_bracket, parse_game
from quizbowl.session import Cue, Session


@pytest.fixture
def cred_store(tmp_path):
    return CredentialStore(tmp_path / "credentials.json")


@pytest.fixture
def api():
    api = MagicMock(spec=ApiClient)
    api.get_game.return_value = parse_game(make_game_payload(teamAScore=50))
    api.get_bracket.return_value = parse_bracket(make_bracket_payload())
    return api


@pytest.fixture
def cues():
    return []


def _session(api, cred_store, cues, admin=False):
    if admin:
        cred_store.save(Credentials(token="tok", role="ADMIN", username="mod"))
    config = ClientConfig(polling=PollingConfig(stream_enabled=False))
    return Session(config, api=api, credential_store=cred_store, on_cue=cues.append)


@pytest.fixture
def viewer(api, cred_store, cues):
    return _session(api, cred_store, cues)


@pytest.fixture
def operator(api, cred_store, cues):
    return _session(api, cred_store, cues, admin=True)


# ── Privilege ────────────────────────────────────────────────────


class TestPrivilege:
    def test_no_credentials_is_viewer(self, viewer):
        assert not viewer.is_admin

    def test_admin_role_is_operator(self, operator):
        assert operator.is_admin

    def test_non_admin_role_is_viewer(self, api, cred_store, cues):
        cred_store.save(Credentials(token="tok", role="USER", username="fan"))
        session = _session(api, cred_store, cues)
        assert session.credentials.signed_in
        assert not session.is_admin

    def test_rejected_credential_demotes(self, operator, api):
        api.award_tossup.side_effect = AuthRejected(
            "http", "/api/game/award-tossup", "HTTP 403", status=403, message="Forbidden",
        )
        assert operator.award_tossup("A") is False
        assert not operator.is_admin
        assert operator.message == "Forbidden"


# ── Viewer routing ───────────────────────────────────────────────


class TestViewer:
    def test_scoring_is_local(self, viewer, api, cues):
        assert viewer.award_tossup("A")
        assert viewer.award_bonus()
        assert viewer.next_tossup()
        api.award_tossup.assert_not_called()
        api.award_bonus.assert_not_called()
        api.next_tossup.assert_not_called()
        game = viewer.store.game
        assert game.team_a_score == 20
        assert game.question_number == 2
        assert cues == [Cue.CORRECT, Cue.BONUS]

    def test_bonus_without_tossup(self, viewer, cues):
        assert viewer.award_bonus() is False
        assert cues == []

    def test_no_bonus_cue_when_first_pull_races(self, viewer, cues):
        loaded = parse_game(make_game_payload(teamAScore=50))
        original = viewer.store.transform_game

        def racing_transform(fn):
            original(lambda _current: loaded)
            return original(fn)

        viewer.store.transform_game = racing_transform
        assert viewer.award_bonus() is False
        assert cues == []

    def test_local_scoring_on_top_of_loaded_game(self, viewer):
        viewer.sync.refresh_game()
        viewer.sync.drain()
        viewer.award_tossup("B")
        viewer.sync.refresh_game()
        viewer.sync.drain()
        assert viewer.store.game.team_a_score == 50
        assert viewer.store.game.team_b_score == 10

    def test_reset_is_local(self, viewer, api):
        viewer.award_tossup("A")
        viewer.message = "stale"
        assert viewer.reset_game()
        api.reset_game.assert_not_called()
        assert viewer.store.game.team_a_score == 0
        assert viewer.message == ""

    def test_names_are_local(self, viewer, api):
        viewer.save_team_names("Owls", "Hawks")
        api.set_team_names.assert_not_called()
        assert viewer.store.game.team_a_name == "Owls"

    def test_next_tossup_resets_timer(self, viewer):
        viewer.start_timer("bonus")
        viewer.next_tossup()
        assert viewer.timer.mode == "tossup"
        assert viewer.timer.remaining == 7
        assert not viewer.timer.running

    def test_unknown_team(self, viewer):
        with pytest.raises(ValueError):
            viewer.award_tossup("Z")


# ── Operator routing ─────────────────────────────────────────────


class TestOperator:
    def test_award_tossup_calls_backend_and_refreshes(self, operator, api, cues):
        assert operator.award_tossup("B")
        api.award_tossup.assert_called_once_with("default", "B")
        api.get_game.assert_called_once_with("default")
        operator.sync.drain()
        assert operator.store.game.team_a_score == 50
        assert cues == [Cue.CORRECT]

    def test_write_failure_sets_message_and_leaves_state(self, operator, api, cues):
        api.award_bonus.side_effect = ApiError("transport", "/api/game/award-bonus", "down")
        assert operator.award_bonus() is False
        assert operator.message == "Unable to award bonus"
        assert operator.store.game is None
        assert operator.is_admin
        assert cues == []

    def test_next_tossup_failure_keeps_timer(self, operator, api):
        api.next_tossup.side_effect = ApiError("http", "/api/game/next-tossup", "HTTP 500",
                                               status=500)
        operator.start_timer("bonus")
        assert operator.next_tossup() is False
        assert operator.timer.mode == "bonus"
        assert operator.timer.running

    def test_reset_resets_game_and_bracket(self, operator, api):
        operator.player_team_id = "t1"
        assert operator.reset_game()
        api.reset_game.assert_called_once_with("default")
        api.reset_bracket.assert_called_once_with()
        assert operator.player_team_id is None

    def test_reset_failure_message(self, operator, api):
        api.reset_game.side_effect = ApiError("transport", "/api/game/reset", "down")
        assert operator.reset_game() is False
        assert operator.message == "Unable to reset game (are you logged in as admin?)"
        api.reset_bracket.assert_not_called()

    def test_push_pairing_requires_both(self, operator, api):
        assert operator.push_pairing("t1", None) is False
        api.set_current_match.assert_not_called()
        assert operator.push_pairing("t1", "t4")
        api.set_current_match.assert_called_once_with("default", "t1", "t4")

    def test_init_bracket_parses_names(self, operator, api):
        assert operator.init_bracket(" Owls \n\nHawks\n")
        api.init_bracket.assert_called_once_with(["Owls", "Hawks"])
        operator.sync.drain()
        assert operator.store.bracket is not None

    def test_init_bracket_empty(self, operator, api):
        assert operator.init_bracket("\n  \n") is False
        api.init_bracket.assert_not_called()

    def test_finalize(self, operator, api):
        assert operator.finalize_current()
        api.finalize_current_match.assert_called_once_with("default")


# ── Auth ─────────────────────────────────────────────────────────


class TestAuth:
    def test_login_persists(self, viewer, api, cred_store):
        api.login.return_value = {"token": "tok", "role": "ADMIN", "username": "mod"}
        assert viewer.login("mod", "pw")
        assert viewer.is_admin
        assert cred_store.load() == Credentials(token="tok", role="ADMIN", username="mod")

    def test_login_failure(self, viewer, api, cred_store):
        api.login.side_effect = ApiError("http", "/api/auth/login", "HTTP 401", status=401)
        assert viewer.login("mod", "bad") is False
        assert viewer.message == "Invalid username or password"
        assert not cred_store.path.exists()

    def test_register_failure_uses_server_message(self, viewer, api):
        api.register.side_effect = ApiError("http", "/api/auth/register", "HTTP 409",
                                            status=409, message="Username taken")
        assert viewer.register("mod", "pw") is False
        assert viewer.message == "Username taken"

    def test_login_without_token(self, viewer, api):
        api.login.return_value = {"role": "ADMIN"}
        assert viewer.login("mod", "pw") is False
        assert not viewer.is_admin

    def test_update_profile(self, operator, api, cred_store):
        api.update_profile.return_value = {"username": "boss", "role": "ADMIN"}
        assert operator.update_profile("boss", "")
        api.update_profile.assert_called_once_with("boss", None)
        assert cred_store.load().username == "boss"
        assert cred_store.load().token == "tok"
        assert operator.message == "Profile updated"

    def test_logout_clears(self, operator, cred_store):
        operator.logout()
        assert not operator.is_admin
        assert not cred_store.path.exists()

    def test_login_clears_demotion(self, operator, api):
        api.award_tossup.side_effect = AuthRejected("http", "/x", "HTTP 401", status=401)
        operator.award_tossup("A")
        assert not operator.is_admin
        api.login.return_value = {"token": "new", "role": "ADMIN", "username": "mod"}
        operator.login("mod", "pw")
        assert operator.is_admin


# ── Timer cue and next match ─────────────────────────────────────


class TestTimerAndBracket:
    def test_timer_expiry_cue(self, viewer, cues):
        viewer.start_timer("tossup")
        for _ in range(7):
            viewer.timer.tick()
        assert cues == [Cue.TIMER_END]

    def test_cue_handler_errors_swallowed(self, api, cred_store):
        def broken(cue):
            raise RuntimeError("no audio device")

        session = Session(ClientConfig(), api=api, credential_store=cred_store, on_cue=broken)
        assert session.award_tossup("A")

    def test_next_match_for_player(self, viewer):
        viewer.sync.refresh_bracket()
        viewer.sync.drain()
        viewer.player_team_id = "t1"
        assert viewer.next_match_for().opponent == "Wrens"
        assert viewer.next_match_for("t3").status == "eliminated"

    def test_close_is_safe_without_start(self, viewer, api):
        viewer.close()
        api.close.assert_not_called()
