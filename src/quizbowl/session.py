"""Session: one operator's or viewer's connection to a match.

Owns the state store, the countdown, the synchronizer and the local
mutator, and routes every user action by privilege:

- the operator (persisted role ADMIN with a token) drives the backend
  and then re-pulls the state it just changed;
- a viewer never mutates the backend; scoring actions are simulated
  locally by the OptimisticMutator.

Write failures never raise. They leave state unchanged, log a warning
and put a user-facing line in ``session.message``. An admin credential
the backend rejects demotes the session to viewer.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

from quizbowl.bracket import NextMatch, next_match_for_team, parse_team_names
from quizbowl.config import ClientConfig
from quizbowl.core.api import ApiClient, ApiError, AuthRejected
from quizbowl.core.credentials import CredentialStore, Credentials
from quizbowl.core.models import TEAMS
from quizbowl.core.store import StateStore
from quizbowl.mutator import OptimisticMutator
from quizbowl.sync import Synchronizer
from quizbowl.timer import CountdownTimer, Ticker

logger = logging.getLogger(__name__)


class Cue(Enum):
    """Audible cues; playback itself belongs to the frontend."""

    CORRECT = "correct"
    BONUS = "bonus"
    TIMER_END = "timer_end"


class Session:
    """Controller tying the store, timer, sync channels and auth together."""

    def __init__(
        self,
        config: ClientConfig,
        api: ApiClient | None = None,
        credential_store: CredentialStore | None = None,
        on_cue: Callable[[Cue], None] | None = None,
    ) -> None:
        self.config = config
        self._credential_store = credential_store or CredentialStore(config.credentials_path)
        self.credentials = self._credential_store.load()
        self._demoted = False
        self._on_cue = on_cue

        self._owns_api = api is None
        self.api = api or ApiClient(
            config.base_url,
            token_provider=lambda: self.credentials.token or None,
            timeout_s=config.timeout_s,
        )
        self.store = StateStore()
        self.timer = CountdownTimer(on_expire=lambda: self._cue(Cue.TIMER_END))
        self.ticker = Ticker(self.timer, config.timer.tick_interval_s)
        self.sync = Synchronizer(
            self.api,
            self.store,
            config.game_id,
            privileged=lambda: self.is_admin,
            polling=config.polling,
        )
        self.mutator = OptimisticMutator(self.store, timer=self.timer)

        self.message = ""
        self.player_team_id: str | None = None

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> None:
        self.sync.start()
        self.ticker.start()

    def close(self) -> None:
        self.ticker.stop()
        self.sync.close()
        if self._owns_api:
            self.api.close()

    def __enter__(self) -> Session:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ── Privilege ────────────────────────────────────────────────

    @property
    def is_admin(self) -> bool:
        return self.credentials.is_admin and not self._demoted

    def _cue(self, cue: Cue) -> None:
        if self._on_cue is None:
            return
        try:
            self._on_cue(cue)
        except Exception:
            logger.exception("Cue handler failed for %s", cue.value)

    def _backend(self, action: str, fn: Callable[..., Any], *args, failure: str) -> bool:
        """Run a backend write; on failure record a message and return False."""
        try:
            fn(*args)
        except AuthRejected as e:
            self._demoted = True
            self.message = e.message or f"{failure} (admin credential rejected)"
            logger.warning("%s rejected, continuing as viewer: %s", action, e)
            return False
        except ApiError as e:
            self.message = e.message or failure
            logger.warning("%s failed: %s", action, e)
            return False
        self.message = ""
        return True

    # ── Scoring ──────────────────────────────────────────────────

    def award_tossup(self, team: str) -> bool:
        if team not in TEAMS:
            raise ValueError(f"Unknown team {team!r}, expected 'A' or 'B'")
        if self.is_admin:
            game_id = self.config.game_id
            if not self._backend("award-tossup", self.api.award_tossup, game_id, team,
                                 failure="Unable to award tossup"):
                return False
            self._cue(Cue.CORRECT)
            self.sync.refresh_game()
            return True
        self.mutator.award_tossup(team)
        self._cue(Cue.CORRECT)
        return True

    def award_bonus(self) -> bool:
        if self.is_admin:
            if not self._backend("award-bonus", self.api.award_bonus, self.config.game_id,
                                 failure="Unable to award bonus"):
                return False
            self._cue(Cue.BONUS)
            self.sync.refresh_game()
            return True
        if self.mutator.award_bonus() is None:
            return False
        self._cue(Cue.BONUS)
        return True

    def next_tossup(self) -> bool:
        if self.is_admin:
            if not self._backend("next-tossup", self.api.next_tossup, self.config.game_id,
                                 failure="Unable to advance question"):
                return False
            self.timer.switch_mode("tossup")
            self.sync.refresh_game()
            return True
        self.mutator.advance_question()
        return True

    def reset_game(self) -> bool:
        if not self.is_admin:
            self.mutator.reset_game()
            self.message = ""
            return True
        failure = "Unable to reset game (are you logged in as admin?)"
        if not self._backend("reset-game", self.api.reset_game, self.config.game_id,
                             failure=failure):
            return False
        if not self._backend("reset-bracket", self.api.reset_bracket, failure=failure):
            return False
        self.timer.switch_mode("tossup")
        self.player_team_id = None
        self.sync.refresh_game()
        self.sync.refresh_bracket()
        return True

    def save_team_names(self, team_a_name: str, team_b_name: str) -> bool:
        if not self.is_admin:
            self.mutator.rename_teams(team_a_name, team_b_name)
            return True
        if not self._backend("team-names", self.api.set_team_names, self.config.game_id,
                             team_a_name, team_b_name, failure="Unable to save team names"):
            return False
        self.sync.refresh_game()
        return True

    # ── Bracket (operator) ───────────────────────────────────────

    def init_bracket(self, names_text: str) -> bool:
        names = parse_team_names(names_text)
        if not names:
            self.message = "Enter at least one team name"
            return False
        if not self._backend("init-bracket", self.api.init_bracket, names,
                             failure="Unable to initialize bracket"):
            return False
        self.sync.refresh_bracket()
        return True

    def reset_bracket(self) -> bool:
        if not self._backend("reset-bracket", self.api.reset_bracket,
                             failure="Unable to reset bracket"):
            return False
        self.sync.refresh_bracket()
        return True

    def push_pairing(self, team_a_id: str | None, team_b_id: str | None) -> bool:
        """Make ``team_a_id`` vs ``team_b_id`` the game's current match."""
        if not team_a_id or not team_b_id:
            return False
        if not self._backend("set-current", self.api.set_current_match, self.config.game_id,
                             team_a_id, team_b_id, failure="Unable to push pairing"):
            return False
        self.sync.refresh_bracket()
        self.sync.refresh_game()
        return True

    def finalize_current(self) -> bool:
        if not self._backend("finalize-current", self.api.finalize_current_match,
                             self.config.game_id, failure="Unable to finalize match"):
            return False
        self.sync.refresh_bracket()
        return True

    def next_match_for(self, team_id: str | None = None) -> NextMatch | None:
        return next_match_for_team(self.store.bracket, team_id or self.player_team_id)

    # ── Timer ────────────────────────────────────────────────────

    def start_timer(self, mode: str | None = None) -> None:
        self.timer.start(mode)

    def pause_timer(self) -> None:
        self.timer.pause()

    def reset_timer(self) -> None:
        self.timer.reset()

    def select_timer_mode(self, mode: str) -> None:
        self.timer.switch_mode(mode)

    # ── Auth ─────────────────────────────────────────────────────

    def _remember(self, creds: Credentials) -> None:
        self.credentials = creds
        self._demoted = False
        self._credential_store.save(creds)

    def _authenticate(self, fn: Callable[[str, str], Any], username: str,
                      password: str, failure: str) -> bool:
        try:
            body = fn(username, password)
        except ApiError as e:
            self.message = e.message or failure
            logger.warning("Authentication failed: %s", e)
            return False
        if not isinstance(body, dict) or not body.get("token"):
            self.message = failure
            logger.warning("Authentication response carried no token")
            return False
        self._remember(Credentials(
            token=str(body["token"]),
            role=str(body.get("role") or ""),
            username=str(body.get("username") or username),
        ))
        self.message = ""
        return True

    def login(self, username: str, password: str) -> bool:
        return self._authenticate(self.api.login, username, password,
                                  "Invalid username or password")

    def register(self, username: str, password: str) -> bool:
        return self._authenticate(self.api.register, username, password,
                                  "Registration failed")

    def update_profile(self, new_username: str | None, new_password: str | None) -> bool:
        try:
            body = self.api.update_profile(new_username or None, new_password or None)
        except ApiError as e:
            self.message = e.message or "Update failed"
            logger.warning("Profile update failed: %s", e)
            return False
        body = body if isinstance(body, dict) else {}
        self._remember(Credentials(
            token=self.credentials.token,
            role=str(body.get("role") or self.credentials.role),
            username=str(body.get("username") or self.credentials.username),
        ))
        self.message = "Profile updated"
        return True

    def logout(self) -> None:
        self.credentials = Credentials()
        self._demoted = False
        self._credential_store.clear()
