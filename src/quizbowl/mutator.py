"""OptimisticMutator: local-only scoring for unprivileged viewers.

Viewers never reach the backend's mutating endpoints. Instead their
scoring clicks are simulated here with the same rules the server
applies, each as one atomic transform of the store's game snapshot.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable

from quizbowl.core.models import (
    POINTS_PER_AWARD,
    TEAMS,
    EventType,
    GameState,
    HistoryEvent,
)
from quizbowl.core.store import StateStore
from quizbowl.timer import CountdownTimer


def _now_ms() -> int:
    return int(time.time() * 1000)


class OptimisticMutator:
    """Simulates award-tossup, award-bonus, next-tossup and reset locally."""

    def __init__(
        self,
        store: StateStore,
        timer: CountdownTimer | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self._timer = timer
        self._clock = clock

    def _stamp(self, game: GameState) -> int:
        # Timestamps never run backwards within the log
        now = self._clock()
        if game.history:
            return max(now, game.history[-1].timestamp)
        return now

    def _award(self, game: GameState, team: str, kind: EventType) -> GameState:
        label = "Tossup" if kind is EventType.TOSSUP else "Bonus"
        event = HistoryEvent(
            type=kind,
            description=f"{label} +{POINTS_PER_AWARD} → {game.team_name(team)}",
            timestamp=self._stamp(game),
            team=team,
            points=POINTS_PER_AWARD,
        )
        awarded = game.with_points(team, POINTS_PER_AWARD)
        return replace(awarded, history=game.history + (event,))

    def award_tossup(self, team: str) -> GameState:
        if team not in TEAMS:
            raise ValueError(f"Unknown team {team!r}, expected 'A' or 'B'")

        def apply(game: GameState | None) -> GameState:
            base = game if game is not None else GameState.default()
            awarded = self._award(base, team, EventType.TOSSUP)
            return replace(awarded, last_tossup_winner=team)

        return self._store.transform_game(apply)

    def award_bonus(self) -> GameState | None:
        """Award the bonus to the last tossup winner.

        Returns the new game, or None when no team is bonus-eligible and
        nothing was awarded.
        """
        awarded = False

        def apply(game: GameState | None) -> GameState | None:
            nonlocal awarded
            if game is None or game.last_tossup_winner not in TEAMS:
                return game
            awarded = True
            return self._award(game, game.last_tossup_winner, EventType.BONUS)

        updated = self._store.transform_game(apply)
        return updated if awarded else None

    def advance_question(self) -> GameState | None:
        def apply(game: GameState | None) -> GameState | None:
            if game is None:
                return None
            return replace(
                game,
                question_number=game.question_number + 1,
                last_tossup_winner=None,
            )

        updated = self._store.transform_game(apply)
        self._reset_timer()
        return updated

    def reset_game(self) -> GameState:
        game = GameState.default()
        self._store.replace_game(game)
        self._reset_timer()
        return game

    def rename_teams(self, team_a_name: str, team_b_name: str) -> GameState:
        def apply(game: GameState | None) -> GameState:
            base = game if game is not None else GameState.default()
            return replace(base, team_a_name=team_a_name, team_b_name=team_b_name)

        return self._store.transform_game(apply)

    def _reset_timer(self) -> None:
        if self._timer is not None:
            self._timer.switch_mode("tossup")
