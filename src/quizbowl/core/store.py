"""StateStore: the single shared container for the game and bracket mirrors.

Writers never touch fields: they either replace a whole snapshot or pass
a function that maps the current snapshot to the next one. Both run
under one lock, so a reader never sees a half-applied transition.
"""

from __future__ import annotations

import threading
from typing import Callable

from quizbowl.core.models import BracketState, GameState

Listener = Callable[[str], None]


class StateStore:
    """Last-known GameState and BracketState for one session."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._game: GameState | None = None
        self._bracket: BracketState | None = None
        self._listeners: list[Listener] = []

    @property
    def game(self) -> GameState | None:
        with self._lock:
            return self._game

    @property
    def bracket(self) -> BracketState | None:
        with self._lock:
            return self._bracket

    def snapshot(self) -> tuple[GameState | None, BracketState | None]:
        """Return both mirrors as observed at a single instant."""
        with self._lock:
            return self._game, self._bracket

    def subscribe(self, listener: Listener) -> None:
        """Call ``listener("game"|"bracket")`` after each change."""
        self._listeners.append(listener)

    def replace_game(self, game: GameState | None) -> None:
        self.transform_game(lambda _current: game)

    def transform_game(
        self, fn: Callable[[GameState | None], GameState | None],
    ) -> GameState | None:
        """Atomically replace the game with ``fn(current)``; return the result."""
        with self._lock:
            current = self._game
            updated = fn(current)
            self._game = updated
        if updated is not current:
            self._notify("game")
        return updated

    def replace_bracket(self, bracket: BracketState | None) -> None:
        self.transform_bracket(lambda _current: bracket)

    def transform_bracket(
        self, fn: Callable[[BracketState | None], BracketState | None],
    ) -> BracketState | None:
        with self._lock:
            current = self._bracket
            updated = fn(current)
            self._bracket = updated
        if updated is not current:
            self._notify("bracket")
        return updated

    def _notify(self, kind: str) -> None:
        for listener in list(self._listeners):
            listener(kind)
