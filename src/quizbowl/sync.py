"""Synchronizer: keeps the store's game and bracket mirrors current.

Two producers feed one ordered queue:

- the pull channel polls game and bracket on a fixed cadence (short for
  the operator, long for viewers);
- the push channel reads the server's bracket event stream, each event a
  full BracketState snapshot.

A single applier thread drains the queue into the StateStore, so
updates land in receipt order. There is no cross-channel reconciliation:
a push can overtake an in-flight pull for the same snapshot and
whichever arrives last wins.

Game write policy: a pulled game replaces the mirror only for a
privileged session, or when no game has been loaded yet. After a
viewer's first snapshot, pulls keep running but their payload is
discarded so local simulated scoring is never overwritten.

Failures never propagate. Pull errors, including unexpected ones, are
logged and retried on the next tick. A stream error closes the stream for good; bracket freshness then
falls back to the pull cadence.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable

from quizbowl.config import PollingConfig
from quizbowl.core.api import ApiClient, ApiError, BracketStream, decode_bracket_event
from quizbowl.core.models import BracketState, GameState
from quizbowl.core.store import StateStore

logger = logging.getLogger(__name__)

PULL = "pull"
PUSH = "push"
_SENTINEL = object()
_JOIN_TIMEOUT_S = 5.0


@dataclass(frozen=True)
class Update:
    """One snapshot produced by a channel, waiting to be applied."""

    channel: str  # PULL or PUSH
    snapshot: GameState | BracketState


class Synchronizer:
    """Owns the polling cadence and the bracket stream subscription."""

    def __init__(
        self,
        api: ApiClient,
        store: StateStore,
        game_id: str,
        privileged: Callable[[], bool],
        polling: PollingConfig | None = None,
    ) -> None:
        self._api = api
        self._store = store
        self._game_id = game_id
        self._privileged = privileged
        self._polling = polling or PollingConfig()

        self._queue: queue.Queue = queue.Queue()
        self._stop = threading.Event()
        self._apply_lock = threading.Lock()
        self._closed = False
        self._threads: list[threading.Thread] = []
        self._stream: BracketStream | None = None
        self._stream_lock = threading.Lock()

        self.loading_game = False
        self.loading_bracket = False
        self.stream_open = False

    @property
    def poll_interval_s(self) -> float:
        if self._privileged():
            return self._polling.operator_interval_s
        return self._polling.viewer_interval_s

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> None:
        """Spawn the applier, poller and (if enabled) stream threads."""
        if self._threads or self._closed:
            return
        targets = [("apply", self._apply_loop), ("poll", self._poll_loop)]
        if self._polling.stream_enabled:
            self.stream_open = True
            targets.append(("stream", self._stream_loop))
        for name, target in targets:
            thread = threading.Thread(
                target=target, daemon=True, name=f"quizbowl-sync-{name}",
            )
            self._threads.append(thread)
            thread.start()

    def close(self) -> None:
        """Tear down every channel. No update is applied after this returns."""
        with self._apply_lock:
            self._closed = True
        self._stop.set()
        with self._stream_lock:
            stream = self._stream
        if stream is not None:
            stream.close()
        self._queue.put(_SENTINEL)
        for thread in self._threads:
            if thread is threading.current_thread():
                continue
            thread.join(_JOIN_TIMEOUT_S)
            if thread.is_alive():
                logger.debug("%s still blocked after close; its output is discarded", thread.name)

    def __enter__(self) -> Synchronizer:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ── Applying ─────────────────────────────────────────────────

    def apply(self, update: Update) -> None:
        """Write one update into the store under the game write policy."""
        with self._apply_lock:
            if self._closed:
                return
            snapshot = update.snapshot
            if isinstance(snapshot, BracketState):
                self._store.replace_bracket(snapshot)
                return
            privileged = self._privileged()
            self._store.transform_game(
                lambda current: snapshot if privileged or current is None else current
            )

    def drain(self) -> int:
        """Apply everything queued so far on the calling thread."""
        applied = 0
        while True:
            try:
                update = self._queue.get_nowait()
            except queue.Empty:
                return applied
            if update is _SENTINEL:
                return applied
            self.apply(update)
            applied += 1

    def _apply_loop(self) -> None:
        while True:
            update = self._queue.get()
            if update is _SENTINEL:
                return
            try:
                self.apply(update)
            except Exception:
                logger.exception("Failed to apply %s update", update.channel)

    def _enqueue(self, update: Update) -> None:
        if not self._stop.is_set():
            self._queue.put(update)

    # ── Pull channel ─────────────────────────────────────────────

    def refresh_game(self) -> bool:
        """Fetch the game once. Returns False if the read failed."""
        self.loading_game = True
        try:
            game = self._api.get_game(self._game_id)
        except (ApiError, ValueError) as e:
            logger.debug("Game poll failed: %s", e)
            return False
        finally:
            self.loading_game = False
        self._enqueue(Update(channel=PULL, snapshot=game))
        return True

    def refresh_bracket(self) -> bool:
        """Fetch the bracket once. Returns False if the read failed."""
        self.loading_bracket = True
        try:
            bracket = self._api.get_bracket()
        except (ApiError, ValueError) as e:
            logger.debug("Bracket poll failed: %s", e)
            return False
        finally:
            self.loading_bracket = False
        self._enqueue(Update(channel=PULL, snapshot=bracket))
        return True

    def poll_once(self) -> None:
        self.refresh_game()
        self.refresh_bracket()

    def _poll_loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Poll failed, retrying next tick")
            if self._stop.wait(self.poll_interval_s):
                return

    # ── Push channel ─────────────────────────────────────────────

    def _stream_loop(self) -> None:
        stream = self._api.open_bracket_stream()
        with self._stream_lock:
            if self._stop.is_set():
                self.stream_open = False
                return
            self._stream = stream
        try:
            for event in stream.events():
                if self._stop.is_set():
                    break
                bracket = decode_bracket_event(event)
                if bracket is not None:
                    self._enqueue(Update(channel=PUSH, snapshot=bracket))
        except ApiError as e:
            logger.warning("Bracket stream closed, not reconnecting: %s", e)
        except Exception:
            if not self._stop.is_set():
                logger.exception("Bracket stream failed, not reconnecting")
        finally:
            stream.close()
            self.stream_open = False
