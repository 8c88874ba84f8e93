"""Countdown timer for tossup and bonus reading windows.

CountdownTimer is the state machine; it only moves when ``tick()`` is
called. Ticker drives it once per second from a background thread and
can be cancelled so that no tick lands after ``stop()`` returns.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)

MODE_DURATIONS = {
    "tossup": 7,
    "bonus": 20,
}


class TimerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"


def mode_duration(mode: str) -> int:
    try:
        return MODE_DURATIONS[mode]
    except KeyError:
        raise ValueError(
            f"Unknown timer mode {mode!r}, expected one of {sorted(MODE_DURATIONS)}"
        ) from None


class CountdownTimer:
    """Tossup/bonus countdown.

    Expiry stops the timer, clamps the value at zero and calls
    ``on_expire`` exactly once per run. The callback runs outside the
    timer's lock, so it may safely call back into the timer.
    """

    def __init__(
        self,
        mode: str = "tossup",
        on_expire: Callable[[], None] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._mode = mode
        self._remaining = mode_duration(mode)
        self._state = TimerState.IDLE
        self._on_expire = on_expire

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is TimerState.RUNNING

    @property
    def duration(self) -> int:
        return MODE_DURATIONS[self._mode]

    @property
    def progress(self) -> float:
        """Fraction of the current mode's window left, within [0, 1]."""
        with self._lock:
            return max(0.0, min(1.0, self._remaining / MODE_DURATIONS[self._mode]))

    def start(self, mode: str | None = None) -> None:
        """Restart the countdown from the full duration of ``mode``."""
        mode = mode or self._mode
        duration = mode_duration(mode)
        with self._lock:
            self._mode = mode
            self._remaining = duration
            self._state = TimerState.RUNNING

    def pause(self) -> None:
        with self._lock:
            if self._state is TimerState.RUNNING:
                self._state = TimerState.IDLE

    def reset(self) -> None:
        with self._lock:
            self._state = TimerState.IDLE
            self._remaining = MODE_DURATIONS[self._mode]

    def switch_mode(self, mode: str) -> None:
        duration = mode_duration(mode)
        with self._lock:
            self._mode = mode
            self._remaining = duration
            self._state = TimerState.IDLE

    def tick(self) -> bool:
        """Advance one second. Returns True if this tick expired the timer."""
        with self._lock:
            if self._state is not TimerState.RUNNING:
                return False
            self._remaining = max(0, self._remaining - 1)
            if self._remaining > 0:
                return False
            self._state = TimerState.EXPIRED
        if self._on_expire is not None:
            self._on_expire()
        return True


class Ticker:
    """Calls ``timer.tick()`` once per ``interval_s`` on a daemon thread."""

    def __init__(self, timer: CountdownTimer, interval_s: float = 1.0) -> None:
        self._timer = timer
        self._interval_s = interval_s
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._loop, daemon=True, name="quizbowl-ticker",
        )
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop.wait(self._interval_s):
            try:
                self._timer.tick()
            except Exception:
                logger.exception("Timer tick failed")

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
