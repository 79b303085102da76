from collections import deque
import math
import time

from .logging_utils import log_event
from .values import Tempo, TempoTapAmount


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class TapTempo:
    """Turns tap timestamps (ms) into a smoothed tempo.

    Each interval between consecutive taps gives an instant BPM. The last
    ``tap_amount - 1`` of them are averaged. An interval slower than
    Tempo.MIN starts a new tapping session: the window is cleared and that
    tap only serves as the reference for the next one.
    """

    def __init__(self, tap_amount: TempoTapAmount | None = None):
        self._tap_amount = tap_amount or TempoTapAmount()
        self._last_tap_ms = None
        self._window = deque()

    @property
    def tap_amount(self) -> TempoTapAmount:
        return self._tap_amount

    @property
    def capacity(self) -> int:
        return self._tap_amount.window_capacity

    @property
    def window(self) -> tuple:
        return tuple(self._window)

    def set_tap_amount(self, tap_amount: TempoTapAmount):
        self._tap_amount = tap_amount
        # shrink now, not on the next tap
        while len(self._window) > self.capacity:
            self._window.popleft()

    def reset(self):
        self._last_tap_ms = None
        self._window.clear()

    def tap(self, timestamp_ms: int | None = None) -> Tempo | None:
        now = monotonic_ms() if timestamp_ms is None else int(timestamp_ms)
        last = self._last_tap_ms
        self._last_tap_ms = now
        if last is None:
            return None

        interval = now - last
        if interval <= 0:
            log_event("warning", "TapTempo", "Ignoring non-increasing tap", interval_ms=interval)
            self._window.clear()
            return None

        bpm = 60_000 // interval
        if bpm < Tempo.MIN:
            log_event("debug", "TapTempo", "Tap too slow, starting over", bpm=bpm)
            self._window.clear()
            return None

        while len(self._window) >= self.capacity:
            self._window.popleft()
        self._window.append(min(bpm, Tempo.MAX))
        return self.current()

    def current(self) -> Tempo | None:
        if not self._window:
            return None
        # half-up, so a 120.5 mean is 121 like 121.5 is 122
        return Tempo(math.floor(sum(self._window) / len(self._window) + 0.5))
