import threading
from dataclasses import replace

from PyQt5.QtCore import QObject, QTimer, pyqtSignal, Qt, QElapsedTimer, pyqtSlot

from .logging_utils import log_event
from .timing import Tick, TickType, TimingConfiguration


class MetronomeEngine(QObject):
    """Emits ticks at the configured tempo from whatever thread it lives in.

    The controller reads and writes the configuration from its own thread,
    so the configuration is guarded by a lock. Starting and stopping go
    through a signal so the timer is always touched from the engine thread.
    """
    tick = pyqtSignal(object)  # Tick
    refreshed = pyqtSignal()  # configuration or play state changed on our side
    _playRequested = pyqtSignal(bool)

    def __init__(self, configuration: TimingConfiguration | None = None, parent=None):
        super().__init__(parent)
        self._lock = threading.Lock()
        self._config = replace(configuration or TimingConfiguration(), playing=False)

        # Timer is created in initialize() to ensure thread affinity
        self._timer = None
        self._running = False

        self._step_index = 0

        # High-resolution scheduling
        self._clock = QElapsedTimer()
        self._step_ns = 0
        self._next_due_ns = 0

        self._recompute_interval()
        self._playRequested.connect(self._apply_playing)

    @pyqtSlot()
    def initialize(self):
        """Create timer in the worker thread."""
        if self._timer is not None:
            return
        self._timer = QTimer(self)
        self._timer.setTimerType(Qt.PreciseTimer)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._on_timeout)

    # Configuration
    def get_configuration(self) -> TimingConfiguration:
        with self._lock:
            return replace(self._config, playing=self._running)

    def set_configuration(self, configuration: TimingConfiguration):
        """Apply beats, subdivisions, tempo and emphasis. Play state is left alone."""
        with self._lock:
            previous = self._config
            self._config = previous.with_settings_of(configuration)
            if (previous.beats, previous.subdivisions) != (configuration.beats, configuration.subdivisions):
                self._step_index = 0
            self._recompute_interval()
        log_event(
            "debug", "Engine", "Configuration applied",
            beats=configuration.beats.value,
            subdivisions=configuration.subdivisions.value,
            tempo=configuration.tempo.value,
        )

    def update_configuration(self, configuration: TimingConfiguration):
        """Change the configuration from another control surface and tell listeners."""
        self.set_configuration(configuration)
        self.refreshed.emit()

    # Play state
    @property
    def playing(self) -> bool:
        return self._running

    def set_playing(self, playing: bool):
        self._playRequested.emit(bool(playing))

    @pyqtSlot(bool)
    def _apply_playing(self, playing: bool):
        if playing:
            self.start()
        else:
            self.stop()

    @pyqtSlot()
    def start(self):
        if self._running:
            return
        self.initialize()
        with self._lock:
            self._step_index = 0
            self._running = True
        # Initialize high-res clock and schedule first tick precisely
        self._clock.start()
        now_ns = self._clock.nsecsElapsed()
        self._next_due_ns = now_ns + self._step_ns
        self._schedule_next(now_ns)
        log_event("info", "Engine", "Started", tempo=self._config.tempo.value)
        self.refreshed.emit()

    @pyqtSlot()
    def stop(self):
        if not self._running:
            return
        self._timer.stop()
        with self._lock:
            self._running = False
        log_event("info", "Engine", "Stopped")
        self.refreshed.emit()

    def _recompute_interval(self):
        # One beat lasts 60000 / bpm ms, split evenly across subdivisions.
        # A running loop picks up the new step size on its next schedule.
        config = self._config
        self._step_ns = int(60_000_000_000 / (config.tempo.value * config.subdivisions.value))

    def _classify(self, config: TimingConfiguration, step_index: int) -> Tick:
        subdivisions = config.subdivisions.value
        beat_index = step_index // subdivisions
        if step_index % subdivisions != 0:
            tick_type = TickType.SUB
        elif beat_index == 0 and config.emphasize_first_beat:
            tick_type = TickType.STRONG
        else:
            tick_type = TickType.WEAK
        return Tick(beat_index + 1, tick_type)

    def _on_timeout(self):
        try:
            if not self._running:
                return
            with self._lock:
                config = self._config
                steps_per_bar = config.beats.value * config.subdivisions.value
                if self._step_index >= steps_per_bar:
                    self._step_index = 0
                tick = self._classify(config, self._step_index)
                # Advance counters before emitting so a re-entrant edit resets cleanly
                self._step_index = (self._step_index + 1) % steps_per_bar

            self.tick.emit(tick)

            # Compute and schedule next precise timeout with drift compensation
            now_ns = self._clock.nsecsElapsed()
            self._next_due_ns += self._step_ns
            # If we fell behind by more than one step, jump ahead but do not spam multiple ticks
            if self._next_due_ns <= now_ns:
                missed = (now_ns - self._next_due_ns) // max(1, self._step_ns) + 1
                self._next_due_ns += missed * self._step_ns
            self._schedule_next(now_ns)
        except Exception as e:
            log_event("error", "Engine", "Error in tick loop", error=repr(e))

    def _schedule_next(self, now_ns: int):
        delay_ns = max(0, self._next_due_ns - now_ns)
        # QTimer works in milliseconds; anything under 1ms fires ASAP
        self._timer.start(int(delay_ns / 1_000_000))
