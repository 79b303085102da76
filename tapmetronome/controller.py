from collections import deque
from dataclasses import replace
from enum import Enum

from PyQt5.QtCore import QObject, pyqtSignal, pyqtSlot

from .events import (
    ConfigurationEdited,
    ConfigurationRefreshed,
    Connected,
    Disconnected,
    PlayingRequested,
    TapAmountChanged,
    Tapped,
    TickOccurred,
)
from .logging_utils import log_event
from .settings import MetronomeSettings
from .timing import Tick, TimingConfiguration
from .utils import TapTempo
from .values import Beats, Subdivisions, Tempo, TempoTapAmount


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED_IDLE = "connected_idle"
    CONNECTED_PLAYING = "connected_playing"

    @property
    def connected(self) -> bool:
        return self is not ConnectionState.DISCONNECTED


class MetronomeController(QObject):
    """UI-facing metronome state, kept convergent with a tick engine.

    Only one side is authoritative at a time. When the engine is playing it
    owns the configuration and the UI copies it; otherwise the UI owns it and
    pushes it to the engine. Every input, from either side, goes through
    post() and is handled in arrival order on the controller's thread.
    """
    configurationChanged = pyqtSignal(object)  # TimingConfiguration
    estimatedTempoChanged = pyqtSignal(object)  # Tempo
    stateChanged = pyqtSignal(object)  # ConnectionState
    tickOccurred = pyqtSignal(object)  # Tick

    def __init__(self, settings: MetronomeSettings | None = None, parent=None):
        super().__init__(parent)
        self._settings = settings or MetronomeSettings()
        self._configuration = self._settings.to_configuration()
        self._estimated_tempo = None
        self._state = ConnectionState.DISCONNECTED
        self._engine = None
        self._tap_tempo = TapTempo(self._settings.tempo_tap_amount)

        self._queue = deque()
        self._dispatching = False
        self._handlers = {
            Connected: self._handle_connected,
            Disconnected: self._handle_disconnected,
            TickOccurred: self._handle_tick,
            ConfigurationRefreshed: self._handle_refreshed,
            Tapped: self._handle_tapped,
            ConfigurationEdited: self._handle_edited,
            PlayingRequested: self._handle_playing_requested,
            TapAmountChanged: self._handle_tap_amount_changed,
        }

    # Observable fields
    @property
    def configuration(self) -> TimingConfiguration:
        return self._configuration

    @property
    def estimated_tempo(self) -> Tempo | None:
        return self._estimated_tempo

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def tap_tempo(self) -> TapTempo:
        return self._tap_tempo

    # Event channel
    def post(self, event):
        if type(event) not in self._handlers:
            raise TypeError(f"Unsupported event: {event!r}")
        self._queue.append(event)
        if self._dispatching:
            # handled once the current event is done
            return
        self._dispatching = True
        try:
            while self._queue:
                current = self._queue.popleft()
                self._handlers[type(current)](current)
        finally:
            self._dispatching = False

    # Engine binding
    def bind(self, engine):
        if self._engine is engine:
            return
        if self._engine is not None:
            self.unbind()
        engine.tick.connect(self._on_engine_tick)
        engine.refreshed.connect(self._on_engine_refreshed)
        self.post(Connected(engine))

    def unbind(self):
        engine = self._engine
        if engine is None:
            return
        engine.tick.disconnect(self._on_engine_tick)
        engine.refreshed.disconnect(self._on_engine_refreshed)
        self.post(Disconnected())

    @pyqtSlot(object)
    def _on_engine_tick(self, tick: Tick):
        self.post(TickOccurred(tick))

    @pyqtSlot()
    def _on_engine_refreshed(self):
        self.post(ConfigurationRefreshed())

    # UI entry points
    def tap(self, timestamp_ms: int | None = None):
        self.post(Tapped(timestamp_ms))

    def set_configuration(self, configuration: TimingConfiguration):
        self.post(ConfigurationEdited.of(configuration))

    def set_beats(self, beats: Beats):
        self.post(ConfigurationEdited({"beats": Beats.coerce(beats)}))

    def set_subdivisions(self, subdivisions: Subdivisions):
        self.post(ConfigurationEdited({"subdivisions": Subdivisions.coerce(subdivisions)}))

    def set_tempo(self, tempo: Tempo):
        self.post(ConfigurationEdited({"tempo": Tempo.coerce(tempo)}))

    def set_emphasize_first_beat(self, emphasize: bool):
        self.post(ConfigurationEdited({"emphasize_first_beat": bool(emphasize)}))

    def increment_tempo(self, large: bool = False):
        step = self._settings.large_tempo_step if large else 1
        self.set_tempo(self._configuration.tempo.incremented(step))

    def decrement_tempo(self, large: bool = False):
        step = self._settings.large_tempo_step if large else 1
        self.set_tempo(self._configuration.tempo.decremented(step))

    def set_playing(self, playing: bool):
        self.post(PlayingRequested(bool(playing)))

    def toggle_playing(self):
        self.set_playing(not self._configuration.playing)

    def set_tempo_tap_amount(self, amount: TempoTapAmount):
        self.post(TapAmountChanged(TempoTapAmount.coerce(amount)))

    def snapshot_settings(self) -> MetronomeSettings:
        """Current user choices, ready to be persisted."""
        config = self._configuration
        return replace(
            self._settings,
            beats=config.beats,
            subdivisions=config.subdivisions,
            tempo=config.tempo,
            emphasize_first_beat=config.emphasize_first_beat,
            tempo_tap_amount=self._tap_tempo.tap_amount,
        )

    def close(self):
        """End of the UI session: drop the engine and any half-finished tap sequence."""
        self.unbind()
        self._tap_tempo.reset()

    # Handlers
    def _handle_connected(self, event: Connected):
        self._engine = event.engine
        log_event("info", "Controller", "Engine connected")
        self._synchronize()

    def _handle_disconnected(self, _event: Disconnected):
        self._engine = None
        log_event("info", "Controller", "Engine disconnected")
        self._set_state(ConnectionState.DISCONNECTED)

    def _handle_tick(self, event: TickOccurred):
        if not self._state.connected:
            # left over from an engine we no longer listen to
            return
        if self._state is ConnectionState.CONNECTED_PLAYING:
            engine_config = self._engine.get_configuration()
            # a stop is picked up by the refresh that follows it
            if engine_config.playing:
                self._adopt(engine_config)
        self.tickOccurred.emit(event.tick)

    def _handle_refreshed(self, _event: ConfigurationRefreshed):
        if not self._state.connected:
            return
        log_event("debug", "Controller", "Received refresh")
        self._synchronize()

    def _handle_tapped(self, event: Tapped):
        tempo = self._tap_tempo.tap(event.timestamp_ms)
        if tempo is None:
            return
        if tempo != self._estimated_tempo:
            self._estimated_tempo = tempo
            self.estimatedTempoChanged.emit(tempo)
        self._apply_edit({"tempo": tempo})

    def _handle_edited(self, event: ConfigurationEdited):
        self._apply_edit(event.changes)

    def _handle_playing_requested(self, event: PlayingRequested):
        if self._state.connected:
            # the engine reports back through refreshed
            self._engine.set_playing(event.playing)
        else:
            self._set_configuration(replace(self._configuration, playing=event.playing))

    def _handle_tap_amount_changed(self, event: TapAmountChanged):
        self._tap_tempo.set_tap_amount(event.amount)

    # Reconciliation
    def _synchronize(self):
        engine_config = self._engine.get_configuration()
        if engine_config.playing:
            self._adopt(engine_config)
            self._set_state(ConnectionState.CONNECTED_PLAYING)
        else:
            self._engine.set_configuration(self._configuration)
            self._set_configuration(replace(self._configuration, playing=False))
            self._set_state(ConnectionState.CONNECTED_IDLE)

    def _adopt(self, engine_config: TimingConfiguration):
        """Take the engine's configuration without pushing anything back."""
        self._set_configuration(engine_config)

    def _apply_edit(self, changes):
        changes = {k: v for k, v in changes.items() if k != "playing"}
        updated = replace(self._configuration, **changes)
        if not self._set_configuration(updated):
            return
        if self._state.connected:
            self._engine.set_configuration(updated)

    def _set_configuration(self, configuration: TimingConfiguration) -> bool:
        if configuration == self._configuration:
            return False
        self._configuration = configuration
        self.configurationChanged.emit(configuration)
        return True

    def _set_state(self, state: ConnectionState):
        if state is self._state:
            return
        log_event("info", "Controller", "State changed", old=self._state.name, new=state.name)
        self._state = state
        self.stateChanged.emit(state)
