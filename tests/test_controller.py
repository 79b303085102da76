from __future__ import annotations

import pytest

from tapmetronome.controller import ConnectionState, MetronomeController
from tapmetronome.engine import MetronomeEngine
from tapmetronome.events import Disconnected, TickOccurred
from tapmetronome.settings import MetronomeSettings
from tapmetronome.timing import Tick, TickType, TimingConfiguration
from tapmetronome.values import Beats, OutOfRange, Subdivisions, Tempo, TempoTapAmount

T0 = 5_000_000


@pytest.fixture
def engine():
    engine = MetronomeEngine(TimingConfiguration(beats=Beats(3), tempo=Tempo(100)))
    yield engine
    engine.stop()


@pytest.fixture
def controller() -> MetronomeController:
    return MetronomeController(MetronomeSettings(beats=Beats(5), tempo=Tempo(140)))


def test_starts_disconnected_with_settings(controller: MetronomeController) -> None:
    assert controller.state is ConnectionState.DISCONNECTED
    assert controller.configuration.beats == Beats(5)
    assert controller.configuration.tempo == Tempo(140)
    assert controller.estimated_tempo is None


def test_playing_engine_wins_on_connect(engine: MetronomeEngine, controller: MetronomeController) -> None:
    engine.start()
    controller.bind(engine)

    assert controller.state is ConnectionState.CONNECTED_PLAYING
    assert controller.configuration.beats == Beats(3)
    assert controller.configuration.tempo == Tempo(100)
    assert controller.configuration.playing is True
    assert engine.get_configuration().beats == Beats(3)


def test_idle_engine_adopts_ui_on_connect(engine: MetronomeEngine, controller: MetronomeController) -> None:
    controller.bind(engine)

    assert controller.state is ConnectionState.CONNECTED_IDLE
    assert engine.get_configuration().beats == Beats(5)
    assert engine.get_configuration().tempo == Tempo(140)
    assert controller.configuration.beats == Beats(5)


def test_edits_are_pushed_while_connected(engine: MetronomeEngine, controller: MetronomeController) -> None:
    controller.bind(engine)
    controller.set_beats(Beats(7))
    controller.set_subdivisions(Subdivisions(3))
    controller.set_emphasize_first_beat(False)

    config = engine.get_configuration()
    assert config.beats == Beats(7)
    assert config.subdivisions == Subdivisions(3)
    assert config.emphasize_first_beat is False


def test_disconnect_keeps_configuration_for_next_connection(
    engine: MetronomeEngine, controller: MetronomeController
) -> None:
    states: list[ConnectionState] = []
    controller.stateChanged.connect(states.append)

    controller.bind(engine)
    controller.unbind()
    controller.set_tempo(Tempo(90))
    assert controller.state is ConnectionState.DISCONNECTED
    assert engine.get_configuration().tempo == Tempo(140)

    controller.bind(engine)
    assert engine.get_configuration().tempo == Tempo(90)
    assert states == [
        ConnectionState.CONNECTED_IDLE,
        ConnectionState.DISCONNECTED,
        ConnectionState.CONNECTED_IDLE,
    ]


def test_play_requests_go_through_the_engine(engine: MetronomeEngine, controller: MetronomeController) -> None:
    controller.bind(engine)

    controller.set_playing(True)
    assert engine.playing is True
    assert controller.state is ConnectionState.CONNECTED_PLAYING
    assert controller.configuration.playing is True

    controller.toggle_playing()
    assert engine.playing is False
    assert controller.state is ConnectionState.CONNECTED_IDLE
    assert controller.configuration.playing is False


def test_tick_while_playing_pulls_engine_configuration(
    engine: MetronomeEngine, controller: MetronomeController
) -> None:
    ticks: list[Tick] = []
    controller.tickOccurred.connect(ticks.append)
    controller.bind(engine)
    controller.set_playing(True)

    # changed behind the controller's back, without a refresh
    engine.set_configuration(TimingConfiguration(beats=Beats(6), tempo=Tempo(180)))
    engine._on_timeout()

    assert ticks == [Tick(1, TickType.STRONG)]
    assert controller.configuration.beats == Beats(6)
    assert controller.configuration.tempo == Tempo(180)


def test_refresh_while_playing_pulls_engine_configuration(
    engine: MetronomeEngine, controller: MetronomeController
) -> None:
    controller.bind(engine)
    controller.set_playing(True)
    engine.update_configuration(TimingConfiguration(subdivisions=Subdivisions(4)))
    assert controller.configuration.subdivisions == Subdivisions(4)


def test_refresh_while_idle_pushes_ui_configuration(
    engine: MetronomeEngine, controller: MetronomeController
) -> None:
    controller.bind(engine)
    engine.update_configuration(TimingConfiguration(beats=Beats(2)))
    assert engine.get_configuration().beats == Beats(5)
    assert controller.configuration.beats == Beats(5)


def test_ticks_after_disconnect_are_dropped(engine: MetronomeEngine, controller: MetronomeController) -> None:
    ticks: list[Tick] = []
    controller.tickOccurred.connect(ticks.append)
    controller.bind(engine)
    controller.post(Disconnected())
    controller.post(TickOccurred(Tick(1, TickType.STRONG)))
    assert ticks == []


def test_taps_set_tempo_and_estimate(engine: MetronomeEngine, controller: MetronomeController) -> None:
    estimates: list[Tempo] = []
    controller.estimatedTempoChanged.connect(estimates.append)
    controller.bind(engine)

    controller.tap(T0)
    assert controller.estimated_tempo is None
    controller.tap(T0 + 500)
    controller.tap(T0 + 1000)

    assert estimates == [Tempo(120)]
    assert controller.estimated_tempo == Tempo(120)
    assert controller.configuration.tempo == Tempo(120)
    assert engine.get_configuration().tempo == Tempo(120)


def test_taps_while_disconnected_stay_local(controller: MetronomeController) -> None:
    controller.tap(T0)
    controller.tap(T0 + 400)
    assert controller.configuration.tempo == Tempo(150)


def test_tap_amount_change_reaches_estimator(controller: MetronomeController) -> None:
    for i in range(4):
        controller.tap(T0 + i * 500)
    assert len(controller.tap_tempo.window) == 3

    controller.set_tempo_tap_amount(TempoTapAmount(2))
    assert controller.tap_tempo.window == (120,)


def test_tempo_steps(controller: MetronomeController) -> None:
    controller.increment_tempo()
    assert controller.configuration.tempo == Tempo(141)
    controller.decrement_tempo(large=True)
    assert controller.configuration.tempo == Tempo(131)
    controller.set_tempo(Tempo(Tempo.MAX - 2))
    controller.increment_tempo(large=True)
    assert controller.configuration.tempo == Tempo(Tempo.MAX)


def test_events_posted_while_handling_run_afterwards(
    engine: MetronomeEngine, controller: MetronomeController
) -> None:
    seen: list[TimingConfiguration] = []

    def follow_up(config: TimingConfiguration) -> None:
        seen.append(config)
        if len(seen) == 1:
            controller.set_subdivisions(Subdivisions(3))
            # still the first edit: the second one waits its turn
            assert controller.configuration.subdivisions == Subdivisions(1)

    controller.bind(engine)
    controller.configurationChanged.connect(follow_up)
    controller.set_beats(Beats(2))

    assert [(c.beats.value, c.subdivisions.value) for c in seen] == [(2, 1), (2, 3)]
    assert engine.get_configuration().subdivisions == Subdivisions(3)


def test_unknown_events_are_rejected(controller: MetronomeController) -> None:
    with pytest.raises(TypeError):
        controller.post(object())


def test_close_discards_tap_sequence(engine: MetronomeEngine, controller: MetronomeController) -> None:
    controller.bind(engine)
    controller.tap(T0)
    controller.tap(T0 + 500)
    controller.close()

    assert controller.state is ConnectionState.DISCONNECTED
    assert controller.tap_tempo.window == ()


def test_snapshot_settings_reflects_edits(controller: MetronomeController) -> None:
    controller.set_beats(Beats(6))
    controller.set_tempo_tap_amount(TempoTapAmount(6))
    snapshot = controller.snapshot_settings()
    assert snapshot.beats == Beats(6)
    assert snapshot.tempo == Tempo(140)
    assert snapshot.tempo_tap_amount == TempoTapAmount(6)


def test_plain_ints_are_converted_at_the_entry_points(
    engine: MetronomeEngine, controller: MetronomeController
) -> None:
    controller.bind(engine)
    controller.set_beats(6)
    controller.set_subdivisions(2)
    controller.set_tempo(120)
    controller.set_tempo_tap_amount(2)

    config = engine.get_configuration()
    assert (config.beats, config.subdivisions, config.tempo) == (Beats(6), Subdivisions(2), Tempo(120))
    assert controller.configuration.beats == Beats(6)
    assert controller.tap_tempo.tap_amount == TempoTapAmount(2)


def test_bad_edits_are_rejected_before_they_are_queued(
    engine: MetronomeEngine, controller: MetronomeController
) -> None:
    controller.bind(engine)
    with pytest.raises(TypeError):
        controller.set_beats("6")
    with pytest.raises(OutOfRange):
        controller.set_tempo(500)

    controller.set_beats(7)
    assert engine.get_configuration().beats == Beats(7)
    assert engine.get_configuration().tempo == Tempo(140)
