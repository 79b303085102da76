from dataclasses import dataclass, field, replace
from enum import Enum

from .values import Beats, Subdivisions, Tempo


class TickType(Enum):
    STRONG = "strong"  # emphasized first beat of the bar
    WEAK = "weak"  # any other beat
    SUB = "sub"  # subdivision step between beats


@dataclass(frozen=True)
class Tick:
    beat: int  # 1-based beat within the bar
    type: TickType

    @property
    def is_visualized(self) -> bool:
        return self.type in (TickType.STRONG, TickType.WEAK)


@dataclass(frozen=True)
class TimingConfiguration:
    """Everything the tick engine needs, plus its play state."""
    beats: Beats = field(default_factory=Beats)
    subdivisions: Subdivisions = field(default_factory=Subdivisions)
    tempo: Tempo = field(default_factory=Tempo)
    emphasize_first_beat: bool = True
    playing: bool = False

    def __post_init__(self):
        object.__setattr__(self, "beats", Beats.coerce(self.beats))
        object.__setattr__(self, "subdivisions", Subdivisions.coerce(self.subdivisions))
        object.__setattr__(self, "tempo", Tempo.coerce(self.tempo))
        object.__setattr__(self, "emphasize_first_beat", bool(self.emphasize_first_beat))
        object.__setattr__(self, "playing", bool(self.playing))

    def with_settings_of(self, other: "TimingConfiguration") -> "TimingConfiguration":
        """Copy the user-editable fields of ``other``, keeping our play state."""
        return replace(
            self,
            beats=other.beats,
            subdivisions=other.subdivisions,
            tempo=other.tempo,
            emphasize_first_beat=other.emphasize_first_beat,
        )

    def same_settings(self, other: "TimingConfiguration") -> bool:
        return (
            self.beats == other.beats
            and self.subdivisions == other.subdivisions
            and self.tempo == other.tempo
            and self.emphasize_first_beat == other.emphasize_first_beat
        )

    @property
    def step_interval_ms(self) -> float:
        return 60_000 / (self.tempo.value * self.subdivisions.value)
